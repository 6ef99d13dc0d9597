"""Shared row/field markers for pipeline-level failures in import reports."""

# Row number used for failures that belong to the whole file (format, headers).
FILE_ROW = 0

# Row number used for infrastructure failures (ledger writes, chunk inserts).
SYSTEM_ROW = -1

FILE_FIELD = "file"
HEADER_FIELD = "header"
SYSTEM_FIELD = "system"
