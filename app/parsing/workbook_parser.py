"""
app/parsing/workbook_parser.py

Reads an uploaded spreadsheet (.xlsx or delimited text) into ordered rows
keyed by the literal header text of the first row.

Delimited text is decoded as UTF-8 (UTF-16 when a BOM says so). Bytes that
are not valid UTF-8 are kept through ``surrogateescape`` and re-decoded per
cell as Windows-1252, the usual encoding of legacy Excel CSV exports. Every
row touched that way carries an ``EncodingIssue``; the batch is never failed
for it.
"""

from __future__ import annotations

import codecs
import csv
import io
import logging
import zipfile
from datetime import date, datetime, time
from typing import Any, Iterable, Iterator, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.domain.imports import EncodingIssue, FormatError, ParsedRow, ParsedWorkbook
from app.normalization import normalize_text

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

TEXT_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/plain",
    "text/tab-separated-values",
    # Browsers on Windows label .csv uploads with the legacy Excel type.
    "application/vnd.ms-excel",
}

DELIMITER_CANDIDATES: tuple[str, ...] = (",", ";", "\t")

_ZIP_SIGNATURE = b"PK\x03\x04"
_OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_REPLACEMENT_CHAR = "\ufffd"
_SNIFF_BYTES = 4096


class SourceFormat:
    XLSX = "xlsx"
    DELIMITED = "delimited"


def detect_delimiter(header_line: str) -> str:
    """
    Pick the candidate delimiter that occurs most often in the header line.
    Falls back to a comma when none occurs.
    """

    best = max(DELIMITER_CANDIDATES, key=header_line.count)
    return best if header_line.count(best) else ","


class WorkbookParser:
    """
    Detects the tabular dialect of an upload and reads it losslessly.
    """

    def parse(
        self,
        content: bytes,
        *,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> ParsedWorkbook:
        if not content:
            raise FormatError("The uploaded file is empty.")

        source_format = self.detect_format(content, content_type=content_type, filename=filename)
        if source_format == SourceFormat.XLSX:
            workbook = self._parse_xlsx(content)
        else:
            workbook = self._parse_delimited(content)

        if not workbook.rows:
            raise FormatError("The file has a header row but no data rows.")

        logger.info(
            "Workbook parsed filename=%r format=%s rows=%d columns=%d",
            filename,
            workbook.source_format,
            len(workbook.rows),
            len(workbook.headers),
        )
        return workbook

    def detect_format(
        self,
        content: bytes,
        *,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> str:
        """
        Decide between .xlsx and delimited text, content first.
        """

        if content.startswith(_ZIP_SIGNATURE):
            return SourceFormat.XLSX
        if content.startswith(_OLE2_SIGNATURE):
            raise FormatError("Legacy .xls workbooks are not supported. Save the file as .xlsx or CSV.")

        declared_type = (content_type or "").split(";")[0].strip().lower()
        declared_name = (filename or "").strip().lower()
        if declared_type in XLSX_CONTENT_TYPES or declared_name.endswith(".xlsx"):
            raise FormatError("The file is declared as .xlsx but is not a valid workbook.")

        head = content[:_SNIFF_BYTES]
        has_utf16_bom = head.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE))
        if b"\x00" in head and not has_utf16_bom:
            raise FormatError("The file is not a supported spreadsheet (expected .xlsx or CSV).")
        return SourceFormat.DELIMITED

    # ------------------------------------------------------------------
    # Delimited text
    # ------------------------------------------------------------------

    def _parse_delimited(self, content: bytes) -> ParsedWorkbook:
        text = self._decode(content)
        text = text.lstrip("\r\n")
        header_line = text.split("\n", 1)[0]
        delimiter = detect_delimiter(header_line)

        try:
            reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
            records = list(reader)
        except csv.Error as exc:
            raise FormatError(f"Invalid delimited text: {exc}") from exc

        headers, rows = self._build_rows(records, recover=True)
        return ParsedWorkbook(
            headers=headers,
            rows=rows,
            source_format=SourceFormat.DELIMITED,
            delimiter=delimiter,
        )

    @staticmethod
    def _decode(content: bytes) -> str:
        if content.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            try:
                return content.decode("utf-16")
            except UnicodeDecodeError as exc:
                raise FormatError("The file declares UTF-16 but could not be decoded.") from exc

        # Invalid bytes survive as lone surrogates and are recovered per cell.
        return content.decode("utf-8-sig", errors="surrogateescape")

    # ------------------------------------------------------------------
    # .xlsx
    # ------------------------------------------------------------------

    def _parse_xlsx(self, content: bytes) -> ParsedWorkbook:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
            raise FormatError("The workbook could not be opened as .xlsx.") from exc

        try:
            if not workbook.worksheets:
                raise FormatError("The workbook has no worksheets.")
            sheet = workbook.worksheets[0]
            records = (
                [_display_value(value) for value in values]
                for values in sheet.iter_rows(values_only=True)
            )
            headers, rows = self._build_rows(records, recover=False)
        finally:
            workbook.close()

        return ParsedWorkbook(headers=headers, rows=rows, source_format=SourceFormat.XLSX)

    # ------------------------------------------------------------------
    # Shared row assembly
    # ------------------------------------------------------------------

    def _build_rows(
        self,
        records: Iterable[Sequence[str]],
        *,
        recover: bool,
    ) -> tuple[tuple[str, ...], list[ParsedRow]]:
        iterator: Iterator[Sequence[str]] = iter(records)
        raw_header = next(iterator, None)
        if raw_header is None:
            raise FormatError("The file is empty.")

        header = [normalize_text(_recover_cell(cell)[0] if recover else cell) for cell in raw_header]
        if not any(header):
            raise FormatError("The header row is empty.")

        # First occurrence of a literal header wins; blank header cells are skipped.
        columns: list[tuple[int, str]] = []
        seen: set[str] = set()
        for index, name in enumerate(header):
            if name and name not in seen:
                columns.append((index, name))
                seen.add(name)

        rows: list[ParsedRow] = []
        for row_number, cells in enumerate(iterator, start=1):
            if not any(normalize_text(cell) for cell in cells):
                continue

            values: dict[str, str] = {}
            issues: list[EncodingIssue] = []
            for index, name in columns:
                raw = cells[index] if index < len(cells) else ""
                cell, recovered = _recover_cell(raw) if recover else (raw, False)
                value = normalize_text(cell)
                values[name] = value

                issue = _encoding_issue(row_number, name, value, recovered)
                if issue is not None:
                    issues.append(issue)

            rows.append(ParsedRow(row_number=row_number, values=values, encoding_issues=tuple(issues)))

        return tuple(name for _, name in columns), rows


def _recover_cell(cell: str) -> tuple[str, bool]:
    """
    Replace surrogate-escaped bytes with their Windows-1252 characters.
    """

    if not any(0xDC80 <= ord(ch) <= 0xDCFF for ch in cell):
        return cell, False

    recovered: list[str] = []
    for ch in cell:
        code = ord(ch)
        if 0xDC80 <= code <= 0xDCFF:
            recovered.append(bytes([code - 0xDC00]).decode("cp1252", errors="replace"))
        else:
            recovered.append(ch)
    return "".join(recovered), True


def _encoding_issue(row_number: int, column: str, value: str, recovered: bool) -> EncodingIssue | None:
    if recovered and _REPLACEMENT_CHAR in value:
        message = f'Column "{column}" has bytes that could not be decoded; they were replaced. Check the source file encoding.'
    elif recovered:
        message = f'Column "{column}" was not valid UTF-8 and was read as Windows-1252. Review the text before importing.'
    elif _REPLACEMENT_CHAR in value:
        message = f'Column "{column}" contains replacement characters; the source file may have lost accented text.'
    else:
        return None
    return EncodingIssue(row_number=row_number, field=column, message=message)


def _display_value(value: Any) -> str:
    """
    Render an .xlsx cell the way a spreadsheet user sees it.
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)
