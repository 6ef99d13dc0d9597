"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

from app.parsing.workbook_parser import TEXT_CONTENT_TYPES, XLSX_CONTENT_TYPES

SPREADSHEET_EXTENSIONS = (".csv", ".txt", ".tsv", ".xlsx")


def get_spreadsheet_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV or XLSX by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()

    is_spreadsheet_filename = filename.endswith(SPREADSHEET_EXTENSIONS)
    is_spreadsheet_content_type = content_type in TEXT_CONTENT_TYPES | XLSX_CONTENT_TYPES

    if not is_spreadsheet_filename and not is_spreadsheet_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV or XLSX files are allowed.",
        )

    return file
