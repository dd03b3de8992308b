"""Spreadsheet import for classes. Columns are positional; the first row is a header and is skipped."""

import io
from typing import List

from fastapi import UploadFile
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from .schemas import ClassImportRow

EXCEL_MAX_ROWS = 1000
IMPORT_COLUMNS = ("thumbnail", "title", "batchname", "streamlink")
TEMPLATE_HEADERS = ("Thumbnail URL", "Class Title", "Batch Name", "Stream Link")
CLASSES_SHEET_NAME = "Classes"


def _cell_str(row: tuple, col: int) -> str:
    if col >= len(row):
        return ""
    v = row[col]
    if v is None:
        return ""
    return str(v).strip()


def _is_blank(row: tuple) -> bool:
    return not row or all(c is None or (isinstance(c, str) and not c.strip()) for c in row)


def parse_classes_workbook(content: bytes) -> List[ClassImportRow]:
    """
    Parse xlsx bytes into import rows. Raises ValueError when the file itself is unusable.
    Rows are never rejected individually: missing cells become empty strings, blank rows are skipped.
    """
    if not content:
        raise ValueError("File is empty")
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"Invalid Excel file: {e}") from e

    try:
        ws = wb.active
        if ws is None:
            raise ValueError("Excel file has no active sheet")

        rows_iter = ws.iter_rows(values_only=True)
        next(rows_iter, None)  # header

        items: List[ClassImportRow] = []
        for row_num, row in enumerate(rows_iter, start=2):
            if _is_blank(row):
                continue
            if len(items) >= EXCEL_MAX_ROWS:
                raise ValueError(f"Row {row_num}: maximum {EXCEL_MAX_ROWS} data rows allowed")
            items.append(
                ClassImportRow(**{name: _cell_str(row, idx) for idx, name in enumerate(IMPORT_COLUMNS)})
            )
        return items
    finally:
        wb.close()


async def parse_classes_excel(file: UploadFile) -> List[ClassImportRow]:
    if not file.filename or not file.filename.lower().endswith((".xlsx", ".xlsm")):
        raise ValueError("File must be an Excel file (.xlsx)")
    content = await file.read()
    return parse_classes_workbook(content)


def build_import_template() -> bytes:
    """Empty workbook with the header row the importer skips."""
    wb = Workbook()
    ws = wb.active
    ws.title = CLASSES_SHEET_NAME
    ws.append(list(TEMPLATE_HEADERS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.column_dimensions["A"].width = 40
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 25
    ws.column_dimensions["D"].width = 60

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
