"""Student roster import from Excel (.xlsx)."""

import io
from typing import List, Tuple, Union

from fastapi import UploadFile
from openpyxl import Workbook, load_workbook
from pydantic import ValidationError

from .schemas import UserCreate

EXCEL_MAX_ROWS = 500
REQUIRED_HEADERS = ("name", "email", "enrollment", "password")
TEMPLATE_HEADERS = ("name", "email", "enrollment", "batch", "section", "password", "phone")
STUDENTS_SHEET_NAME = "Students"


def build_student_template() -> bytes:
    """Empty workbook with the roster header row and one example line."""
    wb = Workbook()
    ws = wb.active
    ws.title = STUDENTS_SHEET_NAME
    ws.append(list(TEMPLATE_HEADERS))
    ws.append(["Student A", "student.a@example.com", "00124402023", "3rd year", "E1", "student123", ""])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _norm(s) -> str:
    return (str(s).strip().lower() if s is not None else "").replace(" ", "_")


def _cell_str(row: tuple, col: int) -> str:
    if col >= len(row) or row[col] is None:
        return ""
    v = row[col]
    # Enrollment numbers typed as numbers come back as int/float
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


async def parse_students_excel(file: UploadFile) -> List[Tuple[int, Union[UserCreate, str]]]:
    """
    Parse an uploaded roster. First row = headers. Returns (row_number, UserCreate) for valid rows
    and (row_number, error message) for rows that fail validation.
    Raises ValueError when the file itself is unusable.
    """
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise ValueError("File must be an Excel file (.xlsx)")

    content = await file.read()
    if not content:
        raise ValueError("File is empty")

    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"Invalid Excel file: {e}") from e

    ws = wb.active
    rows_iter = ws.iter_rows(values_only=True)
    header_row = next(rows_iter, None)
    if not header_row:
        wb.close()
        raise ValueError("Excel file has no header row")
    header_row = [_norm(c) for c in header_row]

    col_idx = {}
    for h in TEMPLATE_HEADERS:
        if h in header_row:
            col_idx[h] = header_row.index(h)
    missing = [h for h in REQUIRED_HEADERS if h not in col_idx]
    if missing:
        wb.close()
        raise ValueError(f"Missing required column(s): {', '.join(missing)}. Found: {header_row}")

    parsed: List[Tuple[int, Union[UserCreate, str]]] = []
    for row_num, row in enumerate(rows_iter, start=2):
        if row_num - 1 > EXCEL_MAX_ROWS:
            wb.close()
            raise ValueError(f"Maximum {EXCEL_MAX_ROWS} data rows allowed")
        if not row or all(c is None or (isinstance(c, str) and not c.strip()) for c in row):
            continue
        values = {h: _cell_str(row, i) for h, i in col_idx.items()}
        try:
            parsed.append(
                (
                    row_num,
                    UserCreate(
                        name=values["name"],
                        email=values["email"],
                        password=values["password"],
                        role="student",
                        enrollment=values["enrollment"],
                        batch=values.get("batch") or None,
                        section=values.get("section") or None,
                        phone=values.get("phone") or None,
                    ),
                )
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ()))
            parsed.append((row_num, f"{field}: {first.get('msg')}"))
    wb.close()
    return parsed
