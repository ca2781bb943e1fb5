# app/sheets/grid_loader.py
# ---------------------------------------------------------
# Uploaded CSV / XLSX bytes -> grid of string cells for parse_rows().
# ---------------------------------------------------------

from __future__ import annotations

import csv
import io
import zipfile
import logging
from typing import List, Optional

import pandas as pd

from app.errors import ParseError

logger = logging.getLogger("uvicorn.error")

EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _frame_to_grid(df: pd.DataFrame) -> List[List[str]]:
    df = df.fillna("")
    return [["" if v is None else str(v) for v in row] for row in df.values.tolist()]


def _read_csv(data: bytes) -> List[List[str]]:
    # Each line keeps its own width: parse_rows() skips narrow rows and ignores extra cells.
    text = data.decode("utf-8-sig")
    return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]


def _read_excel(data: bytes, sheet_name: Optional[str]) -> List[List[str]]:
    # A worksheet is rectangular, so every row is as wide as the used range.
    df = pd.read_excel(
        io.BytesIO(data),
        sheet_name=sheet_name if sheet_name else 0,
        header=None,
        dtype=str,
        engine="openpyxl",
    )
    return _frame_to_grid(df)


def load_grid(data: bytes, filename: str = "upload.csv", sheet_name: Optional[str] = None) -> List[List[str]]:
    """Read every cell as text; never let ids be coerced to floats."""
    name = (filename or "").lower()
    try:
        if name.endswith(EXCEL_SUFFIXES):
            grid = _read_excel(data, sheet_name)
        else:
            grid = _read_csv(data)
    except (ValueError, zipfile.BadZipFile, csv.Error) as e:
        logger.warning("[PARSE] could not read upload '%s': %s", filename, e)
        raise ParseError(f"Could not read '{filename}': {e}") from e
    logger.info("[PARSE] loaded %s row(s) from '%s'", len(grid), filename)
    return grid
