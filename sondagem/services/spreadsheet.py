"""
Workbook bytes <-> sheet rows, via pandas with the openpyxl engine.
"""
from __future__ import annotations

import io
import logging

import pandas as pd

from sondagem.exceptions import TrackerError

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def read_workbook(file_bytes: bytes) -> dict[str, list[dict]]:
    """Parse every sheet into a list of header -> cell dicts.

    Cells are read as text with empty cells as ''.

    Raises:
        TrackerError: The bytes are not a readable workbook.
    """
    try:
        frames = pd.read_excel(
            io.BytesIO(file_bytes), sheet_name=None, dtype=str, engine='openpyxl',
        )
    except Exception as e:
        logger.warning(f"Unreadable workbook upload: {e}")
        raise TrackerError('Erro ao importar arquivo excel. Verifique o formato.') from e

    sheets = {}
    for name, df in frames.items():
        df = df.fillna('')
        df.columns = [str(c).strip() for c in df.columns]
        sheets[name] = df.to_dict(orient='records')
    return sheets


def write_workbook(sheets: dict[str, list[dict]]) -> bytes:
    """Write sheets (in the given order) to xlsx bytes, sizing columns to content."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        for name, rows in sheets.items():
            df = pd.DataFrame(rows)
            df.to_excel(writer, sheet_name=name, index=False)
            worksheet = writer.sheets[name]
            for i, column in enumerate(df.columns, start=1):
                longest = max(
                    [len(str(column))] + [len(str(v)) for v in df[column].tolist()]
                )
                letter = worksheet.cell(row=1, column=i).column_letter
                worksheet.column_dimensions[letter].width = min(longest + 5, 60)
    return buffer.getvalue()
