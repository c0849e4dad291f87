from __future__ import annotations

from pathlib import Path

import openpyxl


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_first_column_values(path: Path | str) -> frozenset[str]:
    """Return the non-blank first-column values of the workbook's first sheet.

    A missing file yields an empty set. Values are kept as text; numeric cells
    are rendered without a trailing ``.0``.
    """

    workbook_path = Path(path)
    if not workbook_path.is_file():
        return frozenset()

    workbook = openpyxl.load_workbook(workbook_path, read_only=True, data_only=True)
    try:
        if not workbook.worksheets:
            return frozenset()
        sheet = workbook.worksheets[0]
        values: set[str] = set()
        for row in sheet.iter_rows(min_col=1, max_col=1, values_only=True):
            if not row:
                continue
            text = _cell_text(row[0])
            if text:
                values.add(text)
        return frozenset(values)
    finally:
        workbook.close()
