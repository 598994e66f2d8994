"""Exportacion del historial semanal a Excel formateado."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

_HEADER_MAP: dict[str, str] = {
    "weekday": "Día",
    "date": "Fecha",
    "steps": "Pasos",
    "water_ml": "Agua (ml)",
    "percent_of_goal": "Meta\n(%)",
}

_COLUMN_WIDTHS: tuple[tuple[str, int], ...] = (
    ("Día", 6),
    ("Fecha", 12),
    ("Pasos", 12),
    ("Agua (ml)", 12),
    ("Meta\n(%)", 8),
)

_NUMBER_FORMATS: dict[str, str] = {
    "Fecha": "dd/mm/yyyy",
    "Pasos": "#,##0",
    "Agua (ml)": "#,##0",
    "Meta\n(%)": "0",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the history sheet."""

    sheet_name: str = "Historial"


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _add_weekday_column(export_df: pd.DataFrame) -> pd.DataFrame:
    """Añade columna weekday (Día) a partir de date."""
    if "date" not in export_df.columns or export_df.empty:
        return export_df
    export_df = export_df.copy()
    weekday_series = pd.to_datetime(export_df["date"], errors="coerce").dt.weekday
    export_df["weekday"] = weekday_series.map(_weekday_label)
    export_df["date"] = pd.to_datetime(export_df["date"], errors="coerce")
    cols = ["weekday"] + [c for c in export_df.columns if c != "weekday"]
    return export_df[cols]


def write_history_xlsx(df: pd.DataFrame, out_path: Path, layout: ExcelLayout) -> None:
    """Write the history table as a printable sheet.

    Args:
        df: Frame from ``report.history_frame``.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = _add_weekday_column(df)
    export_df = export_df.rename(columns=_HEADER_MAP)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws)


def _style_rows(ws: Any) -> None:
    """Cabecera en negrita; bordes y alineación centrada en todas las filas."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in ws.iter_rows(min_row=1):
        for cell in row:
            cell.alignment = center
            cell.border = border
        if row[0].row > 1:
            ws.row_dimensions[row[0].row].height = 15


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_rows(ws)
    col_index = {str(cell.value): idx + 1 for idx, cell in enumerate(ws[1])}
    for header, width in _COLUMN_WIDTHS:
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt
