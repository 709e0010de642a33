#!/usr/bin/env python3
"""
Rappi product flatfile.

Builds the single-sheet XLSX that Rappi's bulk product upload expects:
one header row and one row per approved product. Catalog metadata from
the input CSV is used when present, otherwise the stationery defaults.
"""

import io
import logging
from pathlib import Path
from typing import Optional

import openpyxl
from openpyxl.utils import get_column_letter

from config import RAPPI_DEFAULTS, RAPPI_SHEET_TITLE
from records import ProductRecord

# (header, column width)
RAPPI_COLUMNS = [
    ("Categoría", 50),
    ("Nombre", 30),
    ("SKU", 15),
    ("Marca (opcional)", 20),
    ("EAN (opcional)", 15),
    ("Descripción", 40),
    ("¿Es pesable?", 15),
    ("¿Es preempaquetado?", 20),
    ("Cantidad", 10),
    ("Unidad de medida", 20),
]


def _or_default(value: Optional[str], key: str) -> str:
    value = str(value or "").strip()
    return value or str(RAPPI_DEFAULTS[key])


def rappi_row(record: ProductRecord) -> list[str]:
    """Flatfile cells for one product, in RAPPI_COLUMNS order."""
    title = str(record.title or "").strip()
    description = str(record.description or record.title or "").strip()
    return [
        _or_default(record.category, "category"),
        title,
        record.sku,
        _or_default(record.brand, "brand"),
        _or_default(record.ean, "ean"),
        description,
        _or_default(record.pesable, "pesable").upper(),
        _or_default(record.preempaquetado, "preempaquetado").upper(),
        _or_default(record.quantity, "quantity"),
        _or_default(record.unit, "unit"),
    ]


def build_rappi_workbook(records: list[ProductRecord]) -> openpyxl.Workbook:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = RAPPI_SHEET_TITLE

    for col, (header, _) in enumerate(RAPPI_COLUMNS, 1):
        ws.cell(row=1, column=col, value=header)

    row_num = 2
    for record in records:
        for col, value in enumerate(rappi_row(record), 1):
            ws.cell(row=row_num, column=col, value=value)
        row_num += 1

    for col, (_, width) in enumerate(RAPPI_COLUMNS, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    return wb


def rappi_xlsx_bytes(records: list[ProductRecord]) -> bytes:
    """Serialized flatfile for the given (already filtered) records."""
    buf = io.BytesIO()
    build_rappi_workbook(records).save(buf)
    logging.info("Built Rappi flatfile with %d products", len(records))
    return buf.getvalue()


def save_rappi_flatfile(records: list[ProductRecord], output_path: Path) -> None:
    build_rappi_workbook(records).save(output_path)
    logging.info("Saved Rappi flatfile to %s with %d products", output_path, len(records))
