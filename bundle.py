#!/usr/bin/env python3
"""
Download bundles: composed cards, a results report and optionally the
Rappi flatfile, zipped together. Only approved records are included.
"""

import csv
import io
import logging
import zipfile
from pathlib import Path

from config import RAPPI_XLSX_NAME, RESULTS_CSV_NAME
from rappi_flatfile import rappi_xlsx_bytes
from records import ProductRecord

REPORT_COLUMNS = ["sku", "action", "title", "price", "filename", "output", "status"]


def report_rows(records: list[ProductRecord]) -> list[dict]:
    """One report row per approved record, with the status string as shown to users."""
    rows = []
    for r in records:
        if not r.approved:
            continue
        rows.append({
            "sku": r.sku,
            "action": r.action,
            "title": r.title,
            "price": r.price,
            "filename": r.filename,
            "output": r.output_name or "",
            "status": r.status_label,
        })
    return rows


def results_csv(records: list[ProductRecord]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=REPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in report_rows(records):
        writer.writerow(row)
    return buf.getvalue()


def build_zip(records: list[ProductRecord], include_flatfile: bool = False) -> bytes:
    """
    Zip the approved records' cards with results.csv.

    Records without an output image (never composed, failed, or photo
    swapped since) are listed in the report but have no image entry.
    When two records map to the same image name (e.g. "a/b" and "a_b"),
    the first one is kept.
    """
    approved = [r for r in records if r.approved]
    buf = io.BytesIO()
    written: set[str] = set()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for r in approved:
            if r.output is None or not r.output_name:
                continue
            if r.output_name in written:
                logging.warning("Skipping %s: %s is already in the archive", r.sku, r.output_name)
                continue
            zf.writestr(r.output_name, r.output)
            written.add(r.output_name)
        zf.writestr(RESULTS_CSV_NAME, results_csv(approved))
        if include_flatfile:
            zf.writestr(RAPPI_XLSX_NAME, rappi_xlsx_bytes(approved))

    logging.info(
        "Bundled %d images for %d approved records%s",
        len(written), len(approved), " with Rappi flatfile" if include_flatfile else "",
    )
    return buf.getvalue()


def write_zip(records: list[ProductRecord], output_path: Path, include_flatfile: bool = False) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(build_zip(records, include_flatfile))
    return output_path
