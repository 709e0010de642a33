#!/usr/bin/env python3
"""
Catalog card batch generator.

Composes one card per CSV row onto a shared template and writes:
  <output>/cards/{sku}.jpg
  <output>/catalog_images.zip   (or catalogo_rappi.zip with --rappi)
  <output>/run.log

CSV columns: sku, action, title, price, filename (+ optional Rappi
metadata: category, brand, ean, description, unit, quantity, pesable,
preempaquetado).
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import requests

import config
from asset_store import AssetStore
from bundle import write_zip
from processor import RecordProcessor
from records import Status, read_records_csv


def _setup_logging(output_dir: Path) -> None:
    """Configure logging to console and file."""
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / "run.log"

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(formatter)

    fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(formatter)

    logger.handlers.clear()
    logger.addHandler(sh)
    logger.addHandler(fh)


def _read_template(source: str) -> bytes:
    """Template bytes from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=30)
        response.raise_for_status()
        return response.content
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Template not found: {path}")
    return path.read_bytes()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Compose catalog cards from a template, a CSV and photos")
    parser.add_argument("--csv", type=Path, default=Path("products.csv"), help="Input CSV file")
    parser.add_argument("--template", type=str, required=True, help="Template image (path or URL)")
    parser.add_argument("--photos", type=Path, default=Path("photos"), help="Photos directory")
    parser.add_argument("--output", type=Path, default=Path("exports"), help="Output directory")
    parser.add_argument("--rappi", action="store_true", help="Include the Rappi flatfile in the ZIP")
    parser.add_argument("--only-sku", type=str, default=None, help="Process only this SKU")
    args = parser.parse_args(argv)

    config.load_config_bat()
    _setup_logging(args.output)
    logging.info("=" * 60)
    logging.info("Catalog Composer - Starting")
    logging.info("CSV: %s", args.csv)
    logging.info("Template: %s", args.template)
    logging.info("Photos: %s", args.photos)
    logging.info("Output: %s", args.output)
    logging.info("Rappi flatfile: %s", args.rappi)
    logging.info("=" * 60)

    try:
        records = read_records_csv(args.csv)
    except (OSError, ValueError) as e:
        logging.error("Failed to read CSV: %s", e)
        return 1
    logging.info("Loaded %d products from CSV", len(records))

    if args.only_sku:
        records = [r for r in records if r.sku == args.only_sku]
        if not records:
            logging.error("SKU %s not found in CSV", args.only_sku)
            return 1
        logging.info("Filtered to SKU: %s", args.only_sku)

    try:
        template = _read_template(args.template)
    except (OSError, requests.RequestException) as e:
        logging.error("Failed to read template: %s", e)
        return 1

    assets = AssetStore()
    if args.photos.is_dir():
        assets.load_directory(args.photos)
    else:
        logging.warning("Photos directory not found: %s (composing text only)", args.photos)

    processor = RecordProcessor(assets=assets, records=records, template_bytes=template)
    start_time = time.perf_counter()
    try:
        processor.compose_all()
    finally:
        processor.shutdown()

    cards_dir = args.output / "cards"
    cards_dir.mkdir(parents=True, exist_ok=True)
    success_count = 0
    fail_count = 0
    for record in records:
        if record.status == Status.OK and record.output is not None:
            (cards_dir / record.output_name).write_bytes(record.output)
            success_count += 1
        else:
            logging.warning("No card for %s: %s", record.sku, record.status_label)
            fail_count += 1

    zip_name = config.RAPPI_ZIP_NAME if args.rappi else config.CATALOG_ZIP_NAME
    zip_path = write_zip(records, args.output / zip_name, include_flatfile=args.rappi)

    logging.info("=" * 60)
    logging.info("Complete: %d succeeded, %d failed in %.2fs", success_count, fail_count, time.perf_counter() - start_time)
    logging.info("Cards: %s", cards_dir)
    logging.info("Bundle: %s", zip_path)
    logging.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
