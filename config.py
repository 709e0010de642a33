#!/usr/bin/env python3
"""
Catalog Composer configuration.

Engine constants (canvas, margins, palette) are fixed for a run.
Runtime knobs come from environment variables, optionally loaded from
a config.bat file of `set KEY=VALUE` lines.
"""

import logging
import os
from pathlib import Path
from typing import Optional

APP_DIR = Path(__file__).parent

# Canvas
CANVAS_WIDTH = 500
CANVAS_HEIGHT = 500

# Text block geometry (px)
SIDE_MARGIN = 27
MIN_BOTTOM_MARGIN = 20
TEXT_PADDING = 14
BASELINE_OFFSET = 7
HIGHLIGHT_PADDING = 5
HIGHLIGHT_TOP_RATIO = 0.8

# Allowed upward shift by line count; 4+ lines use the record's max_text_adjustment
LINE_COUNT_ADJUSTMENT = {
    0: 0,
    1: 0,
    2: 10,
    3: 25,
}

# Palette
BACKGROUND_COLOR = (255, 255, 255)
TEXT_COLOR = "#1F478D"
HIGHLIGHT_FILL = "#F3AB1D"
HIGHLIGHT_OUTLINE = "#1F478D"
TEXT_STROKE_WIDTH = 1

# Output
JPEG_QUALITY = 90
OUTPUT_EXTENSION = "jpg"

# Default layout for new records
DEFAULT_PHOTO_Y = 100
DEFAULT_PHOTO_H = 280
DEFAULT_FONT_SIZE = 24
DEFAULT_LINE_HEIGHT = 30
DEFAULT_MAX_TEXT_ADJUSTMENT = 50

# Heavy sans fonts tried in order; the first one found is used
FONT_PATHS = [
    "/usr/share/fonts/truetype/montserrat/Montserrat-Black.ttf",
    "/usr/share/fonts/opentype/montserrat/Montserrat-Black.otf",
    "/Library/Fonts/Montserrat-Black.ttf",
    "C:\\Windows\\Fonts\\Montserrat-Black.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".webp"}

# Rappi flatfile
RAPPI_SHEET_TITLE = "Productos"
RAPPI_DEFAULTS = {
    "category": "Papelería y oficina > Útiles escolares > Otros Útiles escolares",
    "brand": "",
    "ean": "",
    "pesable": "NO",
    "preempaquetado": "NO",
    "quantity": 1,
    "unit": "Und (unidades)",
}

# Archives
CATALOG_ZIP_NAME = "catalog_images.zip"
RAPPI_ZIP_NAME = "catalogo_rappi.zip"
RESULTS_CSV_NAME = "results.csv"
RAPPI_XLSX_NAME = "rappi_productos.xlsx"


def load_config_bat(config_path: Optional[Path] = None) -> int:
    """
    Load `set KEY=VALUE` lines from config.bat into os.environ.

    Returns:
        Number of variables loaded
    """
    config_path = config_path or APP_DIR / "config.bat"
    if not config_path.exists():
        return 0

    loaded = 0
    with open(config_path, "r") as f:
        for line in f:
            line = line.strip()
            if line.startswith("set ") and "=" in line:
                parts = line[4:].split("=", 1)
                if len(parts) == 2:
                    os.environ[parts[0]] = parts[1]
                    loaded += 1
    return loaded


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def debounce_seconds() -> float:
    """Delay between a settings edit and its automatic recomposition."""
    return max(0.0, _env_float("CATALOG_DEBOUNCE_SECONDS", 0.1))


def worker_count() -> int:
    return max(1, _env_int("CATALOG_WORKERS", 1))


def font_paths() -> list[str]:
    """Font candidates, with CATALOG_FONT_PATH first when set."""
    override = os.environ.get("CATALOG_FONT_PATH", "").strip()
    if override:
        return [override] + FONT_PATHS
    return list(FONT_PATHS)
