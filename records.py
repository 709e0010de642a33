#!/usr/bin/env python3
"""
Product records, per-record layout settings and the record lifecycle.

Lifecycle:
  unset -> pending | processing
  pending -> processing
  processing -> ok | error
  ok | error -> pending | processing
"""

import csv
import dataclasses
import io
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from config import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    DEFAULT_FONT_SIZE,
    DEFAULT_LINE_HEIGHT,
    DEFAULT_MAX_TEXT_ADJUSTMENT,
    DEFAULT_PHOTO_H,
    DEFAULT_PHOTO_Y,
    OUTPUT_EXTENSION,
)
from errors import InvalidTransition

# CSV columns understood by the composer (extra columns are ignored)
RECORD_COLUMNS = [
    "sku", "action", "title", "price", "filename",
    "category", "brand", "ean", "description", "unit", "quantity",
    "pesable", "preempaquetado",
]

# camelCase keys sent by the browser UI
SETTINGS_ALIASES = {
    "photoY": "photo_y",
    "photoH": "photo_h",
    "textX": "text_x",
    "textY": "text_y",
    "fontSize": "font_size",
    "lineHeight": "line_height",
    "maxTextAdjustment": "max_text_adjustment",
}


class Status(Enum):
    UNSET = "unset"
    PENDING = "pending"
    PROCESSING = "processing"
    OK = "ok"
    ERROR = "error"


ALLOWED_TRANSITIONS = {
    Status.UNSET: {Status.PENDING, Status.PROCESSING},
    Status.PENDING: {Status.PENDING, Status.PROCESSING},
    Status.PROCESSING: {Status.OK, Status.ERROR},
    Status.OK: {Status.PENDING, Status.PROCESSING},
    Status.ERROR: {Status.PENDING, Status.PROCESSING},
}


@dataclass(frozen=True)
class LayoutSettings:
    """Per-record placement overrides. Photo width follows the photo's aspect ratio."""
    photo_y: float = DEFAULT_PHOTO_Y
    photo_h: float = DEFAULT_PHOTO_H
    text_x: float = CANVAS_WIDTH / 2
    text_y: float = CANVAS_HEIGHT - 67
    font_size: float = DEFAULT_FONT_SIZE
    line_height: float = DEFAULT_LINE_HEIGHT
    max_text_adjustment: float = DEFAULT_MAX_TEXT_ADJUSTMENT

    def __post_init__(self):
        for f in dataclasses.fields(self):
            if not math.isfinite(getattr(self, f.name)):
                raise ValueError(f"{f.name} must be a finite number, got {getattr(self, f.name)}")
        if self.photo_h <= 0:
            raise ValueError(f"photo_h must be positive, got {self.photo_h}")
        if self.font_size <= 0:
            raise ValueError(f"font_size must be positive, got {self.font_size}")
        if self.line_height < self.font_size:
            raise ValueError(
                f"line_height ({self.line_height}) must be at least font_size ({self.font_size})"
            )

    def merged(self, partial: dict) -> "LayoutSettings":
        """Copy with `partial` applied; accepts snake_case or camelCase keys."""
        known = {f.name for f in dataclasses.fields(self)}
        changes = {}
        for key, value in partial.items():
            name = SETTINGS_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown layout setting: {key}")
            if value is None:
                continue
            try:
                changes[name] = float(value)
            except (TypeError, ValueError):
                raise ValueError(f"Layout setting {key} must be a number, got {value!r}")
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class CompositionResult:
    """Encoded card produced by one compositor call."""
    data: bytes
    name: str
    status: Status = Status.OK


@dataclass
class ProductRecord:
    """A catalog row plus the state the processor keeps for it."""
    sku: str
    title: str = ""
    price: Union[str, int, float] = ""
    filename: str = ""
    action: str = ""
    # Passed through to the marketplace flatfile
    category: str = ""
    brand: str = ""
    ean: str = ""
    description: str = ""
    unit: str = ""
    quantity: str = ""
    pesable: str = ""
    preempaquetado: str = ""
    # Owned by the processor
    settings: LayoutSettings = field(default_factory=LayoutSettings)
    approved: bool = True
    status: Status = Status.UNSET
    status_message: str = ""
    output: Optional[bytes] = None
    output_name: str = ""

    @property
    def status_label(self) -> str:
        """Status string written to reports."""
        if self.status == Status.UNSET:
            return ""
        if self.status == Status.ERROR:
            return f"error: {self.status_message}"
        return self.status.value

    def transition(self, new_status: Status, message: str = "") -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"{self.sku}: cannot go from {self.status.value} to {new_status.value}",
                context={"sku": self.sku},
            )
        self.status = new_status
        self.status_message = message if new_status == Status.ERROR else ""

    def apply_result(self, result: CompositionResult) -> None:
        self.transition(Status.OK)
        self.output = result.data
        self.output_name = result.name

    def fail(self, message: str) -> None:
        self.transition(Status.ERROR, message)
        self.output = None
        self.output_name = output_name_for(self.sku)

    def to_dict(self) -> dict:
        """JSON-friendly view (no image bytes)."""
        row = {col: getattr(self, col) for col in RECORD_COLUMNS}
        row.update({
            "settings": self.settings.to_dict(),
            "approved": self.approved,
            "status": self.status.value,
            "status_label": self.status_label,
            "output_name": self.output_name,
            "has_output": self.output is not None,
        })
        return row


def output_name_for(sku: str) -> str:
    """Output filename for a sku; path separators are not allowed in the stem."""
    stem = sku.replace("/", "_").replace("\\", "_").strip() or "unnamed"
    return f"{stem}.{OUTPUT_EXTENSION}"


def _records_from_reader(reader: csv.DictReader) -> list[ProductRecord]:
    if reader.fieldnames is None:
        raise ValueError("CSV has no header row")
    fieldnames = {name.strip() for name in reader.fieldnames if name}
    if "sku" not in fieldnames:
        raise ValueError("CSV missing required column: sku")

    records: list[ProductRecord] = []
    for i, r in enumerate(reader, start=2):
        r = {(k or "").strip(): v for k, v in r.items()}
        sku = (r.get("sku") or "").strip()
        if not sku:
            logging.warning("Skipping row %s: empty sku", i)
            continue

        values = {col: (r.get(col) or "").strip() for col in RECORD_COLUMNS}
        records.append(ProductRecord(**values))
    return records


def read_records_csv(csv_path: Path) -> list[ProductRecord]:
    """Read product records from a CSV file with a header row."""
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV not found: {csv_path}")
    with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
        return _records_from_reader(csv.DictReader(f))


def parse_records_csv(text: str) -> list[ProductRecord]:
    """Read product records from CSV text (e.g. an upload)."""
    text = text.lstrip("\ufeff")
    return _records_from_reader(csv.DictReader(io.StringIO(text, newline="")))
