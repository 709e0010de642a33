#!/usr/bin/env python3
"""
Record processor: runs the compositor over product records and tracks
each record's status.

Only one composition per record can be in flight. The check and the
switch to `processing` happen together under the processor lock, before
any work is scheduled; a second request for a busy record is a no-op.

Settings edits with auto-recompose go through a per-record debounce
timer. Rapid edits collapse into one recomposition, and a timer that
fires while the record is still busy re-arms itself instead of being
lost, so the last edit always gets composed.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

from PIL import Image

import config
from asset_store import AssetStore
from compositor import DEFAULT_CANVAS, Canvas, compose, load_template
from errors import RecordBusy, TemplateMissing
from records import CompositionResult, LayoutSettings, ProductRecord, Status

ComposeFn = Callable[[Image.Image, Optional[bytes], ProductRecord, LayoutSettings], CompositionResult]


class RecordProcessor:
    def __init__(
        self,
        assets: Optional[AssetStore] = None,
        records: Optional[list[ProductRecord]] = None,
        template_bytes: Optional[bytes] = None,
        compose_fn: Optional[ComposeFn] = None,
        debounce_seconds: Optional[float] = None,
        workers: Optional[int] = None,
        canvas: Canvas = DEFAULT_CANVAS,
    ):
        self.assets = assets or AssetStore()
        self.canvas = canvas
        self._compose_fn = compose_fn or self._default_compose
        self._debounce = config.debounce_seconds() if debounce_seconds is None else debounce_seconds
        self._lock = threading.RLock()
        self._records: list[ProductRecord] = list(records or [])
        self._template_bytes = template_bytes
        self._template: Optional[Image.Image] = None
        self._timers: dict[int, threading.Timer] = {}
        self._futures: set[Future] = set()
        self._executor = ThreadPoolExecutor(
            max_workers=workers or config.worker_count(),
            thread_name_prefix="compose",
        )

    def _default_compose(self, template, photo_bytes, record, settings):
        return compose(template, photo_bytes, record, settings, self.canvas)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[ProductRecord]:
        with self._lock:
            return list(self._records)

    def record(self, index: int) -> ProductRecord:
        with self._lock:
            if index < 0 or index >= len(self._records):
                raise IndexError(f"No record at index {index}")
            return self._records[index]

    def approved_records(self) -> list[ProductRecord]:
        return [r for r in self.records if r.approved]

    def load_records(self, records: list[ProductRecord]) -> None:
        """Replace the working set; pending auto-recompositions are dropped."""
        with self._lock:
            self._cancel_timers()
            self._records = list(records)
        logging.info("Loaded %d records", len(records))

    @property
    def has_template(self) -> bool:
        with self._lock:
            return self._template_bytes is not None

    def set_template(self, data: bytes, validate: bool = False) -> None:
        """
        Use `data` as the shared template from now on.

        With validate=True the bytes are decoded immediately and a
        DecodeFailure reaches the caller; otherwise a bad template shows
        up as an error on every record composed with it.
        """
        decoded = load_template(data, self.canvas) if validate else None
        with self._lock:
            self._template_bytes = data
            self._template = decoded
        logging.info("Template set (%d bytes)", len(data))

    def _get_template(self) -> Image.Image:
        with self._lock:
            if self._template_bytes is None:
                raise TemplateMissing("No template loaded")
            if self._template is None:
                self._template = load_template(self._template_bytes, self.canvas)
            return self._template

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _begin(self, index: int) -> Optional[tuple[ProductRecord, LayoutSettings, str]]:
        """Claim a record for composition; None if it is already in flight."""
        with self._lock:
            record = self.record(index)
            if record.status == Status.PROCESSING:
                logging.info("Record %s is already processing, skipping", record.sku)
                return None
            record.transition(Status.PROCESSING)
            return record, record.settings, record.filename

    def _run(self, record: ProductRecord, settings: LayoutSettings, filename: str) -> bool:
        try:
            template = self._get_template()
            photo = self.assets.get(filename) if filename else None
            result = self._compose_fn(template, photo, record, settings)
        except Exception as e:
            logging.error("Composition failed for %s: %s", record.sku, e)
            with self._lock:
                record.fail(str(e))
            return False

        with self._lock:
            record.apply_result(result)
            if record.settings != settings:
                # Edited while composing: the image is already stale
                record.transition(Status.PENDING)
        logging.info("Composed %s", result.name)
        return True

    def compose_all(self) -> list[ProductRecord]:
        """
        Compose every record in input order.

        A failing record only changes its own status. Records with a
        composition in flight are left alone.
        """
        if not self.has_template:
            raise TemplateMissing("Load a template before composing")

        start_time = time.perf_counter()
        success_count = 0
        fail_count = 0
        for index in range(len(self.records)):
            job = self._begin(index)
            if job is None:
                continue
            if self._run(*job):
                success_count += 1
            else:
                fail_count += 1

        logging.info(
            "Batch done: %d ok, %d failed in %.2fs",
            success_count, fail_count, time.perf_counter() - start_time,
        )
        return self.records

    def compose_one(self, index: int) -> bool:
        """
        Compose a single record now.

        Returns:
            False when the record was already processing (nothing done)
        """
        if not self.has_template:
            raise TemplateMissing("Load a template before composing")
        job = self._begin(index)
        if job is None:
            return False
        self._run(*job)
        return True

    def submit_compose(self, index: int) -> Optional[Future]:
        """Compose a record on the worker pool; None when it is already processing."""
        if not self.has_template:
            raise TemplateMissing("Load a template before composing")
        with self._lock:
            job = self._begin(index)
            if job is None:
                return None
            future = self._executor.submit(self._run, *job)
            self._futures.add(future)
        future.add_done_callback(self._forget_future)
        return future

    def _forget_future(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_settings(self, index: int, partial: dict, auto_recompose: bool = False) -> LayoutSettings:
        """
        Merge `partial` into the record's settings.

        Raises:
            ValueError: unknown key, non-numeric value or broken invariant
                (the record keeps its previous settings)
        """
        with self._lock:
            record = self.record(index)
            record.settings = record.settings.merged(partial)
            if record.status == Status.OK:
                record.transition(Status.PENDING)
            settings = record.settings

        if auto_recompose:
            self._schedule(index)
        return settings

    def swap_photo(self, index: int, filename: str) -> None:
        """Point the record at another photo; its previous image is discarded."""
        with self._lock:
            record = self.record(index)
            if record.status == Status.PROCESSING:
                raise RecordBusy(f"{record.sku} is being composed", context={"index": index})
            record.filename = filename
            record.output = None
            record.transition(Status.PENDING)
        logging.info("Record %s now uses photo %s", record.sku, filename)

    def upload_photo(self, index: int, name: str, data: bytes) -> None:
        """
        Store a new photo (replacing a same-named one) and swap it in.

        Raises RecordBusy, leaving the store untouched, while the record
        is being composed.
        """
        with self._lock:
            record = self.record(index)
            if record.status == Status.PROCESSING:
                raise RecordBusy(f"{record.sku} is being composed", context={"index": index})
            self.assets.put(name, data)
            self.swap_photo(index, name)

    def set_approved(self, index: int, approved: bool) -> None:
        with self._lock:
            self.record(index).approved = bool(approved)

    # ------------------------------------------------------------------
    # Debounced auto-recompose
    # ------------------------------------------------------------------

    def _schedule(self, index: int) -> None:
        with self._lock:
            existing = self._timers.pop(index, None)
            if existing:
                existing.cancel()
            timer = threading.Timer(self._debounce, self._fire, args=(index,))
            timer.daemon = True
            self._timers[index] = timer
            timer.start()

    def _fire(self, index: int) -> None:
        with self._lock:
            timer = self._timers.get(index)
            if timer is not threading.current_thread():
                return
            del self._timers[index]
            if index >= len(self._records) or not self.has_template:
                return
            if self._records[index].status == Status.PROCESSING:
                self._schedule(index)
                return
            self.submit_compose(index)

    def _cancel_timers(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no timer is armed and no composition is in flight."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                timers = list(self._timers.values())
                futures = [f for f in self._futures if not f.done()]
            if not timers and not futures:
                return True

            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            for timer in timers:
                timer.join(remaining)
            wait(futures, timeout=remaining)

    def shutdown(self) -> None:
        self._cancel_timers()
        self._executor.shutdown(wait=True)
