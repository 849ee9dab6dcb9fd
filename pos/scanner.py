"""Barcode scan -> product lookup.

The scanner sits in SCANNING until a new code arrives, then either halts in
MATCHED (until restart()) or shows an error in NOT_FOUND and schedules its
own return to SCANNING after ``retry_delay`` seconds. Repeating the previous
code is ignored so a camera held over one barcode triggers a single lookup.
"""
import heapq
import itertools
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, NamedTuple, Optional, Protocol, Sequence

from pos.domain import Product
from pos.functional import find_product_by_barcode
from pos.logging import get_logger
from pos.store import StoreError

log = get_logger("scanner")

HISTORY_SIZE = 10
NOT_FOUND_MESSAGE = "Product not found for barcode: {code}"
FETCH_ERROR_MESSAGE = "Error fetching product data. Retrying..."


class ScanState(str, Enum):
    SCANNING = "scanning"
    MATCHED = "matched"
    NOT_FOUND = "not_found"


class ScanRecord(NamedTuple):
    code: str
    product: Optional[Product]
    timestamp: datetime


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class _Deadline:
    def __init__(self, when: float, seq: int, callback: Callable[[], Any]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_Deadline") -> bool:
        return (self.when, self.seq) < (other.when, other.seq)


class DeadlineScheduler:
    """Scheduler for UIs without an event loop: due callbacks run on run_due().

    Streamlit reruns the page on each interaction; the page calls run_due()
    at the top of every run.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._queue: List[_Deadline] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _Deadline:
        deadline = _Deadline(self.clock() + delay, next(self._seq), callback)
        heapq.heappush(self._queue, deadline)
        return deadline

    def pending(self) -> int:
        return sum(1 for d in self._queue if not d.cancelled)

    def next_due_in(self) -> Optional[float]:
        """Seconds until the earliest live callback, or None when idle."""
        live = [d.when for d in self._queue if not d.cancelled]
        if not live:
            return None
        return max(0.0, min(live) - self.clock())

    def run_due(self) -> int:
        ran = 0
        now = self.clock()
        while self._queue and self._queue[0].when <= now:
            deadline = heapq.heappop(self._queue)
            if deadline.cancelled:
                continue
            deadline.callback()
            ran += 1
        return ran


class Scanner:
    def __init__(
        self,
        products: Callable[[], Sequence[Product]],
        scheduler: Scheduler,
        *,
        retry_delay: float = 2.0,
        on_match: Optional[Callable[[Product], Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._products = products
        self._scheduler = scheduler
        self.retry_delay = retry_delay
        self.on_match = on_match
        self._clock = clock

        self.state = ScanState.SCANNING
        self.product: Optional[Product] = None
        self.error = ""
        self.last_scanned = ""
        self.scan_count = 0
        self.history: List[ScanRecord] = []
        self._retry: Optional[TimerHandle] = None

    @property
    def is_scanning(self) -> bool:
        return self.state is ScanState.SCANNING

    def feed(self, code: Optional[str]) -> bool:
        """Handle one decoded string; returns True when a lookup ran."""
        if not code or not self.is_scanning:
            return False
        if code == self.last_scanned:
            return False

        self.last_scanned = code
        self.scan_count += 1

        try:
            found = find_product_by_barcode(self._products(), code)
        except StoreError as e:
            log.warning(f"Lookup for {code!r} failed: {e}")
            self._record(code, None)
            self._fail(FETCH_ERROR_MESSAGE)
            return True

        product = found.get_or_else(None)
        self._record(code, product)
        if product is None:
            log.info(f"No product for barcode {code!r}")
            self._fail(NOT_FOUND_MESSAGE.format(code=code))
            return True

        log.info(f"Barcode {code!r} matched {product.display_name!r}")
        self.state = ScanState.MATCHED
        self.product = product
        if self.on_match is not None:
            self.on_match(product)
        return True

    def restart(self) -> None:
        self._cancel_retry()
        self._reset()
        self.product = None

    def clear_history(self) -> None:
        self.history = []

    def _record(self, code: str, product: Optional[Product]) -> None:
        self.history = [ScanRecord(code, product, self._clock())] + self.history[: HISTORY_SIZE - 1]

    def _fail(self, message: str) -> None:
        self.state = ScanState.NOT_FOUND
        self.error = message
        self._cancel_retry()
        self._retry = self._scheduler.call_later(self.retry_delay, self._on_retry)

    def _on_retry(self) -> None:
        self._retry = None
        if self.state is ScanState.NOT_FOUND:
            self._reset()

    def _reset(self) -> None:
        self.state = ScanState.SCANNING
        self.error = ""
        self.last_scanned = ""

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
