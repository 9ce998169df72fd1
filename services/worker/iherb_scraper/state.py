"""
Run-scoped state: dedup keys, saved-record budget and pagination bookkeeping.
"""
import math
import threading
from typing import Optional


class ListingProgress:
    """Pagination bookkeeping of one listing sequence."""

    def __init__(self):
        self.enqueued = set()
        self.highest_page = 1


class RunState:
    """
    State shared by every page handler of one crawl run.

    All accessors take the same lock, so check-and-insert on the seen set and
    next-page registration stay race-free when handlers run concurrently.
    """

    def __init__(self, results_wanted: Optional[float] = None, dedupe: bool = True):
        self.results_wanted = results_wanted
        self.dedupe = dedupe
        self._seen = set()
        self._saved = 0
        self._listings = {}
        self._lock = threading.Lock()

    @property
    def saved_count(self) -> int:
        with self._lock:
            return self._saved

    def should_skip(self, key) -> bool:
        """True when dedup is on and the key was already kept. Does not insert."""
        if not self.dedupe or key is None:
            return False
        with self._lock:
            return key in self._seen

    def claim(self, key) -> bool:
        """
        Atomically mark a key as kept. Returns False if another handler
        already claimed it. Always True when dedup is off.
        """
        if not self.dedupe or key is None:
            return True
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def record_saved(self) -> int:
        with self._lock:
            self._saved += 1
            return self._saved

    def should_stop(self) -> bool:
        """True once the saved count reaches the target. No target means never."""
        target = self.results_wanted
        if target is None:
            return False
        try:
            if not math.isfinite(target):
                return False
        except TypeError:
            return False
        with self._lock:
            return self._saved >= target

    def register_next_page(self, listing_key: str, url: str, page: int) -> bool:
        """Record an enqueued next-page URL; False when already recorded."""
        with self._lock:
            progress = self._listings.setdefault(listing_key, ListingProgress())
            if url in progress.enqueued:
                return False
            progress.enqueued.add(url)
            progress.highest_page = max(progress.highest_page, page)
            return True

    def is_enqueued(self, listing_key: str, url: str) -> bool:
        with self._lock:
            progress = self._listings.get(listing_key)
            return progress is not None and url in progress.enqueued

    def highest_page(self, listing_key: str) -> int:
        with self._lock:
            progress = self._listings.get(listing_key)
            return progress.highest_page if progress else 1

    def progress_text(self) -> str:
        """Saved count as n/target (just n without a target) for log lines."""
        saved = self.saved_count
        target = self.results_wanted
        if target is None or not math.isfinite(target):
            return str(saved)
        return f'{saved}/{int(target)}'
