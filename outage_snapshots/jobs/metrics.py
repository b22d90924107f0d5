"""Metrics tracking for render batches."""
import logging
import time
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class Metrics:
    """Track task outcomes for a batch."""

    def __init__(self, total: int):
        self.total = total
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] = self.counters.get(key, 0) + amount

    def record_success(self) -> None:
        self.increment("ok")
        self.increment("processed")

    def record_failure(self) -> None:
        self.increment("failed")
        self.increment("processed")

    @property
    def ok(self) -> int:
        return self.counters.get("ok", 0)

    @property
    def failed(self) -> int:
        return self.counters.get("failed", 0)

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {
            "total": self.total,
            "processed": self.counters.get("processed", 0),
            "ok": self.ok,
            "failed": self.failed,
            "elapsed_seconds": time.time() - self.start_time,
        }

    def report(self, theme: str, scale: float) -> None:
        """Log the final summary."""
        summary = self.get_summary()
        logger.info("=" * 60)
        logger.info(
            f"[SUMMARY] Rendered: {summary['ok']}/{summary['total']} succeeded, "
            f"{summary['failed']} failed. Theme={theme} Scale={scale:g}"
        )
        logger.info(f"Elapsed: {summary['elapsed_seconds']:.1f}s")
        logger.info("=" * 60)
