"""In-memory span source."""

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from ..schema import Span
from ..tools.spans import usable_spans
from .base import SpanQuery, matches_query

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySpanSource:
    """Serves spans held in process, filtering them per query."""

    name = "memory"

    def __init__(
        self,
        spans: Iterable[Any] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._spans: list[Span] = usable_spans(list(spans or []))
        self._lock = threading.Lock()
        self._clock = clock

    def add(self, *spans: Any) -> None:
        """Append spans; malformed ones are dropped."""
        valid = usable_spans(spans)
        with self._lock:
            self._spans.extend(valid)

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()

    def query_spans(self, query: SpanQuery) -> list[Span]:
        now = self._clock()
        with self._lock:
            snapshot = list(self._spans)
        result = [s for s in snapshot if matches_query(s, query, now)]
        logger.debug(f"In-memory source matched {len(result)}/{len(snapshot)} spans")
        return result
