"""Span source backed by a JSON or NDJSON file."""

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..exceptions import SpanSourceError
from ..schema import Span
from ..tools.spans import usable_spans
from .base import SpanQuery, matches_query

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JsonFileSpanSource:
    """Reads spans from a file on every query.

    The file holds either a JSON array of span objects or one span object
    per line (NDJSON). Entries that do not validate are skipped.
    """

    name = "json_file"

    def __init__(self, path: Path | str, clock: Callable[[], datetime] = _utcnow):
        self.path = Path(path)
        self._clock = clock

    def _read_records(self) -> list[Any]:
        try:
            text = self.path.read_text()
        except OSError as e:
            raise SpanSourceError(
                f"Failed to read spans from {self.path}: {e}", backend=self.name
            ) from e

        stripped = text.lstrip()
        if not stripped:
            return []
        if stripped.startswith("["):
            try:
                records = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise SpanSourceError(
                    f"Failed to parse spans JSON in {self.path}: {e}", backend=self.name
                ) from e
            return records if isinstance(records, list) else []

        records = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping unparseable line {line_no} in {self.path}: {e}")
        return records

    def query_spans(self, query: SpanQuery) -> list[Span]:
        spans = usable_spans(self._read_records())
        now = self._clock()
        result = [s for s in spans if matches_query(s, query, now)]
        logger.info(f"Loaded {len(result)} matching spans from {self.path}")
        return result
