# ============================================================
# tracing.py — Request IDs & Stage Timings
# ============================================================
# Every HTTP response carries an x-request-id (echoed from the
# caller or generated) and a Server-Timing header listing the
# stages measured while handling it.
# ============================================================

import json
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

REQUEST_ID_HEADER = "x-request-id"


def generate_request_id() -> str:
    """Short hex id for correlating logs, e.g. "a1b2c3d4"."""
    return uuid.uuid4().hex[:8]


def get_or_create_request_id(headers) -> str:
    return headers.get(REQUEST_ID_HEADER) or generate_request_id()


class RequestTracer:
    """Collects per-stage durations and prints one JSON line per event."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.session_id: str | None = None
        self.timings: dict[str, int] = {}
        self._start = time.perf_counter()

    @contextmanager
    def stage(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name] = int(round((time.perf_counter() - start) * 1000))

    def total_ms(self) -> int:
        return int(round((time.perf_counter() - self._start) * 1000))

    def log(self, event: str, **data) -> None:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "requestId": self.request_id,
            "event": event,
            **data,
        }
        if self.session_id:
            entry["sessionId"] = self.session_id
        print(f"[TRACE] {json.dumps(entry, default=str)}")

    def server_timing(self) -> str:
        """Server-Timing header value: "pipeline;dur=812, total;dur=815"."""
        parts = [f"{name};dur={ms}" for name, ms in self.timings.items()]
        parts.append(f"total;dur={self.total_ms()}")
        return ", ".join(parts)
