"""Reference-Number values used for server-side tracing (never validated by the client)."""

from __future__ import annotations

import time

from core.config import CorrelationScope


def new_reference_number(prefix: str, transport_tag: str) -> str:
    # 100 ns wall-clock ticks keep consecutive calls distinguishable.
    return f"{prefix}-{transport_tag}-{time.time_ns() // 100}"


class ReferenceNumbers:
    """Mints Reference-Number values according to the configured scope."""

    def __init__(self, prefix: str, transport_tag: str, scope: CorrelationScope) -> None:
        self._prefix = prefix
        self._tag = transport_tag
        self.scope = scope
        self._fixed = new_reference_number(prefix, transport_tag)

    def next(self) -> str:
        if self.scope is CorrelationScope.PER_CLIENT:
            return self._fixed
        return new_reference_number(self._prefix, self._tag)
