"""Output port for the request diagnostics side channel."""
from __future__ import annotations

from typing import Protocol

from apifactory.domain.value_objects.http_exchange import ResolvedRequest


class RequestRecorder(Protocol):
  def record(self, request: ResolvedRequest) -> None:
    """Remember ``request`` for offline inspection. Must not raise."""
    ...
