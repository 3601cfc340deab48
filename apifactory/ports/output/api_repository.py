"""Output port for API interactions."""
from __future__ import annotations

from typing import Protocol

from apifactory.domain.value_objects.http_exchange import RawResponse, ResolvedRequest


class ApiRepository(Protocol):
  def send(self, request: ResolvedRequest) -> RawResponse:
    """Perform one HTTP exchange.

    Returns the response whatever its status; raises TransportError when no
    response was received.
    """
    ...

  def close(self) -> None:
    ...
