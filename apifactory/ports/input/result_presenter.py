"""Input port for rendering call results to a user-facing surface."""
from __future__ import annotations

from typing import Any, Protocol, Union

from apifactory.domain.value_objects.http_exchange import RawResponse
from apifactory.domain.value_objects.parsed_body import ParsedBody

# Generated functions return a ParsedBody, a RawResponse, or whatever the transform produced
CallResult = Union[ParsedBody, RawResponse, Any]


class ResultPresenter(Protocol):
  def present(self, result: CallResult) -> str:
    """Render a successful call result."""
    ...

  def present_error(self, error: Exception) -> str:
    """Render an error, including its pipeline stage when known."""
    ...
