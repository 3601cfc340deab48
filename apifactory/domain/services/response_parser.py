"""Turns raw response bodies into ParsedBody values and applies transforms."""
from __future__ import annotations

import json
from typing import Any, Callable, Optional

from apifactory.domain.errors import MalformedResponse, TransformError
from apifactory.domain.value_objects.parsed_body import ParsedBody


def parse_body(raw_body: Optional[bytes]) -> ParsedBody:
  if not raw_body or not raw_body.strip():
    return ParsedBody.empty()
  try:
    value = json.loads(raw_body.decode('utf-8'))
  except (UnicodeDecodeError, ValueError) as exc:
    raise MalformedResponse(f'Response body is not valid JSON: {exc}', body=raw_body) from exc
  return ParsedBody.of(value)


def parse_response(raw_body: Optional[bytes], transform: Optional[Callable[[ParsedBody], Any]] = None) -> Any:
  """Parse ``raw_body`` and hand it to ``transform`` when one is given.

  Errors raised by the transform are wrapped in TransformError, never
  replaced by a default value.
  """
  parsed = parse_body(raw_body)
  if transform is None:
    return parsed
  try:
    return transform(parsed)
  except Exception as exc:
    name = getattr(transform, '__name__', repr(transform))
    raise TransformError(f'Transform {name} failed on {parsed.kind.value} body: {exc!r}') from exc
