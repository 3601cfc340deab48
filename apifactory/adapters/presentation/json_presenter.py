"""JSON presenter implementation."""
from __future__ import annotations

import json
from typing import Any

from apifactory.domain.errors import ApiFactoryError
from apifactory.domain.value_objects.http_exchange import RawResponse
from apifactory.domain.value_objects.parsed_body import ParsedBody
from apifactory.ports.input.result_presenter import CallResult, ResultPresenter


class JsonPresenter(ResultPresenter):
  def present(self, result: CallResult) -> str:
    if isinstance(result, ParsedBody):
      payload: Any = result.value if not result.is_empty else {}
    elif isinstance(result, RawResponse):
      payload = {
        'status_code': result.status_code,
        'headers': result.headers,
        'body': result.body.decode('utf-8', errors='replace'),
      }
    else:
      payload = result
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)

  def present_error(self, error: Exception) -> str:
    payload = {'status': 'error', 'error': str(error), 'type': type(error).__name__}
    if isinstance(error, ApiFactoryError):
      payload['stage'] = error.stage
    status_code = getattr(error, 'status_code', None)
    if status_code is not None:
      payload['status_code'] = status_code
    return json.dumps(payload, ensure_ascii=False, indent=2)
