"""Requests-based API repository implementation."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from apifactory.domain.errors import TransportError
from apifactory.domain.value_objects.http_exchange import RawResponse, ResolvedRequest
from apifactory.ports.output.api_repository import ApiRepository

logger = logging.getLogger(__name__)


class RequestsApiRepository(ApiRepository):
  """Performs HTTP calls using a shared requests session.

  Sessions are safe to share for independent requests; headers are passed per
  request so no credential is ever stored on the session.
  """

  def __init__(self, timeout: float = 30, session: Optional[requests.Session] = None):
    self._timeout = timeout
    self._session = session or requests.Session()

  def send(self, request: ResolvedRequest) -> RawResponse:
    """Execute an HTTP request and return the response."""
    try:
      response = self._session.request(
        request.method.value,
        request.url,
        headers=request.headers(),
        data=request.body,
        timeout=self._timeout,
      )
    except requests.RequestException as e:
      raise TransportError(f'{request.method.value} {request.url} failed: {e}') from e

    logger.debug('%s %s -> %s', request.method.value, request.url, response.status_code)
    return RawResponse(
      status_code=response.status_code,
      headers=dict(response.headers),
      body=response.content or b'',
      url=response.url or request.url,
    )

  def close(self) -> None:
    self._session.close()
