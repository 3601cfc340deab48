"""Value objects for a single HTTP exchange."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from apifactory.domain.entities.api_endpoint import HttpMethod
from apifactory.domain.value_objects.oauth2_credentials import OAuth2Token


@dataclass(frozen=True)
class ResolvedRequest:
  """A fully substituted request, ready to send."""

  method: HttpMethod
  url: str
  body: Optional[bytes] = None
  credential: Optional[OAuth2Token] = None

  def headers(self) -> Dict[str, str]:
    headers = {
      'Accept': 'application/json',
      'Accept-Encoding': 'gzip, deflate',
    }
    if self.body is not None:
      headers['Content-Type'] = 'application/json'
    if self.credential is not None:
      headers.update(self.credential.as_header())
    return headers

  def with_credential(self, credential: OAuth2Token) -> 'ResolvedRequest':
    """Same URL and body, new Authorization header."""
    return ResolvedRequest(method=self.method, url=self.url, body=self.body, credential=credential)


@dataclass(frozen=True)
class RawResponse:
  status_code: int
  headers: Dict[str, str] = field(default_factory=dict)
  body: bytes = b''
  url: Optional[str] = None

  @property
  def ok(self) -> bool:
    return 200 <= self.status_code < 300

  def header(self, name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in self.headers.items():
      if key.lower() == lowered:
        return value
    return None

  def json(self) -> Any:
    """Decode the body; raises ValueError when it is not JSON."""
    return json.loads(self.body.decode('utf-8'))
