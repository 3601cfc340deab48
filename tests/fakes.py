"""Fakes for the identity provider, the HTTP transport and the token cache."""
import json
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from apifactory.domain.value_objects.http_exchange import RawResponse
from apifactory.domain.value_objects.oauth2_credentials import OAuth2Token

def make_token(access_token='access-1', refresh_token='refresh-1', expires_in=3600, age=0):
  return OAuth2Token(
    access_token=access_token,
    refresh_token=refresh_token,
    expires_in=expires_in,
    scopes=('https://www.googleapis.com/auth/urlshortener',),
    obtained_at=datetime.now(timezone.utc) - timedelta(seconds=age),
  )

def response(status_code=200, body=None, headers=None):
  if body is None:
    raw = b''
  elif isinstance(body, bytes):
    raw = body
  else:
    raw = json.dumps(body).encode('utf-8')
  return RawResponse(status_code=status_code, headers=headers or {}, body=raw)

class FakeProvider:
  """Identity provider issuing access-2, access-3... on each exchange."""

  def __init__(
    self,
    release: Optional[threading.Event] = None,
    error: Optional[Exception] = None,
    expires_in: int = 3600,
  ):
    self.release = release
    self.error = error
    self.expires_in = expires_in
    self.refresh_calls = 0
    self.exchange_calls = 0
    self._lock = threading.Lock()
    self._counter = 1

  def _next(self, refresh_token):
    with self._lock:
      self._counter += 1
      return make_token(access_token=f'access-{self._counter}', refresh_token=refresh_token, expires_in=self.expires_in)

  def exchange_code(self, config, code):
    self.exchange_calls += 1
    if self.error:
      raise self.error
    return self._next('refresh-from-code')

  def refresh_token(self, config, current_token):
    with self._lock:
      self.refresh_calls += 1
    if self.release is not None:
      self.release.wait(timeout=5)
    if self.error:
      raise self.error
    return self._next(current_token.refresh_token)

class FakeConsent:
  def __init__(self, code='auth-code'):
    self.code = code
    self.urls: List[str] = []

  def request_code(self, authorization_url, state):
    self.urls.append(authorization_url)
    return self.code

class FakeRepository:
  """Replays scripted responses and records every request sent."""

  def __init__(self, responses=None):
    self.responses = list(responses or [])
    self.requests = []

  def send(self, request):
    self.requests.append(request)
    item = self.responses.pop(0)
    if isinstance(item, Exception):
      raise item
    return item

  def close(self):
    pass

class MemoryTokenCache:
  def __init__(self, token=None):
    self.token = token
    self.saved = []
    self.cleared = 0

  def load(self):
    return self.token

  def save(self, token):
    self.token = token
    self.saved.append(token)

  def clear(self):
    self.token = None
    self.cleared += 1


# Trimmed discovery document for the URL shortener API
URLSHORTENER = {
  'kind': 'discovery#restDescription',
  'name': 'urlshortener',
  'version': 'v1',
  'rootUrl': 'https://www.googleapis.com/',
  'servicePath': 'urlshortener/v1/',
  'resources': {
    'url': {
      'methods': {
        'get': {
          'id': 'urlshortener.url.get',
          'path': 'url',
          'httpMethod': 'GET',
          'description': 'Expands a short URL or gets creation time and analytics.',
          'parameters': {
            'projection': {'type': 'string', 'location': 'query', 'default': 'FULL'},
            'shortUrl': {'type': 'string', 'location': 'query', 'required': True},
          },
          'parameterOrder': ['shortUrl'],
        },
        'insert': {'id': 'urlshortener.url.insert', 'path': 'url', 'httpMethod': 'POST'},
      },
      'resources': {
        'history': {
          'methods': {
            'list': {
              'path': 'users/{userId}/history',
              'httpMethod': 'GET',
              'parameters': {'userId': {'type': 'string', 'location': 'path', 'required': True}},
            },
          },
        },
      },
    },
  },
}
