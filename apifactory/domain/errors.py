"""Error taxonomy shared by every layer.

- ResolutionError: invocation arguments cannot be turned into a request (no I/O happened)
- AuthenticationFailed: the API rejected the credential even after one refresh
- TransientFailureExhausted: rate-limit/server/transport retries ran out
- HttpStatusError: non-retryable status, carries status code and raw body
- MalformedResponse: a 2xx body that is not valid JSON
- TransformError: the caller-supplied transform raised on well-formed data
"""
from __future__ import annotations

from typing import Optional


class ApiFactoryError(Exception):
  """Base class for every error raised by apifactory."""

  stage: str = 'unknown'


class InvalidEndpointConfig(ApiFactoryError, ValueError):
  """An endpoint configuration is structurally invalid."""

  stage = 'generate'


class ResolutionError(ApiFactoryError):
  """Invocation arguments could not be resolved into a request."""

  stage = 'resolve'


class MissingPathArgument(ResolutionError):
  def __init__(self, name: str, template: str):
    super().__init__(f"Path argument '{name}' has no value and no default for template {template!r}")
    self.name = name
    self.template = template


class UnknownArgument(ResolutionError):
  def __init__(self, kind: str, names: list):
    super().__init__(f"Unknown {kind} argument(s): {', '.join(sorted(names))}")
    self.kind = kind
    self.names = sorted(names)


class BodySerializationError(ResolutionError):
  """The request payload holds a value with no JSON representation."""


class TransportError(ApiFactoryError):
  """The HTTP exchange did not produce a response (DNS, TLS, timeout...)."""

  stage = 'send'


class AuthenticationFailed(ApiFactoryError):
  """The credential was rejected again after a refresh-and-retry cycle."""

  stage = 'authenticate'

  def __init__(self, message: str, status_code: int, body: bytes = b''):
    super().__init__(message)
    self.status_code = status_code
    self.body = body


class TransientFailureExhausted(ApiFactoryError):
  stage = 'send'

  def __init__(self, message: str, attempts: int, status_code: Optional[int] = None, body: bytes = b''):
    super().__init__(message)
    self.attempts = attempts
    self.status_code = status_code
    self.body = body


class HttpStatusError(ApiFactoryError):
  """A response status that is neither success nor retryable."""

  stage = 'send'

  def __init__(self, status_code: int, body: bytes = b'', url: Optional[str] = None):
    super().__init__(f'HTTP {status_code} from {url or "API"}: {_preview(body)}')
    self.status_code = status_code
    self.body = body
    self.url = url


class ClientRequestError(HttpStatusError):
  """Non-retryable 4xx response."""


class UnexpectedStatusError(HttpStatusError):
  """A status outside 2xx/4xx/5xx that the executor does not handle."""


class MalformedResponse(ApiFactoryError):
  stage = 'parse'

  def __init__(self, message: str, body: bytes = b''):
    super().__init__(message)
    self.body = body


class TransformError(ApiFactoryError):
  stage = 'transform'


def _preview(body: bytes, limit: int = 200) -> str:
  text = body.decode('utf-8', errors='replace') if body else ''
  return text if len(text) <= limit else text[:limit] + '...'
