"""Executes one generated-function call: build, authenticate, send, retry, parse."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional

from tenacity import (
  RetryCallState,
  RetryError,
  Retrying,
  retry_if_exception_type,
  stop_after_attempt,
  wait_exponential,
  wait_random,
)
from tenacity.wait import wait_base

from apifactory.application.commands.api_call_command import ApiCallCommand
from apifactory.application.services.token_store import TokenStore
from apifactory.domain.entities.api_endpoint import EndpointConfig
from apifactory.domain.errors import (
  AuthenticationFailed,
  ClientRequestError,
  TransientFailureExhausted,
  TransportError,
  UnexpectedStatusError,
)
from apifactory.domain.services.response_parser import parse_response
from apifactory.domain.services.url_templater import resolve_url, serialize_body
from apifactory.domain.value_objects.http_exchange import RawResponse, ResolvedRequest
from apifactory.ports.output.api_repository import ApiRepository
from apifactory.ports.output.request_recorder import RequestRecorder

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429

# 403 bodies that mean "bad token" rather than "not allowed"
_TOKEN_ERROR_STATUSES = frozenset({'UNAUTHENTICATED'})
_TOKEN_ERROR_REASONS = frozenset({'authError', 'invalidCredentials', 'expired', 'invalid_token'})


class _TransientFailure(Exception):
  """One retryable attempt: a 429/5xx response or a transport error."""

  def __init__(
    self,
    reason: str,
    response: Optional[RawResponse] = None,
    error: Optional[TransportError] = None,
    retry_after: Optional[float] = None,
  ):
    super().__init__(reason)
    self.response = response
    self.error = error
    self.retry_after = retry_after


class wait_retry_after(wait_base):
  """Waits at least as long as the server's Retry-After hint, up to ``max_delay``."""

  def __init__(self, fallback: wait_base, max_delay: float):
    self.fallback = fallback
    self.max_delay = max_delay

  def __call__(self, retry_state: RetryCallState) -> float:
    delay = self.fallback(retry_state)
    failure = retry_state.outcome.exception() if retry_state.outcome else None
    hint = getattr(failure, 'retry_after', None)
    if hint is not None:
      delay = max(delay, min(self.max_delay, hint))
    return delay


@dataclass(frozen=True)
class RetryPolicy:
  """Exponential backoff for 429, 5xx and transport failures.

  The n-th wait is ``base_delay * factor ** (n - 1)`` capped at ``max_delay``,
  plus up to ``jitter`` random seconds.
  """
  max_attempts: int = 5
  base_delay: float = 1.0
  factor: float = 2.0
  max_delay: float = 32.0
  jitter: float = 1.0

  def __post_init__(self) -> None:
    if self.max_attempts < 1:
      raise ValueError('max_attempts must be at least 1')
    if self.base_delay < 0 or self.factor < 1 or self.jitter < 0:
      raise ValueError('base_delay and jitter must be >= 0 and factor >= 1')

  def wait_strategy(self) -> wait_base:
    backoff = wait_exponential(multiplier=self.base_delay, exp_base=self.factor, max=self.max_delay)
    return wait_retry_after(backoff + wait_random(0, self.jitter), self.max_delay)

  def retrying(self, sleep: Callable[[float], None], before_sleep: Callable[[RetryCallState], None]) -> Retrying:
    return Retrying(
      stop=stop_after_attempt(self.max_attempts),
      wait=self.wait_strategy(),
      retry=retry_if_exception_type(_TransientFailure),
      sleep=sleep,
      before_sleep=before_sleep,
    )


def parse_retry_after(value: Optional[str]) -> Optional[float]:
  """Seconds from a Retry-After header, either delta-seconds or an HTTP date."""
  if not value:
    return None
  value = value.strip()
  if value.isdigit():
    return float(value)
  try:
    moment = parsedate_to_datetime(value)
  except (TypeError, ValueError):
    return None
  if moment.tzinfo is None:
    moment = moment.replace(tzinfo=timezone.utc)
  return max(0.0, (moment - datetime.now(timezone.utc)).total_seconds())


def is_token_rejection(response: RawResponse) -> bool:
  """401 always; 403 only when the response blames the token."""
  if response.status_code == HTTP_UNAUTHORIZED:
    return True
  if response.status_code != HTTP_FORBIDDEN:
    return False
  if 'invalid_token' in (response.header('WWW-Authenticate') or ''):
    return True
  try:
    data = response.json()
  except ValueError:
    return False
  error = data.get('error') if isinstance(data, dict) else None
  if isinstance(error, str):
    return error in _TOKEN_ERROR_REASONS
  if not isinstance(error, dict):
    return False
  if error.get('status') in _TOKEN_ERROR_STATUSES:
    return True
  reasons = {item.get('reason') for item in error.get('errors') or [] if isinstance(item, dict)}
  return bool(reasons & _TOKEN_ERROR_REASONS)


def is_transient(status_code: int) -> bool:
  return status_code == HTTP_TOO_MANY_REQUESTS or 500 <= status_code < 600


class RequestExecutor:
  """Runs the request pipeline for generated functions.

  Authentication failures are retried exactly once with a refreshed
  credential. Rate limits, server errors and transport errors follow the
  retry policy, separately for the original and the re-authenticated send.
  Everything else is raised to the caller.
  """

  def __init__(
    self,
    repository: ApiRepository,
    token_store: TokenStore,
    retry_policy: Optional[RetryPolicy] = None,
    debug_recorder: Optional[RequestRecorder] = None,
    sleep: Callable[[float], None] = time.sleep,
  ):
    self._repository = repository
    self._token_store = token_store
    self._retry_policy = retry_policy or RetryPolicy()
    self._debug_recorder = debug_recorder
    self._sleep = sleep

  def build_request(self, config: EndpointConfig, command: ApiCallCommand) -> ResolvedRequest:
    """Resolve URL and body; raises ResolutionError before any I/O."""
    command.validate_against(config)
    resolved = resolve_url(
      config.base_uri,
      list(config.path_args),
      config.path_args,
      command.path_args,
      list(config.pars_args),
      config.pars_args,
      command.pars_args,
    )
    body = serialize_body(command.body) if command.body is not None else None
    return ResolvedRequest(method=config.method, url=resolved.url, body=body)

  def execute(self, config: EndpointConfig, command: ApiCallCommand) -> Any:
    request = self.build_request(config, command)
    if self._debug_recorder is not None:
      self._debug_recorder.record(request)
    else:
      logger.debug('Request %s %s', request.method.value, request.url)

    credential = self._token_store.get_credential()
    response = self._send(config, request.with_credential(credential))

    if is_token_rejection(response):
      logger.info('%s: HTTP %s, refreshing credential and retrying once', config.identifier(), response.status_code)
      credential = self._token_store.refresh(stale=credential)
      response = self._send(config, request.with_credential(credential))
      if is_token_rejection(response):
        raise AuthenticationFailed(
          f'{config.identifier()}: credential rejected again after refresh (HTTP {response.status_code})',
          status_code=response.status_code,
          body=response.body,
        )

    if response.ok:
      if command.raw_response:
        return response
      return parse_response(response.body, config.transform)

    if 400 <= response.status_code < 500:
      raise ClientRequestError(response.status_code, response.body, url=request.url)
    raise UnexpectedStatusError(response.status_code, response.body, url=request.url)

  def _send(self, config: EndpointConfig, request: ResolvedRequest) -> RawResponse:
    """Send until the response is not transient or the attempts run out."""

    def log_retry(retry_state: RetryCallState) -> None:
      logger.warning('%s: %s, retrying in %.1fs (attempt %d/%d)',
                     config.identifier(), retry_state.outcome.exception(), retry_state.next_action.sleep,
                     retry_state.attempt_number + 1, self._retry_policy.max_attempts)

    try:
      for attempt in self._retry_policy.retrying(self._sleep, log_retry):
        with attempt:
          response = self._attempt(request)
    except RetryError as exc:
      failure = exc.last_attempt.exception()
      exhausted = TransientFailureExhausted(
        f'{config.identifier()}: giving up after {exc.last_attempt.attempt_number} attempts ({failure})',
        attempts=exc.last_attempt.attempt_number,
        status_code=failure.response.status_code if failure.response is not None else None,
        body=failure.response.body if failure.response is not None else b'',
      )
      raise exhausted from (failure.error or failure)
    return response

  def _attempt(self, request: ResolvedRequest) -> RawResponse:
    try:
      response = self._repository.send(request)
    except TransportError as exc:
      raise _TransientFailure(str(exc), error=exc) from exc
    if is_transient(response.status_code):
      raise _TransientFailure(
        f'HTTP {response.status_code}',
        response=response,
        retry_after=parse_retry_after(response.header('Retry-After')),
      )
    return response
