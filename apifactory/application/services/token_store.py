"""Process-wide credential holder with single-flight refresh.

State machine::

  UNINITIALIZED -> AUTHENTICATED -> EXPIRING -> REFRESHING -> AUTHENTICATED
                                                    |
                               (grant rejected) ----+--> UNINITIALIZED
  any state -- revoke() --> REVOKED (next request re-enters the authorization flow)

Refreshes and authorizations run on a dedicated single worker thread. Every
caller that needs a credential while one is in flight waits on the same
future, so the identity provider sees exactly one exchange. A caller that
gives up waiting does not cancel the exchange; the other waiters still get
its result.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import timedelta
from enum import Enum
from typing import Optional

from apifactory.application.services.authenticator import Authenticator
from apifactory.domain.value_objects.oauth2_credentials import REFRESH_MARGIN, OAuth2Token
from apifactory.ports.output.oauth2_provider import OAuth2Error, ReauthenticationRequired
from apifactory.ports.output.token_cache import TokenCache

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
  UNINITIALIZED = 'uninitialized'
  AUTHENTICATED = 'authenticated'
  EXPIRING = 'expiring'
  REFRESHING = 'refreshing'
  REVOKED = 'revoked'


class TokenStore:
  def __init__(
    self,
    authenticator: Authenticator,
    token_cache: Optional[TokenCache] = None,
    refresh_margin: timedelta = REFRESH_MARGIN,
    wait_timeout: Optional[float] = None,
  ):
    self._authenticator = authenticator
    self._token_cache = token_cache
    self._refresh_margin = refresh_margin
    self._wait_timeout = wait_timeout
    self._lock = threading.Lock()
    self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='token-refresh')
    self._inflight: Optional[Future] = None
    self._generation = 0
    self._revoked = False
    self._token: Optional[OAuth2Token] = token_cache.load() if token_cache else None
    if self._token is not None:
      logger.info('Loaded cached credential (expires at %s)', self._token.expires_at)

  @property
  def state(self) -> TokenState:
    with self._lock:
      if self._inflight is not None:
        return TokenState.REFRESHING
      if self._token is None:
        return TokenState.REVOKED if self._revoked else TokenState.UNINITIALIZED
      if self._token.is_expiring(self._refresh_margin):
        return TokenState.EXPIRING
      return TokenState.AUTHENTICATED

  @property
  def current(self) -> Optional[OAuth2Token]:
    """The stored credential, without refreshing it."""
    with self._lock:
      return self._token

  def get_credential(self) -> OAuth2Token:
    """Return a credential that is not about to expire.

    Blocks while a refresh is in flight; starts one when the stored token is
    missing or expiring.
    """
    with self._lock:
      token = self._token
      if self._inflight is None and token is not None and not token.is_expiring(self._refresh_margin):
        return token
      future = self._start_locked(token)
    return self._wait(future)

  def refresh(self, stale: Optional[OAuth2Token] = None) -> OAuth2Token:
    """Replace ``stale`` after the API rejected it.

    If the stored token already differs from ``stale`` another caller has
    refreshed in the meantime and that token is returned as is.
    """
    with self._lock:
      token = self._token
      if self._inflight is None and token is not None and stale is not None and token != stale:
        return token
      future = self._start_locked(token)
    return self._wait(future)

  def set_credential(self, token: OAuth2Token) -> None:
    with self._lock:
      self._token = token
      self._revoked = False
      self._generation += 1
    self._save(token)

  def revoke(self) -> None:
    """Discard the credential; the next request starts a new authorization."""
    with self._lock:
      self._token = None
      self._revoked = True
      self._generation += 1
    if self._token_cache is not None:
      self._token_cache.clear()
    logger.info('Credential revoked')

  def close(self) -> None:
    self._executor.shutdown(wait=False)

  def _start_locked(self, token: Optional[OAuth2Token]) -> Future:
    if self._inflight is None:
      self._inflight = self._executor.submit(self._acquire, token, self._generation)
    return self._inflight

  def _wait(self, future: Future) -> OAuth2Token:
    try:
      return future.result(timeout=self._wait_timeout)
    except FutureTimeoutError as exc:
      raise OAuth2Error(f'Timed out after {self._wait_timeout}s waiting for credential refresh') from exc

  def _acquire(self, token: Optional[OAuth2Token], generation: int) -> OAuth2Token:
    """Runs on the refresh worker only."""
    try:
      if token is not None and token.refresh_token:
        new_token = self._authenticator.refresh(token)
      else:
        new_token = self._authenticator.authorize()
    except ReauthenticationRequired:
      logger.warning('Credential can no longer be refreshed; interactive authorization required')
      with self._lock:
        if self._generation == generation:
          self._token = None
        self._inflight = None
      if self._token_cache is not None:
        self._token_cache.clear()
      raise
    except BaseException:
      with self._lock:
        self._inflight = None
      raise

    with self._lock:
      self._inflight = None
      superseded = self._generation != generation
      if not superseded:
        self._token = new_token
        self._revoked = False
      current = self._token

    if superseded:
      # revoked or replaced while the exchange was in flight
      if current is None:
        raise ReauthenticationRequired('Credential was revoked during refresh')
      return current

    self._save(new_token)
    logger.info('Credential refreshed (expires at %s)', new_token.expires_at)
    return new_token

  def _save(self, token: OAuth2Token) -> None:
    if self._token_cache is None:
      return
    try:
      self._token_cache.save(token)
    except OSError as exc:
      logger.warning('Could not persist credential: %s', exc)
