"""Tests for the credential lifecycle and single-flight refresh."""
import threading
import time

import pytest
from fakes import FakeConsent, FakeProvider, MemoryTokenCache, make_token

from apifactory.application.services.authenticator import Authenticator
from apifactory.application.services.token_store import TokenState, TokenStore
from apifactory.ports.output.oauth2_provider import OAuth2Error, ReauthenticationRequired


def wait_until(predicate, timeout=5):
  deadline = time.monotonic() + timeout
  while not predicate() and time.monotonic() < deadline:
    time.sleep(0.01)


@pytest.fixture
def build_store(oauth2_config):
  stores = []

  def build(provider=None, consent=None, cache=None, token=None, wait_timeout=None):
    store = TokenStore(
      Authenticator(oauth2_config, provider or FakeProvider(), consent),
      token_cache=cache,
      wait_timeout=wait_timeout,
    )
    if token is not None:
      store.set_credential(token)
    stores.append(store)
    return store

  yield build
  for store in stores:
    store.close()


class TestStates:
  def test_uninitialized_without_credential(self, build_store):
    assert build_store().state == TokenState.UNINITIALIZED

  def test_authenticated_with_fresh_token(self, build_store):
    assert build_store(token=make_token()).state == TokenState.AUTHENTICATED

  def test_expiring_within_margin(self, build_store):
    store = build_store(token=make_token(expires_in=3600, age=3570))
    assert store.state == TokenState.EXPIRING

  def test_revoked_after_logout(self, build_store):
    cache = MemoryTokenCache()
    store = build_store(cache=cache, token=make_token())
    store.revoke()
    assert store.state == TokenState.REVOKED
    assert store.current is None
    assert cache.cleared == 1


class TestGetCredential:
  def test_fresh_token_is_returned_without_exchange(self, build_store):
    provider = FakeProvider()
    token = make_token()
    store = build_store(provider=provider, token=token)
    assert store.get_credential() is token
    assert provider.refresh_calls == 0

  def test_expiring_token_is_refreshed(self, build_store):
    provider = FakeProvider()
    store = build_store(provider=provider, token=make_token(age=3590))
    token = store.get_credential()
    assert token.access_token == 'access-2'
    assert token.refresh_token == 'refresh-1'
    assert provider.refresh_calls == 1
    assert store.state == TokenState.AUTHENTICATED

  def test_uninitialized_runs_authorization_flow(self, build_store):
    provider = FakeProvider()
    consent = FakeConsent()
    store = build_store(provider=provider, consent=consent)
    token = store.get_credential()
    assert provider.exchange_calls == 1
    assert token.refresh_token == 'refresh-from-code'
    assert 'response_type=code' in consent.urls[0]
    assert 'access_type=offline' in consent.urls[0]

  def test_uninitialized_without_consent_handler(self, build_store):
    with pytest.raises(ReauthenticationRequired):
      build_store().get_credential()

  def test_revoked_store_reenters_authorization(self, build_store):
    provider = FakeProvider()
    store = build_store(provider=provider, consent=FakeConsent(), token=make_token())
    store.revoke()
    store.get_credential()
    assert provider.exchange_calls == 1
    assert provider.refresh_calls == 0

  def test_cached_credential_is_loaded_and_saved(self, build_store):
    cache = MemoryTokenCache(token=make_token(age=3590))
    store = build_store(cache=cache)
    assert store.state == TokenState.EXPIRING
    token = store.get_credential()
    assert cache.saved[-1] == token


class TestSingleFlight:
  def test_concurrent_callers_share_one_refresh(self, build_store):
    release = threading.Event()
    provider = FakeProvider(release=release)
    store = build_store(provider=provider, token=make_token(age=3590))

    results = []
    errors = []

    def worker():
      try:
        results.append(store.get_credential())
      except Exception as exc:  # noqa: BLE001
        errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
      thread.start()
    deadline = time.monotonic() + 5
    while provider.refresh_calls == 0 and time.monotonic() < deadline:
      time.sleep(0.01)
    assert store.state == TokenState.REFRESHING
    release.set()
    for thread in threads:
      thread.join(timeout=5)

    assert errors == []
    assert provider.refresh_calls == 1
    assert len(results) == 8
    assert len({token.access_token for token in results}) == 1

  def test_forced_refresh_after_someone_else_refreshed(self, build_store):
    provider = FakeProvider()
    stale = make_token()
    store = build_store(provider=provider, token=stale)
    first = store.refresh(stale=stale)
    second = store.refresh(stale=stale)
    assert first is second
    assert provider.refresh_calls == 1

  def test_waiter_timeout_does_not_cancel_refresh(self, build_store):
    release = threading.Event()
    provider = FakeProvider(release=release)
    store = build_store(provider=provider, token=make_token(age=3590), wait_timeout=0.05)
    with pytest.raises(OAuth2Error):
      store.get_credential()
    release.set()
    deadline = time.monotonic() + 5
    while store.state == TokenState.REFRESHING and time.monotonic() < deadline:
      time.sleep(0.01)
    assert store.current.access_token == 'access-2'
    assert provider.refresh_calls == 1


class TestRefreshFailure:
  def test_rejected_refresh_token_requires_reauthentication(self, build_store):
    cache = MemoryTokenCache()
    provider = FakeProvider(error=OAuth2Error('Token refresh failed: revoked', error_code='invalid_grant'))
    store = build_store(provider=provider, cache=cache, token=make_token(age=3590))
    with pytest.raises(ReauthenticationRequired):
      store.get_credential()
    assert store.state == TokenState.UNINITIALIZED
    assert cache.token is None

  def test_network_failure_keeps_the_credential(self, build_store):
    provider = FakeProvider(error=OAuth2Error('Network error during token refresh'))
    token = make_token(age=3590)
    store = build_store(provider=provider, token=token)
    with pytest.raises(OAuth2Error) as exc_info:
      store.get_credential()
    assert not isinstance(exc_info.value, ReauthenticationRequired)
    assert store.current is token

  def test_token_without_refresh_token_reauthorizes(self, build_store):
    provider = FakeProvider()
    store = build_store(provider=provider, consent=FakeConsent(), token=make_token(refresh_token=None, age=3590))
    token = store.get_credential()
    assert provider.exchange_calls == 1
    assert token.refresh_token == 'refresh-from-code'


class TestShortLivedTokens:
  def test_margin_is_capped_at_half_the_lifetime(self):
    assert not make_token(expires_in=45).is_expiring()
    assert make_token(expires_in=45, age=25).is_expiring()
    assert not make_token(expires_in=3600, age=3530).is_expiring()
    assert make_token(expires_in=3600, age=3550).is_expiring()

  def test_fresh_short_token_is_reused(self, build_store):
    provider = FakeProvider(expires_in=45)
    token = make_token(expires_in=45)
    store = build_store(provider=provider, token=token)
    assert [store.get_credential() for _ in range(5)] == [token] * 5
    assert provider.refresh_calls == 0

  def test_short_token_refreshes_once(self, build_store):
    provider = FakeProvider(expires_in=45)
    store = build_store(provider=provider, token=make_token(expires_in=45, age=30))
    tokens = [store.get_credential() for _ in range(5)]
    assert provider.refresh_calls == 1
    assert {token.access_token for token in tokens} == {'access-2'}


class TestChangesDuringRefresh:
  def run_in_background(self, store):
    outcome = {}

    def worker():
      try:
        outcome['token'] = store.get_credential()
      except Exception as exc:  # noqa: BLE001
        outcome['error'] = exc

    thread = threading.Thread(target=worker)
    thread.start()
    return thread, outcome

  def test_revoke_wins_over_inflight_refresh(self, build_store):
    release = threading.Event()
    provider = FakeProvider(release=release)
    cache = MemoryTokenCache()
    store = build_store(provider=provider, cache=cache, token=make_token(age=3590))
    thread, outcome = self.run_in_background(store)
    wait_until(lambda: provider.refresh_calls == 1)

    store.revoke()
    release.set()
    thread.join(timeout=5)

    assert isinstance(outcome.get('error'), ReauthenticationRequired)
    assert store.state == TokenState.REVOKED
    assert store.current is None
    assert cache.token is None

  def test_set_credential_wins_over_inflight_refresh(self, build_store):
    release = threading.Event()
    provider = FakeProvider(release=release)
    store = build_store(provider=provider, token=make_token(age=3590))
    thread, outcome = self.run_in_background(store)
    wait_until(lambda: provider.refresh_calls == 1)

    replacement = make_token(access_token='access-manual')
    store.set_credential(replacement)
    release.set()
    thread.join(timeout=5)

    assert outcome.get('token') is replacement
    assert store.current is replacement
    assert store.state == TokenState.AUTHENTICATED

  def test_every_waiter_sees_rejected_refresh(self, build_store):
    release = threading.Event()
    provider = FakeProvider(
      release=release,
      error=OAuth2Error('Token refresh failed: revoked', error_code='invalid_grant'),
    )
    store = build_store(provider=provider, token=make_token(age=3590))
    errors = []

    def worker():
      try:
        store.get_credential()
      except Exception as exc:  # noqa: BLE001
        errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
      thread.start()
    wait_until(lambda: provider.refresh_calls == 1)
    time.sleep(0.05)
    release.set()
    for thread in threads:
      thread.join(timeout=5)

    assert len(errors) == 5
    assert all(isinstance(error, ReauthenticationRequired) for error in errors)
    assert provider.refresh_calls == 1
    assert store.current is None
