"""Simple dependency wiring helpers.

One TokenStore per process: every generated function goes through the
executor built here and therefore shares the same credential.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from apifactory.adapters.input.cli.click_consent_handler import ClickConsentHandler
from apifactory.adapters.output.api.requests_repository import RequestsApiRepository
from apifactory.adapters.output.debug.request_debug_recorder import RequestDebugRecorder
from apifactory.adapters.output.oauth2.requests_oauth2_provider import RequestsOAuth2Provider
from apifactory.adapters.output.token_cache.file_token_cache import FileTokenCache
from apifactory.application.services.authenticator import Authenticator
from apifactory.application.services.function_generator import FunctionGenerator
from apifactory.application.services.request_executor import RequestExecutor
from apifactory.application.services.token_store import TokenStore
from apifactory.common.config import Settings, get_settings
from apifactory.ports.output.consent_handler import ConsentHandler


def build_token_store(settings: Settings, consent_handler: Optional[ConsentHandler] = None) -> TokenStore:
  authenticator = Authenticator(
    config=settings.to_oauth2_config(),
    provider=RequestsOAuth2Provider(timeout=int(settings.http_timeout)),
    consent_handler=consent_handler,
  )
  token_cache = FileTokenCache(settings.token_cache) if settings.token_cache else None
  return TokenStore(authenticator, token_cache=token_cache)


def build_request_executor(
  settings: Settings, token_store: TokenStore, verbose: Optional[int] = None
) -> RequestExecutor:
  """``verbose`` from the command line overrides APIFACTORY_VERBOSE when given."""
  effective = verbose if verbose else settings.verbose
  return RequestExecutor(
    repository=RequestsApiRepository(timeout=settings.http_timeout),
    token_store=token_store,
    debug_recorder=RequestDebugRecorder(verbose=effective, path=settings.debug_file),
  )


@lru_cache(maxsize=1)
def create_token_store() -> TokenStore:
  return build_token_store(get_settings(), consent_handler=ClickConsentHandler())


@lru_cache(maxsize=None)
def create_function_generator(verbose: int = 0) -> FunctionGenerator:
  executor = build_request_executor(get_settings(), create_token_store(), verbose)
  return FunctionGenerator(executor)
