"""Application-level configuration utilities."""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from os import getenv
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from apifactory.domain.value_objects.oauth2_credentials import (
  DEFAULT_REDIRECT_URI,
  GOOGLE_AUTH_URL,
  GOOGLE_TOKEN_URL,
  OAuth2Config,
)

DEFAULT_TOKEN_CACHE = '.apifactory-oauth.json'
DEFAULT_DEBUG_FILE = 'request_debug.json'


@dataclass(frozen=True)
class Settings:
  """Immutable application settings loaded from environment variables."""

  client_id: Optional[str] = None
  client_secret: Optional[str] = None
  scopes_selected: Tuple[str, ...] = ()
  verbose: int = 1
  auth_url: str = GOOGLE_AUTH_URL
  token_url: str = GOOGLE_TOKEN_URL
  redirect_uri: str = DEFAULT_REDIRECT_URI
  token_cache: Optional[str] = DEFAULT_TOKEN_CACHE
  debug_file: str = DEFAULT_DEBUG_FILE
  http_timeout: float = 30.0

  def to_oauth2_config(self) -> OAuth2Config:
    if not self.client_id:
      raise ValueError('APIFACTORY_CLIENT_ID must be set in environment or .env file')
    return OAuth2Config(
      client_id=self.client_id,
      client_secret=self.client_secret,
      auth_url=self.auth_url,
      token_url=self.token_url,
      redirect_uri=self.redirect_uri,
      scopes=self.scopes_selected,
    )


def parse_scopes(value: Optional[str]) -> Tuple[str, ...]:
  if not value:
    return ()
  return tuple(scope for scope in re.split(r'[\s,]+', value) if scope)


def _int_env(name: str, default: int) -> int:
  value = getenv(name)
  if value is None or value == '':
    return default
  try:
    return int(value)
  except ValueError as exc:
    raise ValueError(f'{name} must be an integer, got {value!r}') from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings from environment variables once per process."""
  env_path = Path.cwd() / '.env'
  if env_path.exists():
    load_dotenv(env_path)
  else:
    load_dotenv()

  token_cache = getenv('APIFACTORY_TOKEN_CACHE', DEFAULT_TOKEN_CACHE)
  return Settings(
    client_id=getenv('APIFACTORY_CLIENT_ID'),
    client_secret=getenv('APIFACTORY_CLIENT_SECRET'),
    scopes_selected=parse_scopes(getenv('APIFACTORY_SCOPES')),
    verbose=_int_env('APIFACTORY_VERBOSE', 1),
    auth_url=getenv('APIFACTORY_AUTH_URL') or GOOGLE_AUTH_URL,
    token_url=getenv('APIFACTORY_TOKEN_URL') or GOOGLE_TOKEN_URL,
    redirect_uri=getenv('APIFACTORY_REDIRECT_URI') or DEFAULT_REDIRECT_URI,
    # an empty value disables the on-disk cache
    token_cache=token_cache or None,
    debug_file=getenv('APIFACTORY_DEBUG_FILE') or DEFAULT_DEBUG_FILE,
    http_timeout=float(getenv('APIFACTORY_HTTP_TIMEOUT') or 30.0),
  )
