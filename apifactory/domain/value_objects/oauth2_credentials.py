"""Value objects for OAuth2 authentication."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

GOOGLE_AUTH_URL = 'https://accounts.google.com/o/oauth2/v2/auth'
GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'
DEFAULT_REDIRECT_URI = 'http://localhost:1410/'

# Tokens closer than this to their expiry are refreshed before use
REFRESH_MARGIN = timedelta(seconds=60)


class OAuth2GrantType(str, Enum):
  """Supported OAuth2 grant types."""
  AUTHORIZATION_CODE = 'authorization_code'
  REFRESH_TOKEN = 'refresh_token'


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OAuth2Config:
  """Client identity and identity-provider endpoints for the code flow.

  Built once from settings and handed to the Authenticator explicitly.
  """
  client_id: str
  client_secret: Optional[str] = None
  auth_url: str = GOOGLE_AUTH_URL
  token_url: str = GOOGLE_TOKEN_URL
  redirect_uri: str = DEFAULT_REDIRECT_URI
  scopes: Tuple[str, ...] = ()
  extra_params: Dict[str, str] = field(default_factory=dict)

  def __post_init__(self) -> None:
    if not self.client_id:
      raise ValueError('client_id is required for OAuth2')
    if not self.token_url:
      raise ValueError('token_url is required for OAuth2')
    if not self.auth_url:
      raise ValueError('auth_url is required for OAuth2')
    object.__setattr__(self, 'scopes', tuple(self.scopes))

  def authorization_url(self, state: str) -> str:
    """Build the consent URL the user visits to grant access."""
    params: Dict[str, str] = {
      'client_id': self.client_id,
      'redirect_uri': self.redirect_uri,
      'response_type': 'code',
      'access_type': 'offline',
      'state': state,
    }
    if self.scopes:
      params['scope'] = ' '.join(self.scopes)
    params.update(self.extra_params)
    return f'{self.auth_url}?{urlencode(params)}'

  def to_code_exchange_data(self, code: str) -> Dict[str, str]:
    """Build the token request payload for an authorization code."""
    data: Dict[str, str] = {
      'grant_type': OAuth2GrantType.AUTHORIZATION_CODE.value,
      'code': code,
      'redirect_uri': self.redirect_uri,
      'client_id': self.client_id,
    }
    if self.client_secret:
      data['client_secret'] = self.client_secret
    return data

  def to_refresh_data(self, refresh_token: str) -> Dict[str, str]:
    data: Dict[str, str] = {
      'grant_type': OAuth2GrantType.REFRESH_TOKEN.value,
      'refresh_token': refresh_token,
      'client_id': self.client_id,
    }
    if self.client_secret:
      data['client_secret'] = self.client_secret
    return data


@dataclass(frozen=True)
class OAuth2Token:
  """An access token with its expiry and refresh metadata.

  Frozen: a refresh produces a new instance, the store swaps it in whole.
  """
  access_token: str
  token_type: str = 'Bearer'
  expires_in: Optional[int] = None
  refresh_token: Optional[str] = None
  scopes: Tuple[str, ...] = ()
  obtained_at: datetime = field(default_factory=_utcnow)

  def __post_init__(self) -> None:
    if not self.access_token:
      raise ValueError('access_token is required')
    object.__setattr__(self, 'scopes', tuple(self.scopes))

  @property
  def expires_at(self) -> Optional[datetime]:
    """Return the expiration datetime if known."""
    if self.expires_in is None:
      return None
    return self.obtained_at + timedelta(seconds=self.expires_in)

  def is_expiring(self, margin: timedelta = REFRESH_MARGIN, now: Optional[datetime] = None) -> bool:
    """True when less than ``margin`` of lifetime remains.

    The margin never exceeds half the token lifetime, so a token issued for a
    minute or less is still usable right after it was obtained.
    """
    expiry = self.expires_at
    if expiry is None:
      return False
    margin = min(margin, timedelta(seconds=self.expires_in) / 2)
    return (now or _utcnow()) >= expiry - margin

  @property
  def is_expired(self) -> bool:
    return self.is_expiring(margin=timedelta(0))

  def as_header(self) -> Dict[str, str]:
    """Return the Authorization header for this token."""
    # Providers answer 'bearer' in lower case; APIs expect the canonical form
    token_type = 'Bearer' if self.token_type.lower() == 'bearer' else self.token_type
    return {'Authorization': f'{token_type} {self.access_token}'}

  def with_refresh_token(self, refresh_token: Optional[str]) -> 'OAuth2Token':
    return replace(self, refresh_token=refresh_token)

  def to_dict(self) -> Dict[str, Any]:
    return {
      'access_token': self.access_token,
      'token_type': self.token_type,
      'expires_in': self.expires_in,
      'refresh_token': self.refresh_token,
      'scopes': list(self.scopes),
      'obtained_at': self.obtained_at.isoformat(),
    }

  @staticmethod
  def from_dict(data: Dict[str, Any]) -> 'OAuth2Token':
    obtained_at = datetime.fromisoformat(data['obtained_at'])
    if obtained_at.tzinfo is None:
      obtained_at = obtained_at.replace(tzinfo=timezone.utc)
    return OAuth2Token(
      access_token=data['access_token'],
      token_type=data.get('token_type', 'Bearer'),
      expires_in=data.get('expires_in'),
      refresh_token=data.get('refresh_token'),
      scopes=tuple(data.get('scopes') or ()),
      obtained_at=obtained_at,
    )

  @staticmethod
  def from_response(response_data: Dict[str, Any]) -> 'OAuth2Token':
    """Create an OAuth2Token from a token endpoint response."""
    expires_in = response_data.get('expires_in')
    scope = response_data.get('scope') or ''
    return OAuth2Token(
      access_token=response_data['access_token'],
      token_type=response_data.get('token_type', 'Bearer'),
      expires_in=int(expires_in) if expires_in is not None else None,
      refresh_token=response_data.get('refresh_token'),
      scopes=tuple(scope.split()),
    )
