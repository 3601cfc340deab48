"""Output port for OAuth2 token management."""
from __future__ import annotations

from typing import Optional, Protocol

from apifactory.domain.errors import ApiFactoryError
from apifactory.domain.value_objects.oauth2_credentials import OAuth2Config, OAuth2Token

# Token endpoint error codes meaning the grant itself is no longer usable
REVOKED_GRANT_ERRORS = frozenset({'invalid_grant', 'invalid_client', 'unauthorized_client'})


class OAuth2TokenProvider(Protocol):
  """Interface for exchanging grants with the identity provider.

  This port abstracts the OAuth2 token endpoint, allowing different
  implementations (requests, httpx, a fake in tests) while keeping the
  token lifecycle agnostic.
  """

  def exchange_code(self, config: OAuth2Config, code: str) -> OAuth2Token:
    """Exchange an authorization code for an access token.

    Args:
      config: OAuth2 configuration with client identity and token URL
      code: Authorization code returned by the consent step

    Returns:
      OAuth2Token with access token and, usually, a refresh token

    Raises:
      OAuth2Error: If the exchange fails
    """
    ...

  def refresh_token(
    self, config: OAuth2Config, current_token: OAuth2Token
  ) -> OAuth2Token:
    """Refresh an expiring token using its refresh token.

    Args:
      config: OAuth2 configuration with token URL
      current_token: Token containing the refresh_token

    Returns:
      New OAuth2Token with fresh access token

    Raises:
      OAuth2Error: If refresh fails or no refresh token available
    """
    ...


class OAuth2Error(ApiFactoryError):
  """Base exception for OAuth2-related errors."""

  stage = 'authenticate'

  def __init__(self, message: str, error_code: Optional[str] = None):
    super().__init__(message)
    self.error_code = error_code

  @property
  def grant_revoked(self) -> bool:
    return self.error_code in REVOKED_GRANT_ERRORS


class ReauthenticationRequired(OAuth2Error):
  """No usable refresh path: the interactive authorization must be redone."""
