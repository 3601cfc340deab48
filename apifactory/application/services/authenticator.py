"""Authorization-code and refresh-token flows against the identity provider."""
from __future__ import annotations

import logging
import secrets
from typing import Optional

from apifactory.domain.value_objects.oauth2_credentials import OAuth2Config, OAuth2Token
from apifactory.ports.output.consent_handler import ConsentHandler
from apifactory.ports.output.oauth2_provider import (
  OAuth2Error,
  OAuth2TokenProvider,
  ReauthenticationRequired,
)

logger = logging.getLogger(__name__)


class Authenticator:
  """Obtains new credentials and refreshes expiring ones.

  The consent handler is only used when no refresh token exists. Without one,
  a full authorization raises ReauthenticationRequired.
  """

  def __init__(
    self,
    config: OAuth2Config,
    provider: OAuth2TokenProvider,
    consent_handler: Optional[ConsentHandler] = None,
  ):
    self._config = config
    self._provider = provider
    self._consent_handler = consent_handler

  @property
  def config(self) -> OAuth2Config:
    return self._config

  def authorize(self) -> OAuth2Token:
    """Run the interactive authorization-code flow."""
    if self._consent_handler is None:
      raise ReauthenticationRequired(
        'No credential available and no consent handler configured; run the login flow first'
      )
    state = secrets.token_urlsafe(16)
    url = self._config.authorization_url(state)
    logger.info('Requesting user consent for scopes: %s', ' '.join(self._config.scopes) or '(none)')
    code = self._consent_handler.request_code(url, state)
    if not code:
      raise ReauthenticationRequired('Consent step returned no authorization code')
    return self._provider.exchange_code(self._config, code)

  def refresh(self, token: OAuth2Token) -> OAuth2Token:
    """Exchange the refresh token of ``token`` for a new credential.

    A missing or rejected refresh token becomes ReauthenticationRequired;
    other failures (network, 5xx) propagate as OAuth2Error.
    """
    if not token.refresh_token:
      raise ReauthenticationRequired('Credential has no refresh token')
    try:
      return self._provider.refresh_token(self._config, token)
    except ReauthenticationRequired:
      raise
    except OAuth2Error as exc:
      if exc.grant_revoked:
        raise ReauthenticationRequired(f'Refresh token rejected: {exc}', error_code=exc.error_code) from exc
      raise
