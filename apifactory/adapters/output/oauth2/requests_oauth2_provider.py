"""Requests-based OAuth2 token provider implementation."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from apifactory.domain.value_objects.oauth2_credentials import OAuth2Config, OAuth2Token
from apifactory.ports.output.oauth2_provider import OAuth2Error, OAuth2TokenProvider

logger = logging.getLogger(__name__)


class RequestsOAuth2Provider(OAuth2TokenProvider):
  """OAuth2 token provider using the requests library."""

  def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
    self._timeout = timeout
    self._session = session or requests.Session()

  def exchange_code(self, config: OAuth2Config, code: str) -> OAuth2Token:
    """Exchange an authorization code for an access token."""
    logger.info('Exchanging authorization code at %s', config.token_url)
    token_data = self._post_token_request(config, config.to_code_exchange_data(code), 'Token request')
    # Providers may omit scope when the requested set was granted unchanged
    if 'scope' not in token_data and config.scopes:
      token_data['scope'] = ' '.join(config.scopes)
    return OAuth2Token.from_response(token_data)

  def refresh_token(
    self, config: OAuth2Config, current_token: OAuth2Token
  ) -> OAuth2Token:
    """Refresh an expiring token using the refresh token."""
    if not current_token.refresh_token:
      raise OAuth2Error('No refresh token available, must re-authenticate', error_code='invalid_grant')

    logger.info('Refreshing access token at %s', config.token_url)
    token_data = self._post_token_request(
      config, config.to_refresh_data(current_token.refresh_token), 'Token refresh'
    )

    # Preserve refresh token if not returned in response
    if 'refresh_token' not in token_data:
      token_data['refresh_token'] = current_token.refresh_token
    if 'scope' not in token_data and current_token.scopes:
      token_data['scope'] = ' '.join(current_token.scopes)

    return OAuth2Token.from_response(token_data)

  def _post_token_request(self, config: OAuth2Config, data: Dict[str, str], action: str) -> Dict[str, Any]:
    try:
      response = self._session.post(
        config.token_url,
        data=data,
        headers={'Content-Type': 'application/x-www-form-urlencoded', 'Accept': 'application/json'},
        timeout=self._timeout,
      )
      response.raise_for_status()
      token_data = response.json()

    except requests.HTTPError as e:
      error_data: Dict[str, Any] = {}
      try:
        error_data = e.response.json()
      except (ValueError, AttributeError):
        logger.debug('%s error response was not JSON', action)

      raise OAuth2Error(
        f"{action} failed: {error_data.get('error_description', str(e))}",
        error_code=error_data.get('error'),
      ) from e

    except ValueError as e:
      raise OAuth2Error(f'{action} returned a non-JSON body') from e

    except requests.RequestException as e:
      raise OAuth2Error(f'Network error during {action.lower()}: {str(e)}') from e

    if not isinstance(token_data, dict) or 'access_token' not in token_data:
      raise OAuth2Error(
        f'Token response missing access_token: {token_data}',
        error_code=token_data.get('error') if isinstance(token_data, dict) else None,
      )
    return token_data
