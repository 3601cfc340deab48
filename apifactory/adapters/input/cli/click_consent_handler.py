"""Terminal consent step: show the authorization URL, read back the code."""
from __future__ import annotations

import webbrowser
from urllib.parse import parse_qs, urlparse

import click

from apifactory.ports.output.consent_handler import ConsentHandler
from apifactory.ports.output.oauth2_provider import ReauthenticationRequired


class ClickConsentHandler(ConsentHandler):
  """Asks the user to authorize in a browser and paste the result.

  Accepts either the bare code or the full redirect URL; when the URL is
  pasted, its ``state`` must match the one sent.
  """

  def __init__(self, open_browser: bool = True):
    self._open_browser = open_browser

  def request_code(self, authorization_url: str, state: str) -> str:
    click.echo('Authorize access by visiting:', err=True)
    click.echo(authorization_url, err=True)
    if self._open_browser:
      webbrowser.open(authorization_url)
    pasted = click.prompt('Paste the authorization code or the redirect URL', err=True).strip()
    return extract_code(pasted, state)


def extract_code(pasted: str, state: str) -> str:
  if '://' not in pasted and 'code=' not in pasted:
    return pasted
  query = parse_qs(urlparse(pasted).query if '://' in pasted else pasted.lstrip('?'))
  if 'error' in query:
    raise ReauthenticationRequired(f"Authorization denied: {query['error'][0]}", error_code=query['error'][0])
  returned_state = query.get('state', [None])[0]
  if returned_state is not None and returned_state != state:
    raise ReauthenticationRequired('Authorization state mismatch, refusing the code')
  codes = query.get('code')
  if not codes:
    raise ReauthenticationRequired('No authorization code found in the pasted value')
  return codes[0]
