"""CLI adapter for calling descriptor-defined endpoints."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Tuple

import click

from apifactory.adapters.input.discovery.discovery_loader import discovery_url, load_descriptor
from apifactory.application.services.function_generator import FunctionGenerator
from apifactory.application.services.token_store import TokenStore
from apifactory.domain.errors import ApiFactoryError
from apifactory.ports.input.result_presenter import ResultPresenter


class CLIAdapter:
  """Builds the click command group.

  Factories are called lazily so commands that need no credential (listing
  operations) work without OAuth2 settings.
  """

  def __init__(
    self,
    token_store_factory: Callable[[], TokenStore],
    generator_factory: Callable[[int], FunctionGenerator],
    presenter: ResultPresenter,
    configure_logging: Optional[Callable[[int], None]] = None,
  ):
    self._token_store_factory = token_store_factory
    self._generator_factory = generator_factory
    self._presenter = presenter
    self._configure_logging = configure_logging

  def build(self) -> click.Group:
    @click.group()
    @click.option('-v', '--verbose', count=True, help='Increase log verbosity (-vv for debug and the request debug file)')
    @click.pass_context
    def cli(ctx: click.Context, verbose: int) -> None:
      """Call REST APIs described by discovery documents."""
      ctx.obj = {'verbose': verbose}
      if self._configure_logging is not None and verbose:
        self._configure_logging(verbose)

    @cli.group('auth')
    def auth() -> None:
      """Manage the stored OAuth2 credential."""

    @auth.command('login')
    def login() -> None:
      """Obtain a credential, running the consent flow if needed."""
      store = self._token_store()
      token = self._run(store.get_credential)
      click.echo(f'Authenticated, token expires at {token.expires_at or "unknown"}')

    @auth.command('status')
    def status() -> None:
      """Show the credential state without refreshing it."""
      store = self._token_store()
      token = store.current
      click.echo(f'State: {store.state.value}')
      if token is not None:
        click.echo(f'Expires at: {token.expires_at or "unknown"}')
        click.echo(f'Scopes: {" ".join(token.scopes) or "(none)"}')
        click.echo(f'Refresh token: {"yes" if token.refresh_token else "no"}')

    @auth.command('logout')
    def logout() -> None:
      """Discard the credential and its cache."""
      self._token_store().revoke()
      click.echo('Logged out')

    @cli.command('operations')
    @click.option('--descriptor', default=None, help='Discovery document: file path or URL')
    @click.option('--api', default=None, help='Google API name, e.g. urlshortener')
    @click.option('--api-version', default=None, help='Google API version, e.g. v1')
    def operations(descriptor: Optional[str], api: Optional[str], api_version: Optional[str]) -> None:
      """List the operations a descriptor defines."""
      document = self._run(lambda: load_descriptor(_descriptor_source(descriptor, api, api_version)))
      for operation_id, config in self._run(document.endpoint_configs).items():
        click.echo(f'{operation_id}\t{config.method.value}\t{config.base_uri}')

    @cli.command('call')
    @click.option('--descriptor', default=None, help='Discovery document: file path or URL')
    @click.option('--api', default=None, help='Google API name, e.g. urlshortener')
    @click.option('--api-version', default=None, help='Google API version, e.g. v1')
    @click.option('--operation', required=True, help='Dotted operation id, e.g. url.insert')
    @click.option('--path-arg', 'path_args', multiple=True, callback=_parse_pairs, help='name=value, repeatable')
    @click.option('--query-arg', 'query_args', multiple=True, callback=_parse_pairs, help='name=value, repeatable')
    @click.option('--body', default=None, help='JSON request body')
    @click.option('--raw', is_flag=True, help='Print the raw response instead of the parsed body')
    @click.pass_obj
    def call(
      obj: Dict[str, Any],
      descriptor: Optional[str],
      api: Optional[str],
      api_version: Optional[str],
      operation: str,
      path_args: Dict[str, str],
      query_args: Dict[str, str],
      body: Optional[str],
      raw: bool,
    ) -> None:
      """Call one operation of a descriptor.

      Examples:

        cli call --api urlshortener --api-version v1 --operation url.get \\
          --query-arg shortUrl=http://goo.gl/abc

        cli call --descriptor ./urlshortener.json --operation url.insert \\
          --body '{"longUrl": "http://example.com"}'
      """
      document = self._run(lambda: load_descriptor(_descriptor_source(descriptor, api, api_version)))
      configs = self._run(document.endpoint_configs)
      if operation not in configs:
        raise click.ClickException(f'Unknown operation {operation!r}; try the operations command')
      payload = _parse_body(body)
      verbose = obj['verbose']
      function = self._run(lambda: self._generator_factory(verbose).generate(configs[operation]))
      result = self._run(lambda: function(path_args=path_args, pars_args=query_args, body=payload, raw_response=raw))
      click.echo(self._presenter.present(result))

    return cli

  def run(self) -> None:
    self.build()()

  def _token_store(self) -> TokenStore:
    return self._run(self._token_store_factory)

  def _run(self, action: Callable[[], Any]) -> Any:
    try:
      return action()
    except (ApiFactoryError, ValueError) as exc:
      click.echo(self._presenter.present_error(exc))
      raise click.ClickException(str(exc)) from exc


def _parse_pairs(ctx: click.Context, param: click.Parameter, values: Tuple[str, ...]) -> Dict[str, str]:
  pairs: Dict[str, str] = {}
  for item in values:
    name, sep, value = item.partition('=')
    if not sep or not name:
      raise click.BadParameter(f'expected name=value, got {item!r}')
    pairs[name] = value
  return pairs


def _parse_body(body: Optional[str]) -> Any:
  if body is None:
    return None
  try:
    return json.loads(body)
  except ValueError as exc:
    raise click.BadParameter(f'--body is not valid JSON: {exc}') from exc


def _descriptor_source(descriptor: Optional[str], api: Optional[str], api_version: Optional[str]) -> str:
  if descriptor:
    return descriptor
  if api and api_version:
    return discovery_url(api, api_version)
  raise click.UsageError('Pass --descriptor, or both --api and --api-version')
