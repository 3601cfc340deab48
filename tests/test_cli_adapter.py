"""Tests for the click command group, wired to fakes."""
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from fakes import URLSHORTENER, FakeRepository, make_token, response

from apifactory.adapters.input.cli.cli_adapter import CLIAdapter
from apifactory.adapters.presentation.json_presenter import JsonPresenter
from apifactory.application.services.function_generator import FunctionGenerator
from apifactory.common.config import Settings
from apifactory.common.container import build_request_executor, build_token_store


@pytest.fixture
def descriptor(tmp_path):
  path = tmp_path / 'urlshortener.json'
  path.write_text(json.dumps(URLSHORTENER), encoding='utf-8')
  return str(path)


@pytest.fixture
def cli(token_store, generator):
  return CLIAdapter(lambda: token_store, lambda verbose: generator, JsonPresenter()).build()


@pytest.fixture
def runner():
  return CliRunner()


class TestOperations:
  def test_lists_operations(self, cli, runner, descriptor):
    result = runner.invoke(cli, ['operations', '--descriptor', descriptor])
    assert result.exit_code == 0
    assert 'url.get\tGET\thttps://www.googleapis.com/urlshortener/v1/url' in result.output
    assert 'url.history.list' in result.output

  def test_requires_a_descriptor_source(self, cli, runner):
    result = runner.invoke(cli, ['operations'])
    assert result.exit_code != 0
    assert '--descriptor' in result.output


class TestCall:
  def test_calls_operation_and_prints_body(self, cli, runner, descriptor, repository):
    repository.responses = [response(200, {'id': 'goo.gl/abc', 'status': 'OK'})]
    result = runner.invoke(cli, [
      'call', '--descriptor', descriptor, '--operation', 'url.get',
      '--query-arg', 'shortUrl=http://goo.gl/abc',
    ])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {'id': 'goo.gl/abc', 'status': 'OK'}
    assert repository.requests[0].url.startswith(
      'https://www.googleapis.com/urlshortener/v1/url?shortUrl=http%3A%2F%2Fgoo.gl%2Fabc'
    )

  def test_posts_json_body(self, cli, runner, descriptor, repository):
    repository.responses = [response(200, {'id': 'goo.gl/new'})]
    result = runner.invoke(cli, [
      'call', '--descriptor', descriptor, '--operation', 'url.insert',
      '--body', '{"longUrl": "http://example.com"}',
    ])
    assert result.exit_code == 0, result.output
    assert repository.requests[0].body == b'{"longUrl":"http://example.com"}'

  def test_unknown_operation(self, cli, runner, descriptor):
    result = runner.invoke(cli, ['call', '--descriptor', descriptor, '--operation', 'url.delete'])
    assert result.exit_code != 0
    assert 'Unknown operation' in result.output

  def test_invalid_body(self, cli, runner, descriptor):
    result = runner.invoke(cli, ['call', '--descriptor', descriptor, '--operation', 'url.insert', '--body', '{oops'])
    assert result.exit_code != 0

  def test_api_error_is_reported(self, cli, runner, descriptor, repository):
    repository.responses = [response(404, {'error': 'notFound'})]
    result = runner.invoke(cli, [
      'call', '--descriptor', descriptor, '--operation', 'url.get',
      '--query-arg', 'shortUrl=x',
    ])
    assert result.exit_code == 1
    assert '"type": "ClientRequestError"' in result.output


class TestAuth:
  def test_status_reports_state(self, cli, runner):
    result = runner.invoke(cli, ['auth', 'status'])
    assert result.exit_code == 0
    assert 'State: authenticated' in result.output
    assert 'Refresh token: yes' in result.output

  def test_logout_then_status(self, cli, runner):
    assert runner.invoke(cli, ['auth', 'logout']).exit_code == 0
    assert 'State: revoked' in runner.invoke(cli, ['auth', 'status']).output

  def test_login_with_valid_credential(self, cli, runner, provider):
    result = runner.invoke(cli, ['auth', 'login'])
    assert result.exit_code == 0
    assert 'Authenticated' in result.output
    assert provider.exchange_calls == 0


class TestVerbosity:
  @pytest.fixture
  def debug_file(self, tmp_path):
    return tmp_path / 'request_debug.json'

  @pytest.fixture
  def wired_cli(self, debug_file):
    settings = Settings(client_id='cid', token_cache=None, debug_file=str(debug_file), verbose=0)
    store = build_token_store(settings)
    store.set_credential(make_token())
    repository = FakeRepository([response(200, {'id': 'goo.gl/abc'})])
    with patch('apifactory.common.container.RequestsApiRepository', return_value=repository):
      yield CLIAdapter(
        lambda: store,
        lambda verbose: FunctionGenerator(build_request_executor(settings, store, verbose)),
        JsonPresenter(),
      ).build()
    store.close()

  def invoke(self, runner, cli, descriptor, *flags):
    return runner.invoke(cli, [
      *flags, 'call', '--descriptor', descriptor, '--operation', 'url.get', '--query-arg', 'shortUrl=abc',
    ])

  def test_double_verbose_writes_debug_file(self, wired_cli, runner, descriptor, debug_file):
    result = self.invoke(runner, wired_cli, descriptor, '-vv')
    assert result.exit_code == 0, result.output
    recorded = json.loads(debug_file.read_text(encoding='utf-8'))
    assert recorded['method'] == 'GET'
    assert recorded['url'].startswith('https://www.googleapis.com/urlshortener/v1/url?shortUrl=abc')

  def test_default_verbosity_writes_nothing(self, wired_cli, runner, descriptor, debug_file):
    result = self.invoke(runner, wired_cli, descriptor)
    assert result.exit_code == 0, result.output
    assert not debug_file.exists()
