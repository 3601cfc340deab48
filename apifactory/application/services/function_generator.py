"""Turns endpoint configurations into reusable callables."""
from __future__ import annotations

import re
from typing import Any, Callable, Mapping, Optional

from apifactory.application.commands.api_call_command import ApiCallCommand
from apifactory.application.services.request_executor import RequestExecutor
from apifactory.domain.entities.api_endpoint import EndpointConfig
from apifactory.domain.errors import InvalidEndpointConfig

_NOT_IDENTIFIER = re.compile(r'[^0-9A-Za-z_]+')


class FunctionGenerator:
  """Binds an EndpointConfig to a RequestExecutor.

  Every generated function shares the executor, and with it the single
  TokenStore of the process.
  """

  def __init__(self, executor: RequestExecutor):
    self._executor = executor

  def generate(self, config: EndpointConfig) -> Callable[..., Any]:
    if not isinstance(config, EndpointConfig):
      raise InvalidEndpointConfig(f'Expected EndpointConfig, got {type(config).__name__}')

    executor = self._executor

    def api_call(
      path_args: Optional[Mapping[str, Any]] = None,
      pars_args: Optional[Mapping[str, Any]] = None,
      body: Optional[Any] = None,
      raw_response: bool = False,
    ) -> Any:
      command = ApiCallCommand.build(path_args=path_args, pars_args=pars_args, body=body, raw_response=raw_response)
      return executor.execute(config, command)

    api_call.__name__ = _function_name(config)
    api_call.__qualname__ = api_call.__name__
    api_call.__doc__ = _function_doc(config)
    api_call.endpoint = config  # type: ignore[attr-defined]
    return api_call


def _function_name(config: EndpointConfig) -> str:
  if not config.name:
    return 'api_call'
  name = _NOT_IDENTIFIER.sub('_', config.name).strip('_')
  return name if name and not name[0].isdigit() else f'api_{name}'


def _function_doc(config: EndpointConfig) -> str:
  lines = [config.description or f'{config.method.value} {config.base_uri}', '']
  if config.path_args:
    lines.append('Path arguments: ' + ', '.join(_describe(n, d) for n, d in config.path_args.items()))
  if config.pars_args:
    lines.append('Query arguments: ' + ', '.join(_describe(n, d) for n, d in config.pars_args.items()))
  return '\n'.join(lines).strip()


def _describe(name: str, default: Any) -> str:
  return name if default is None else f'{name}={default!r}'
