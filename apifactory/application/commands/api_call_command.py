"""Command object carrying the arguments of one generated-function call."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from apifactory.domain.entities.api_endpoint import EndpointConfig
from apifactory.domain.errors import UnknownArgument


@dataclass(frozen=True)
class ApiCallCommand:
  """Runtime substitution values for a single invocation."""
  path_args: Dict[str, Any] = field(default_factory=dict)
  pars_args: Dict[str, Any] = field(default_factory=dict)
  body: Optional[Any] = None
  raw_response: bool = False

  def __post_init__(self) -> None:
    object.__setattr__(self, 'path_args', dict(self.path_args or {}))
    object.__setattr__(self, 'pars_args', dict(self.pars_args or {}))

  @staticmethod
  def build(
    path_args: Optional[Mapping[str, Any]] = None,
    pars_args: Optional[Mapping[str, Any]] = None,
    body: Optional[Any] = None,
    raw_response: bool = False,
  ) -> 'ApiCallCommand':
    return ApiCallCommand(
      path_args=dict(path_args or {}),
      pars_args=dict(pars_args or {}),
      body=body,
      raw_response=raw_response,
    )

  def validate_against(self, config: EndpointConfig) -> None:
    """Reject names the endpoint does not declare."""
    unknown_path = set(self.path_args) - set(config.path_args)
    if unknown_path:
      raise UnknownArgument('path', list(unknown_path))
    unknown_query = set(self.pars_args) - set(config.pars_args)
    if unknown_query:
      raise UnknownArgument('query', list(unknown_query))
