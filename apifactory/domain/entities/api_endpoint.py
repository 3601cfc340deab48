"""Domain entities describing a callable API operation."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from apifactory.domain.errors import InvalidEndpointConfig


class HttpMethod(str, Enum):
  GET = 'GET'
  POST = 'POST'
  PUT = 'PUT'
  PATCH = 'PATCH'
  DELETE = 'DELETE'

  @classmethod
  def parse(cls, value: Any) -> 'HttpMethod':
    if isinstance(value, cls):
      return value
    try:
      return cls(str(value).upper())
    except ValueError as exc:
      supported = ', '.join(m.value for m in cls)
      raise InvalidEndpointConfig(f'Unsupported HTTP method {value!r}, expected one of {supported}') from exc


def _freeze_args(kind: str, args: Optional[Any]) -> Mapping[str, Optional[Any]]:
  """Normalize a name -> default mapping (or a plain list of names)."""
  if args is None:
    return MappingProxyType({})
  if isinstance(args, Mapping):
    items = dict(args)
  elif isinstance(args, (list, tuple)):
    items = {name: None for name in args}
  else:
    raise InvalidEndpointConfig(f'{kind} must be a mapping of name -> default or a list of names')
  for name in items:
    if not isinstance(name, str) or not name:
      raise InvalidEndpointConfig(f'{kind} names must be non-empty strings, got {name!r}')
  return MappingProxyType(items)


@dataclass(frozen=True)
class EndpointConfig:
  """Immutable description of one API operation.

  ``path_args`` and ``pars_args`` map argument names to their default value,
  ``None`` meaning no default. Declaration order is kept and decides the order
  of query parameters in the resolved URL.
  """

  base_uri: str
  method: HttpMethod = HttpMethod.GET
  path_args: Mapping[str, Optional[Any]] = field(default_factory=dict)
  pars_args: Mapping[str, Optional[Any]] = field(default_factory=dict)
  transform: Optional[Callable[[Any], Any]] = None
  name: Optional[str] = None
  description: Optional[str] = None

  def __post_init__(self) -> None:
    if not self.base_uri or not isinstance(self.base_uri, str):
      raise InvalidEndpointConfig('base_uri is required')
    if self.transform is not None and not callable(self.transform):
      raise InvalidEndpointConfig('transform must be callable')
    object.__setattr__(self, 'method', HttpMethod.parse(self.method))
    object.__setattr__(self, 'path_args', _freeze_args('path_args', self.path_args))
    object.__setattr__(self, 'pars_args', _freeze_args('pars_args', self.pars_args))
    overlap = set(self.path_args) & set(self.pars_args)
    if overlap:
      raise InvalidEndpointConfig(f"Names declared as both path and query arguments: {', '.join(sorted(overlap))}")

  def identifier(self) -> str:
    return self.name or f'{self.method.value} {self.base_uri}'
