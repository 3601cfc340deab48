"""Translates discovery documents into EndpointConfig objects.

Accepts the Google API discovery format: ``rootUrl`` + ``servicePath``, then
nested ``resources`` holding ``methods`` with ``httpMethod``, ``path`` and
``parameters`` (``location`` is ``path`` or ``query``).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from apifactory.domain.entities.api_endpoint import EndpointConfig
from apifactory.domain.errors import InvalidEndpointConfig

logger = logging.getLogger(__name__)

GOOGLE_DISCOVERY_URL = 'https://www.googleapis.com/discovery/v1/apis/{api}/{version}/rest'


class DiscoveryParameter(BaseModel):
  model_config = ConfigDict(extra='ignore', populate_by_name=True)

  location: str = Field(default='query', description='path or query')
  type: Optional[str] = None
  required: bool = False
  default: Optional[str] = None
  repeated: bool = False
  description: Optional[str] = None


class DiscoveryMethod(BaseModel):
  model_config = ConfigDict(extra='ignore', populate_by_name=True)

  id: Optional[str] = None
  http_method: str = Field(default='GET', alias='httpMethod')
  path: str
  description: Optional[str] = None
  parameters: Dict[str, DiscoveryParameter] = Field(default_factory=dict)
  parameter_order: List[str] = Field(default_factory=list, alias='parameterOrder')
  scopes: List[str] = Field(default_factory=list)

  def ordered_parameters(self, location: str) -> List[Tuple[str, DiscoveryParameter]]:
    """Parameters at ``location``, ``parameterOrder`` first then declaration order."""
    names = [n for n in self.parameter_order if n in self.parameters]
    names += [n for n in self.parameters if n not in names]
    return [(n, self.parameters[n]) for n in names if self.parameters[n].location == location]


class DiscoveryResource(BaseModel):
  model_config = ConfigDict(extra='ignore')

  methods: Dict[str, DiscoveryMethod] = Field(default_factory=dict)
  resources: Dict[str, 'DiscoveryResource'] = Field(default_factory=dict)

  def walk(self, prefix: str) -> Iterator[Tuple[str, DiscoveryMethod]]:
    for name, method in self.methods.items():
      yield f'{prefix}{name}', method
    for name, resource in self.resources.items():
      yield from resource.walk(f'{prefix}{name}.')


class DiscoveryDocument(BaseModel):
  model_config = ConfigDict(extra='ignore', populate_by_name=True)

  name: str
  version: str
  title: Optional[str] = None
  root_url: str = Field(alias='rootUrl')
  service_path: str = Field(default='', alias='servicePath')
  methods: Dict[str, DiscoveryMethod] = Field(default_factory=dict)
  resources: Dict[str, DiscoveryResource] = Field(default_factory=dict)

  @property
  def base_url(self) -> str:
    return self.root_url.rstrip('/') + '/' + self.service_path.lstrip('/')

  def operations(self) -> Iterator[Tuple[str, DiscoveryMethod]]:
    for name, method in self.methods.items():
      yield name, method
    for name, resource in self.resources.items():
      yield from resource.walk(f'{name}.')

  def endpoint_configs(
    self, transforms: Optional[Mapping[str, Callable[[Any], Any]]] = None
  ) -> Dict[str, EndpointConfig]:
    """One EndpointConfig per operation, keyed by dotted operation id (``url.insert``)."""
    transforms = transforms or {}
    configs: Dict[str, EndpointConfig] = {}
    for operation_id, method in self.operations():
      configs[operation_id] = EndpointConfig(
        base_uri=self.base_url.rstrip('/') + '/' + method.path.lstrip('/'),
        method=method.http_method,
        path_args={n: p.default for n, p in method.ordered_parameters('path')},
        pars_args={n: p.default for n, p in method.ordered_parameters('query')},
        transform=transforms.get(operation_id),
        name=operation_id,
        description=method.description,
      )
    logger.debug('Loaded %d operations from %s %s', len(configs), self.name, self.version)
    return configs


DiscoveryResource.model_rebuild()


def discovery_url(api: str, version: str) -> str:
  return GOOGLE_DISCOVERY_URL.format(api=api, version=version)


def load_descriptor(source: Union[str, Path, Mapping[str, Any]], timeout: int = 30) -> DiscoveryDocument:
  """Load a discovery document from a mapping, a local file or an http(s) URL."""
  if isinstance(source, Mapping):
    data: Any = source
  elif isinstance(source, str) and source.startswith(('http://', 'https://')):
    try:
      response = requests.get(source, headers={'Accept': 'application/json'}, timeout=timeout)
      response.raise_for_status()
      data = response.json()
    except ValueError as exc:
      raise InvalidEndpointConfig(f'Descriptor at {source} is not JSON') from exc
    except requests.RequestException as exc:
      raise InvalidEndpointConfig(f'Could not fetch descriptor {source}: {exc}') from exc
  else:
    path = Path(source)
    try:
      data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as exc:
      raise InvalidEndpointConfig(f'Could not read descriptor {path}: {exc}') from exc

  try:
    return DiscoveryDocument.model_validate(data)
  except ValidationError as exc:
    raise InvalidEndpointConfig(f'Invalid descriptor: {exc}') from exc
