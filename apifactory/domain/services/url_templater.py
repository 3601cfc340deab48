"""URL template resolution and JSON body serialization.

Both functions are pure: they either return a complete result or raise a
``ResolutionError`` subclass without touching anything else.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from apifactory.domain.errors import BodySerializationError, MissingPathArgument

# {name} is fully encoded, {+name} keeps reserved characters (RFC 6570 level 2)
_PLACEHOLDER = re.compile(r'\{(\+?)([A-Za-z_][A-Za-z0-9_.\-]*)\}')
_RESERVED_SAFE = "/:@!$&'()*+,;="


@dataclass(frozen=True)
class ResolvedUrl:
  url: str
  path_values: Tuple[Tuple[str, str], ...] = ()
  query: Tuple[Tuple[str, str], ...] = ()


def template_placeholders(template: str) -> List[str]:
  """Placeholder names in order of appearance."""
  return [match.group(2) for match in _PLACEHOLDER.finditer(template)]


def _render_scalar(value: Any) -> str:
  if isinstance(value, bool):
    return 'true' if value else 'false'
  return str(value)


def _pick(name: str, values: Mapping[str, Any], defaults: Mapping[str, Any]) -> Optional[Any]:
  if values.get(name) is not None:
    return values[name]
  return defaults.get(name)


def resolve_url(
  template: str,
  path_arg_names: Sequence[str],
  path_arg_defaults: Mapping[str, Any],
  path_arg_values: Mapping[str, Any],
  query_arg_names: Sequence[str],
  query_arg_defaults: Mapping[str, Any],
  query_arg_values: Mapping[str, Any],
) -> ResolvedUrl:
  """Substitute path placeholders and append the query string.

  Every placeholder in ``template`` must get a value, from the call or from
  the default of a declared path argument. Declared names with no placeholder
  in the template are ignored.
  """
  defaults = {name: path_arg_defaults.get(name) for name in path_arg_names}
  path_values: Dict[str, str] = {}
  for name in template_placeholders(template):
    if name in path_values:
      continue
    value = _pick(name, path_arg_values, defaults)
    if value is None:
      raise MissingPathArgument(name, template)
    path_values[name] = _render_scalar(value)

  def substitute(match: 're.Match[str]') -> str:
    safe = _RESERVED_SAFE if match.group(1) == '+' else ''
    return quote(path_values[match.group(2)], safe=safe)

  url = _PLACEHOLDER.sub(substitute, template)

  query: List[Tuple[str, str]] = []
  for name in query_arg_names:
    value = _pick(name, query_arg_values, query_arg_defaults)
    if value is None:
      continue
    if isinstance(value, (list, tuple)):
      query.extend((name, _render_scalar(item)) for item in value)
    else:
      query.append((name, _render_scalar(value)))

  if query:
    encoded = '&'.join(f"{quote(name, safe='')}={quote(value, safe='')}" for name, value in query)
    url = f"{url}{'&' if '?' in url else '?'}{encoded}"

  return ResolvedUrl(url=url, path_values=tuple(path_values.items()), query=tuple(query))


def _to_json_value(value: Any, where: str) -> Any:
  if value is None or isinstance(value, (str, bool, int, float)):
    return value
  if isinstance(value, Mapping):
    converted = {}
    for key, item in value.items():
      if not isinstance(key, str):
        raise BodySerializationError(f'Object keys must be strings, got {key!r} at {where}')
      converted[key] = _to_json_value(item, f'{where}.{key}')
    return converted
  if isinstance(value, (list, tuple)):
    return [_to_json_value(item, f'{where}[{index}]') for index, item in enumerate(value)]
  raise BodySerializationError(f'Cannot serialize {type(value).__name__} at {where} to JSON')


def serialize_body(payload: Any) -> bytes:
  """Deterministic JSON encoding of a request payload."""
  converted = _to_json_value(payload, '$')
  try:
    text = json.dumps(converted, ensure_ascii=False, separators=(',', ':'), allow_nan=False)
  except ValueError as exc:
    raise BodySerializationError(f'Payload is not valid JSON: {exc}') from exc
  return text.encode('utf-8')
