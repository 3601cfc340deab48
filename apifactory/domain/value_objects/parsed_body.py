"""Tagged representation of a decoded response body."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator


class BodyKind(str, Enum):
  OBJECT = 'object'
  ARRAY = 'array'
  SCALAR = 'scalar'
  EMPTY = 'empty'


@dataclass(frozen=True)
class ParsedBody:
  """A response body tagged with its JSON shape.

  Transforms can branch on ``kind`` instead of probing the value. Objects and
  arrays also support item access so ``body['id']`` works directly.
  """

  kind: BodyKind
  value: Any = None

  @staticmethod
  def empty() -> 'ParsedBody':
    return ParsedBody(BodyKind.EMPTY, None)

  @staticmethod
  def of(value: Any) -> 'ParsedBody':
    if isinstance(value, dict):
      return ParsedBody(BodyKind.OBJECT, value)
    if isinstance(value, list):
      return ParsedBody(BodyKind.ARRAY, value)
    return ParsedBody(BodyKind.SCALAR, value)

  @property
  def is_empty(self) -> bool:
    return self.kind == BodyKind.EMPTY

  def __getitem__(self, key: Any) -> Any:
    if self.kind not in (BodyKind.OBJECT, BodyKind.ARRAY):
      raise TypeError(f'{self.kind.value} body does not support item access')
    return self.value[key]

  def get(self, key: str, default: Any = None) -> Any:
    if self.kind != BodyKind.OBJECT:
      return default
    return self.value.get(key, default)

  def __iter__(self) -> Iterator[Any]:
    if self.kind == BodyKind.EMPTY:
      return iter(())
    if self.kind == BodyKind.SCALAR:
      raise TypeError('scalar body is not iterable')
    return iter(self.value)

  def __len__(self) -> int:
    if self.kind == BodyKind.EMPTY:
      return 0
    if self.kind == BodyKind.SCALAR:
      raise TypeError('scalar body has no length')
    return len(self.value)
