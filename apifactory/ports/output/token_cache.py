"""Output port for persisting credentials between processes."""
from __future__ import annotations

from typing import Optional, Protocol

from apifactory.domain.value_objects.oauth2_credentials import OAuth2Token


class TokenCache(Protocol):
  def load(self) -> Optional[OAuth2Token]:
    ...

  def save(self, token: OAuth2Token) -> None:
    ...

  def clear(self) -> None:
    ...
