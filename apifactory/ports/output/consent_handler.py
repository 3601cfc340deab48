"""Output port for the interactive consent step of the authorization-code flow."""
from __future__ import annotations

from typing import Protocol


class ConsentHandler(Protocol):
  def request_code(self, authorization_url: str, state: str) -> str:
    """Send the user to ``authorization_url`` and return the granted code.

    Implementations should check ``state`` when the redirect carries it back.
    """
    ...
