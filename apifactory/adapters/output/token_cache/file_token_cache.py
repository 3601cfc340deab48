"""JSON file token cache, so a consent survives process restarts."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from apifactory.domain.value_objects.oauth2_credentials import OAuth2Token
from apifactory.ports.output.token_cache import TokenCache

logger = logging.getLogger(__name__)


class FileTokenCache(TokenCache):
  def __init__(self, path: Union[str, Path]):
    self._path = Path(path)

  @property
  def path(self) -> Path:
    return self._path

  def load(self) -> Optional[OAuth2Token]:
    if not self._path.exists():
      return None
    try:
      data = json.loads(self._path.read_text(encoding='utf-8'))
      return OAuth2Token.from_dict(data)
    except (ValueError, KeyError, TypeError) as exc:
      # An unreadable cache is treated as absent; the next login rewrites it
      logger.warning('Ignoring unreadable token cache %s: %s', self._path, exc)
      return None

  def save(self, token: OAuth2Token) -> None:
    self._path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = self._path.with_name(self._path.name + '.tmp')
    tmp_path.write_text(json.dumps(token.to_dict(), indent=2), encoding='utf-8')
    os.chmod(tmp_path, 0o600)
    os.replace(tmp_path, self._path)
    logger.debug('Token cached at %s', self._path)

  def clear(self) -> None:
    if self._path.exists():
      self._path.unlink()
      logger.info('Removed token cache %s', self._path)
