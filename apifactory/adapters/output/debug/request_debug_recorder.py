"""Diagnostic side channel recording the last request sent."""
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from apifactory.domain.value_objects.http_exchange import ResolvedRequest
from apifactory.ports.output.request_recorder import RequestRecorder

logger = logging.getLogger(__name__)

VERBOSE_DEBUG = 2


class RequestDebugRecorder(RequestRecorder):
  """Logs each outgoing request and, at debug verbosity, writes it to a file.

  The file only ever holds the most recent request. Nothing reads it back.
  """

  def __init__(self, verbose: int = 0, path: Optional[Union[str, Path]] = None):
    self._verbose = verbose
    self._path = Path(path) if path else None

  @property
  def writes_file(self) -> bool:
    return self._path is not None and self._verbose >= VERBOSE_DEBUG

  def record(self, request: ResolvedRequest) -> None:
    body = request.body.decode('utf-8', errors='replace') if request.body is not None else None
    logger.debug('Request %s %s body=%s', request.method.value, request.url, body)
    if not self.writes_file:
      return
    payload = {
      'method': request.method.value,
      'url': request.url,
      'body': body,
      'recorded_at': datetime.now(timezone.utc).isoformat(),
    }
    # per-thread temp file, published whole by os.replace
    tmp_path = self._path.with_name(f'{self._path.name}.{os.getpid()}.{threading.get_ident()}.tmp')
    try:
      tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
      os.replace(tmp_path, self._path)
    except OSError as exc:
      logger.warning('Could not write request debug file %s: %s', self._path, exc)
