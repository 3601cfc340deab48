"""Maps the verbose setting onto standard library logging."""
from __future__ import annotations

import logging

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def level_for(verbose: int) -> int:
  if verbose >= 2:
    return logging.DEBUG
  return _LEVELS.get(max(verbose, 0), logging.WARNING)


def configure_logging(verbose: int = 1) -> None:
  """Configure root logging for the CLI; libraries only create loggers."""
  logging.basicConfig(
    level=level_for(verbose),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
  )
  logging.getLogger().setLevel(level_for(verbose))
  # urllib3 logs every connection at DEBUG
  logging.getLogger('urllib3').setLevel(logging.INFO if verbose >= 3 else logging.WARNING)
