"""CLI entrypoint for apifactory."""
from __future__ import annotations

import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from apifactory.adapters.input.cli.cli_adapter import CLIAdapter
from apifactory.adapters.presentation.json_presenter import JsonPresenter
from apifactory.common.config import get_settings
from apifactory.common.container import create_function_generator, create_token_store
from apifactory.common.logging_config import configure_logging


def main() -> None:
  configure_logging(get_settings().verbose)
  adapter = CLIAdapter(
    token_store_factory=create_token_store,
    generator_factory=create_function_generator,
    presenter=JsonPresenter(),
    configure_logging=configure_logging,
  )
  adapter.run()


if __name__ == '__main__':
  main()
