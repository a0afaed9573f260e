"""Command-line interface for the stats engine.

Two modes are provided:
- HTTP mode (``--http``) serves the FastAPI app with uvicorn.
- Batch mode runs a single tool request read from a JSON file and prints the
  JSON response to stdout.

Usage
-----
    stats-engine --tool process_period --request request.json
    stats-engine --http --port 8080
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..config.models import EngineConfig, EnvSettings, load_json
from ..observability import setup_logging
from .handlers import TOOLS, run_tool
from .http import create_app

logger = logging.getLogger(__name__)


def _settings_from_config(config_path: Optional[str]) -> EnvSettings:
    """Environment settings, overridden by values from a JSON config file."""
    settings = EnvSettings()
    if not config_path:
        return settings
    cfg = EngineConfig.load(Path(config_path))
    return settings.model_copy(
        update={
            "timezone": cfg.timezone,
            "first_weekday": cfg.first_weekday,
            "top_list_limit": cfg.top_list_limit,
        }
    )


def run_batch(tool: str, request_path: Path, settings: EnvSettings) -> str:
    """Run one tool request from ``request_path`` and return the JSON response."""
    payload = load_json(request_path)
    result = run_tool(tool, payload, settings)
    logger.debug("cli.batch.done", extra={"tool": tool})
    return result.model_dump_json(indent=2)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stats engine CLI")
    parser.add_argument("--config", help="Path to JSON engine config")
    parser.add_argument(
        "--tool",
        choices=sorted(TOOLS),
        help="Tool to run in batch mode",
    )
    parser.add_argument("--request", help="Path to JSON tool request (batch mode)")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=[
            "CRITICAL",
            "ERROR",
            "WARNING",
            "INFO",
            "DEBUG",
        ],
        help="Logging level (overrides environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (once sets DEBUG)",
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Run HTTP server (requires fastapi/uvicorn)",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="HTTP bind host (default 127.0.0.1)"
    )
    parser.add_argument("--port", type=int, default=8080, help="HTTP port")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint. Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_level = os.environ.get("STATS_ENGINE_LOG_LEVEL", "INFO").upper()
    effective_level = args.log_level or ("DEBUG" if args.verbose > 0 else env_level)
    setup_logging(effective_level)

    try:
        settings = _settings_from_config(args.config)
    except (OSError, ValueError) as exc:
        parser.error(f"invalid config: {exc}")

    if args.http:
        uvicorn = importlib.import_module("uvicorn")
        uvicorn.run(
            create_app(settings),
            host=args.host,
            port=args.port,
            log_level=effective_level.lower(),
        )
        return 0

    if not args.tool or not args.request:
        parser.error("--tool and --request are required unless --http is used")

    try:
        output = run_batch(args.tool, Path(args.request), settings)
    except OSError as exc:
        logger.error("cli.request_unreadable", extra={"error": str(exc)})
        print(f"error: cannot read request: {exc}", file=sys.stderr)
        return 2
    except ValidationError as exc:
        print(f"error: invalid request:\n{exc}", file=sys.stderr)
        return 2
    except json.JSONDecodeError as exc:
        print(f"error: request is not valid JSON: {exc}", file=sys.stderr)
        return 2
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
