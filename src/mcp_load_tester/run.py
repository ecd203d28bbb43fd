# run.py
# Entry point. Config loading and wiring only, no logic lives here.
#
# Usage:
#   mcp-load-test http://localhost:8080/mcp
#   mcp-load-test http://localhost:8080/mcp config.json --quiet

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from mcp_load_tester import display
from mcp_load_tester.harness import run
from mcp_load_tester.models import LoadTestConfig


def load_config(server_url: str, config_path: str | None = None) -> LoadTestConfig:
    """
    Build a LoadTestConfig from an optional JSON file.

    The server URL given on the command line wins over one in the file.
    Raises FileNotFoundError, json.JSONDecodeError or ValidationError.
    """
    data: dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        data = json.loads(path.read_text(encoding="utf-8"))
    return LoadTestConfig.model_validate({**data, "serverUrl": server_url})


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mcp-load-test",
        description="Load test the tools of an MCP server.",
    )
    parser.add_argument("server_url", help="Streamable-HTTP URL of the MCP server")
    parser.add_argument("config_file", nargs="?", help="JSON config file (camelCase or snake_case keys)")
    parser.add_argument("--quiet", action="store_true", help="Only print the final summary")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)

    try:
        config = load_config(args.server_url, args.config_file)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        display.config_error(exc)
        return 1

    if args.quiet:
        display.set_quiet(True)
    try:
        summary = asyncio.run(run(config))
    except Exception as exc:
        # Only connection failures get here; run_load_test itself never raises.
        display.load_test_aborted(exc)
        return 1

    if args.quiet:
        display.set_quiet(False)
        display.metrics_summary(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
