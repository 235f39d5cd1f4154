"""CLI entry point for perfboard."""

from __future__ import annotations

import logging
import sys

from perfboard.cli import (
    build_parser,
    handle_health,
    handle_insights,
    handle_merge,
    handle_rank,
    handle_show,
    handle_stats,
    handle_suggest,
    resolve_settings,
)
from perfboard.errors import ActionableError
from perfboard.logging import configure_file_logging

logger = logging.getLogger(__name__)

_HANDLERS = {
    "merge": handle_merge,
    "rank": handle_rank,
    "show": handle_show,
    "stats": handle_stats,
    "insights": handle_insights,
    "suggest": handle_suggest,
    "health": handle_health,
}


def _report(err: ActionableError) -> None:
    print(f"Error: {err.error}", file=sys.stderr)
    if err.suggestion:
        print(f"Suggestion: {err.suggestion}", file=sys.stderr)
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.log_file:
            # tracebacks go to the file only; stderr stays at INFO
            configure_file_logging(resolve_settings(args).output.log_dir, level=logging.DEBUG)
        _HANDLERS[args.command](args)
    except ActionableError as exc:
        _report(exc)
    except Exception as exc:
        logger.debug("Unhandled error in '%s'", args.command, exc_info=True)
        _report(ActionableError.from_exception(exc, "perfboard", args.command))


if __name__ == "__main__":
    main()
