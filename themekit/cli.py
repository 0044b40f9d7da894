from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from buildkit.errors import BuildkitError
from themekit.foundation.config_io import ConfigMissingError
from themekit.foundation.logging_utils import setup_operational_logger
from themekit.framework.config import resolve_mode


def _add_common_options(parser: argparse.ArgumentParser, *, suppress: bool) -> None:
    # Subcommand copies use SUPPRESS so a flag given before the command survives.
    def default(value):
        return argparse.SUPPRESS if suppress else value

    parser.add_argument(
        "--project-dir",
        default=default(None),
        help="Directory holding config.yml / config-default.yml (default: cwd)",
    )
    parser.add_argument(
        "--production", action="store_true", default=default(False), help="Minify and compress outputs"
    )
    parser.add_argument(
        "--development",
        action="store_true",
        default=default(False),
        help="Unminified outputs with source maps",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=default(False), help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common, suppress=True)

    parser = argparse.ArgumentParser(prog="themekit", add_help=True)
    _add_common_options(parser, suppress=False)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("build", parents=[common], help="Clean and build the dist folder")
    sub.add_parser("package", parents=[common], help="Build, then zip the theme into packaged/")
    sub.add_parser(
        "default", parents=[common], help="Build, start browser-sync and watch for changes"
    )
    sub.add_parser("html", parents=[common], help="Watch and assemble HTML partials")
    sub.add_parser("lint", parents=[common], help="Run PHP_CodeSniffer")
    sub.add_parser("list-stages", parents=[common], help="List registered stages")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logger, _log_file = setup_operational_logger(verbose=args.verbose)

    from themekit import plans  # noqa: PLC0415
    from themekit.app import run as app  # noqa: PLC0415

    mode = resolve_mode(production=args.production, development=args.development)
    try:
        config = app.load_build_config(args.project_dir, mode=mode)
    except ConfigMissingError as exc:
        logger.error("Exiting process, no config file exists.")
        logger.error("%s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid config: %s", exc)
        return 1

    if config.log_path:
        logger, _log_file = setup_operational_logger(config.log_path, verbose=args.verbose)

    try:
        session = app.prepare_session(config)

        if args.command == "list-stages":
            for row in session.registry.describe():
                print(f"{row['name']}: {row['doc'] or ''}")
            return 0

        if args.command in ("build", "package", "lint"):
            report = app.run_plan(session, plans.get_plan(args.command))
            return 0 if report is not None else 1

        if args.command == "default":
            return app.run_default(session)

        if args.command == "html":
            return app.run_html(session)
    except BuildkitError as exc:
        logger.error("%s", exc)
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
