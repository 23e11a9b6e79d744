"""
The main entry point for the halodash Command-Line Interface (CLI).
"""

import argparse
import json
import sys
import textwrap
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import]
from loguru import logger
from pydantic import BaseModel, ValidationError

from .catalog import get_available_templates
from .config import HaloDashConfig, load_config
from .engine import DashboardEngine
from .errors import ArtifactNotFound, HaloDashError
from .models import ChartConfig
from .sql_templates import get_validated_sql, list_validated_templates
from .suggestions import suggest_widgets_for_description

DEFAULT_CONFIG_TEMPLATE = (
    textwrap.dedent(
        """
        # halodash starter configuration
        # Secrets can also be supplied through HALO_BASE_URL, HALO_CLIENT_ID,
        # HALO_CLIENT_SECRET and HALO_TENANT, which override this file.
        connection:
          base_url: "https://yourcompany.halopsa.com"
          client_id: "your-client-id"
          client_secret: "your-client-secret"
          # tenant: "yourcompany"
          timeout_seconds: 60
        engine:
          grid_width: 12
          match_threshold: 5
          max_fix_attempts: 3
          reserved_prefix: "Dashboard - "
          report_category: "Dashboard"
        """
    ).strip()
    + "\n"
)

COMMANDS = [
    "init",
    "templates",
    "suggest",
    "build",
    "validate-report",
    "fix-report",
    "validate-dashboard",
    "create-report",
    "sql",
]

OFFLINE_COMMANDS = {"init", "templates", "suggest", "sql"}


def format_error(exc: Exception) -> str:
    """Turn a platform error into a message a user can act on."""

    message = str(exc)
    if isinstance(exc, ArtifactNotFound):
        return f"Not found: {message}"
    status = getattr(exc, "status_code", None)
    if status == 401:
        return "Authentication failed. Check the HaloPSA client id and secret."
    if status == 403:
        return "Permission denied. The API application needs access to reports and dashboards."
    if status == 404:
        return f"Not found: {message}"
    return message


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    print(json.dumps(payload, indent=2))


def _scaffold_config(output_path: str, force: bool) -> None:
    target = Path(output_path).expanduser().resolve()
    if target.exists() and not force:
        logger.error(
            f"Cannot scaffold config: file already exists at {target}. Pass --force to overwrite."
        )
        sys.exit(1)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    logger.success(f"Created starter config at {target}")


def _load_config(config_path: str | None) -> HaloDashConfig:
    if config_path:
        logger.info(f"Loading configuration from {config_path}...")
    try:
        return load_config(config_path)
    except FileNotFoundError:
        logger.critical(f"Configuration file not found at: {config_path}")
        sys.exit(1)
    except ValidationError as exc:
        logger.critical(
            f"Configuration file '{config_path}' is invalid. Please fix the following errors:"
        )
        logger.error(exc)
        sys.exit(1)
    except yaml.YAMLError as exc:
        logger.critical(f"An error occurred while parsing the YAML config: {exc}")
        sys.exit(1)


def _require(parser: argparse.ArgumentParser, args: argparse.Namespace, *names: str) -> None:
    for name in names:
        if getattr(args, name.replace("-", "_")) is None:
            parser.error(f"--{name} is required for the {args.command} command.")


def _split_ids(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _run_offline(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if args.command == "init":
        _scaffold_config(args.output, args.force)
    elif args.command == "templates":
        _emit(get_available_templates())
    elif args.command == "suggest":
        _require(parser, args, "description")
        _emit({"suggested_widgets": suggest_widgets_for_description(args.description)})
    elif args.command == "sql":
        if args.key is None:
            _emit({"validated_templates": list_validated_templates()})
            return
        sql = get_validated_sql(args.key)
        if sql is None:
            logger.error(f"Unknown validated template: {args.key}")
            sys.exit(1)
        print(sql)


def _run_online(args: argparse.Namespace, parser: argparse.ArgumentParser, engine: DashboardEngine) -> bool:
    """Run a command against the platform. Returns whether it succeeded."""

    if args.command == "build":
        _require(parser, args, "name")
        if args.widgets:
            result = engine.build_custom_dashboard(
                args.name, _split_ids(args.widgets), args.description or "", is_shared=args.shared
            )
        else:
            result = engine.build_dashboard(
                args.name, args.layout, args.description or "", is_shared=args.shared
            )
        _emit(result.model_dump(mode="json") | {"status": result.status})
        return result.success

    if args.command == "validate-report":
        _require(parser, args, "report-id")
        if args.no_auto_fix:
            report = engine.validate_report(args.report_id)
        else:
            report = engine.validate_and_fix_report(args.report_id, args.max_attempts)
        _emit(report)
        return report.valid

    if args.command == "fix-report":
        _require(parser, args, "report-id", "sql")
        fixed = engine.fix_report(args.report_id, args.sql)
        _emit({"report_id": args.report_id, "updated": fixed})
        return fixed

    if args.command == "validate-dashboard":
        _require(parser, args, "dashboard-id")
        outcome = engine.validate_dashboard(args.dashboard_id, auto_fix=not args.no_auto_fix)
        _emit(outcome)
        return outcome.valid

    if args.command == "create-report":
        _require(parser, args, "name", "sql")
        chart = None
        if args.chart_type is not None:
            chart = ChartConfig(chart_type=args.chart_type, x_axis=args.x_axis, y_axis=args.y_axis)
        created = engine.create_validated_report(args.name, args.sql, args.fallback, chart)
        _emit(created)
        return created.validated

    raise AssertionError(f"Unhandled command: {args.command}")


def main() -> None:
    """The main function that executes when the `halodash` command is run."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="halodash: build and self-heal HaloPSA dashboards and reports.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("command", choices=COMMANDS, help="The command to execute.")
    parser.add_argument("--config", help="Path to a halodash YAML config file.")
    parser.add_argument("--name", help="Dashboard or report name (build/create-report).")
    parser.add_argument(
        "--layout",
        default="service_desk",
        help="Layout preset for the `build` command (default: %(default)s).",
    )
    parser.add_argument(
        "--widgets",
        help="Comma-separated widget template ids for `build`. Overrides --layout.",
    )
    parser.add_argument("--description", help="Dashboard description, or the text for `suggest`.")
    parser.add_argument("--shared", action="store_true", help="Share the built dashboard.")
    parser.add_argument("--report-id", type=int, help="Report id (validate-report/fix-report).")
    parser.add_argument("--dashboard-id", type=int, help="Dashboard id (validate-dashboard).")
    parser.add_argument(
        "--max-attempts", type=int, help="Maximum executions for validate-report (default from config)."
    )
    parser.add_argument("--no-auto-fix", action="store_true", help="Validate without applying repairs.")
    parser.add_argument("--sql", help="SQL text (fix-report/create-report).")
    parser.add_argument("--fallback", help="Validated template key used if --sql cannot be repaired.")
    parser.add_argument("--chart-type", type=int, help="Chart type: 0=bar 1=line 2=pie 3=doughnut.")
    parser.add_argument("--x-axis", help="Chart x-axis column.")
    parser.add_argument("--y-axis", help="Chart y-axis column.")
    parser.add_argument("--key", help="Validated template key for the `sql` command.")
    parser.add_argument(
        "--output",
        default="halodash.yml",
        help="Target path for the `init` command (default: %(default)s).",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite any existing file when using the `init` command.",
    )

    args: argparse.Namespace = parser.parse_args()

    if args.command in OFFLINE_COMMANDS:
        _run_offline(args, parser)
        return

    config = _load_config(args.config)
    try:
        engine = DashboardEngine.from_config(config)
    except ValueError as exc:
        logger.critical(str(exc))
        sys.exit(1)

    try:
        succeeded = _run_online(args, parser, engine)
    except (HaloDashError, ValueError) as exc:
        logger.error(format_error(exc))
        sys.exit(1)

    if not succeeded:
        sys.exit(1)


if __name__ == "__main__":
    main()
