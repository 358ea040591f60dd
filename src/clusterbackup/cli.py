"""
Command-line interface and programmatic entry points for clusterbackup.

    clusterbackup run CONFIG [--output-dir DIR] [--include TYPE]... [--exclude TYPE]...
                             [--max-workers N] [--strip PATH]... [--timeout DURATION]
                             [--no-dependencies] [--kubeconfig PATH] [--context NAME] [-v]
    clusterbackup validate CONFIG

Logs go to stderr, so ``clusterbackup run config.yaml > backup.yaml`` captures
only the YAML stream.
"""

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from clusterbackup.bootstrap import load_builtin_plugins
from clusterbackup.core.exceptions import ConfigurationError
from clusterbackup.core.logger import configure_root_logger, get_logger
from clusterbackup.models.backup_config import BackupConfig
from clusterbackup.orchestrator import BackupOrchestrator
from clusterbackup.readers.registry import ReaderRegistry
from clusterbackup.sinks.registry import SinkRegistry
from clusterbackup.wiring.reader_registry import ReaderWiringRegistry
from clusterbackup.wiring.sink_registry import SinkWiringRegistry

logger = get_logger(__name__)

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: str) -> float:
    """Seconds from ``"90"``, ``"90s"``, ``"10m"`` or ``"1h"``."""
    match = _DURATION.match(value)
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r} (use e.g. 600, 90s, 10m, 1h)")
    seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise argparse.ArgumentTypeError("timeout must be greater than 0")
    return seconds


def load_config_file(config_path: str) -> Dict[str, Any]:
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, "r", encoding="utf-8") as f:
        if config_file.suffix == ".json":
            config = json.load(f)
        elif config_file.suffix in (".yaml", ".yml"):
            config = yaml.safe_load(f)
        else:
            raise ConfigurationError(
                f"Unsupported config format: {config_file.suffix}. Use .json or .yaml"
            )

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return config


def apply_overrides(config: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge command-line style overrides into a raw config dict.

    Supported keys: output_dir, includes (replace), excludes and strip_fields
    (extend), max_workers, timeout_seconds, dependencies, verbose, log_level,
    kubeconfig, context.
    """
    merged = dict(config)
    if not overrides:
        return merged

    if overrides.get("output_dir"):
        merged["sink"] = {"system_type": "directory", "output_dir": overrides["output_dir"]}
    if overrides.get("includes"):
        merged["includes"] = list(overrides["includes"])
    if overrides.get("excludes"):
        merged["excludes"] = list(merged.get("excludes") or []) + list(overrides["excludes"])
    if overrides.get("strip_fields"):
        merged["strip_fields"] = list(merged.get("strip_fields") or []) + list(overrides["strip_fields"])

    for key in ("max_workers", "timeout_seconds", "dependencies", "verbose", "log_level"):
        if overrides.get(key) is not None:
            merged[key] = overrides[key]

    if overrides.get("kubeconfig") or overrides.get("context"):
        reader = dict(merged.get("reader") or {"kind": "kube_api"})
        if reader.get("kind", "kube_api") != "kube_api":
            raise ConfigurationError("--kubeconfig/--context only apply to the kube_api reader")
        for key in ("kubeconfig", "context"):
            if overrides.get(key):
                reader[key] = overrides[key]
        merged["reader"] = reader

    return merged


def main(
    config_path: Optional[str] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Main entry point for running a backup.

    Can be called with either:
    - A config file path (JSON/YAML)
    - A config dictionary (programmatic)

    With neither, the defaults apply: current kubeconfig context, Notebooks
    and DSPAs, YAML stream on stdout.

    Returns:
        ``BackupReport.to_dict()``: status, per-type stats and errors.

    Example:
        >>> from clusterbackup.cli import main
        >>> result = main(config_dict={"sink": {"system_type": "directory", "output_dir": "/tmp/bk"}})
        >>> result["status"]
        'success'
    """
    try:
        if config_dict is not None:
            config = dict(config_dict)
            logger.debug("Using provided config dictionary")
        elif config_path:
            config = load_config_file(config_path)
            logger.debug(f"Loaded config from {config_path}")
        else:
            config = {}

        config = apply_overrides(config, overrides)
        backup_name = config.get("backup_name") or "backup"
        logger.info(f"Starting backup: {backup_name}")

        report = BackupOrchestrator().run(config)
        result = report.to_dict()

        logger.info(f"Backup finished with status: {result['status']}")
        return result

    except Exception as e:
        logger.error(f"Backup failed: {e}")
        raise


def validate_config(config_path: str, *, overrides: Optional[Dict[str, Any]] = None) -> bool:
    """
    Validate a configuration without contacting the cluster.

    Checks the schema, the strip paths and that the configured reader and
    sink are registered.

    Raises:
        FileNotFoundError, ConfigurationError, pydantic.ValidationError
    """
    try:
        config = apply_overrides(load_config_file(config_path), overrides)
        logger.info(f"Validating config: {config_path}")

        cfg = BackupConfig.model_validate(config)

        load_builtin_plugins()
        _ = ReaderRegistry.get(cfg.reader.kind)
        _ = ReaderWiringRegistry.get(cfg.reader.kind)
        _ = SinkRegistry.get(cfg.sink.system_type)
        _ = SinkWiringRegistry.get(cfg.sink.system_type)

        logger.info(
            "Configuration is valid: %d resource type(s): %s",
            len(cfg.resource_types()),
            ", ".join(ref.kind_key for ref in cfg.resource_types()) or "-",
        )
        return True

    except Exception as e:
        logger.error(f"Config validation failed: {e}")
        raise


def _add_override_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output-dir", help="Write one YAML file per object under DIR (default: stdout stream)")
    parser.add_argument(
        "--include",
        action="append",
        dest="includes",
        metavar="TYPE",
        help="Workload type to back up, e.g. notebooks.kubeflow.org (repeatable; replaces the defaults)",
    )
    parser.add_argument(
        "--exclude", action="append", dest="excludes", metavar="TYPE", help="Workload type to skip (repeatable)"
    )
    parser.add_argument(
        "--max-workers", type=int, metavar="N", help="Concurrent resolver workers (0 = CPU count, max 20)"
    )
    parser.add_argument(
        "--strip",
        action="append",
        dest="strip_fields",
        metavar="PATH",
        help="Extra field path to strip, e.g. .metadata.labels (repeatable)",
    )
    parser.add_argument(
        "--timeout", type=parse_duration, dest="timeout_seconds", metavar="DURATION", help="Run deadline (default 10m)"
    )
    parser.add_argument(
        "--no-dependencies",
        action="store_false",
        dest="dependencies",
        default=None,
        help="Back up workloads only, without ConfigMaps/Secrets/PVCs",
    )
    parser.add_argument("--kubeconfig", help="Path to the kubeconfig file")
    parser.add_argument("--context", help="kubeconfig context to use")


def _overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    keys = (
        "output_dir",
        "includes",
        "excludes",
        "max_workers",
        "strip_fields",
        "timeout_seconds",
        "dependencies",
        "kubeconfig",
        "context",
    )
    overrides = {key: getattr(args, key, None) for key in keys}
    if getattr(args, "verbose", False):
        overrides["verbose"] = True
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clusterbackup",
        description="Back up cluster workloads and the ConfigMaps, Secrets and PVCs they reference",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level for clusterbackup loggers"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Run a backup")
    run_parser.add_argument("config", nargs="?", help="Path to configuration file (JSON or YAML)")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Log discovered instances and dependencies")
    _add_override_arguments(run_parser)

    validate_parser = subparsers.add_parser("validate", help="Validate configuration without running a backup")
    validate_parser.add_argument("config", help="Path to configuration file (JSON or YAML)")
    _add_override_arguments(validate_parser)

    return parser


def cli(argv: Optional[List[str]] = None) -> None:
    """
    Command-line interface for clusterbackup.

    Exit status is 0 when every resource type was backed up (possibly with
    warnings) and 1 when any type failed or the run could not start.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        configure_root_logger(args.log_level)

    overrides = _overrides_from_args(args)

    if args.command == "run":
        try:
            result = main(config_path=args.config, overrides=overrides)
        except (ValidationError, ConfigurationError, FileNotFoundError) as e:
            logger.error(f"Invalid configuration: {e}")
            sys.exit(1)
        except Exception as e:
            logger.error(f"Backup failed: {e}")
            sys.exit(1)
        sys.exit(0 if result.get("status") == "success" else 1)

    elif args.command == "validate":
        try:
            validate_config(args.config, overrides=overrides)
            sys.exit(0)
        except Exception as e:
            logger.error(f"Validation failed: {e}")
            sys.exit(1)

    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    cli()
