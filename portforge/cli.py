#!/usr/bin/env python3
# portforge/cli.py
"""
portforge CLI

Subcommands:
- build <spec> [--checks-only]   build one package; all of its dependencies
                                 must already be installed
- remove <spec> [--purge] [--force]
- list [--triplet T]             installed packages

Exit codes: 0 success, 1 failed/cascaded build or user error,
2 invariant violation (corrupt state, inconsistent arguments).
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from portforge import __version__
from portforge.build import (
    BuildOrchestrator,
    BuildResult,
    create_error_message,
    create_user_troubleshooting_message,
)
from portforge.buildsystem import CommandBuildRunner
from portforge.checks import InvariantViolation, PortforgeError
from portforge.config import Config, load as load_config
from portforge.lint import PostBuildLinter
from portforge.logging import configure_logging, get_logger
from portforge.package_spec import PackageSpec
from portforge.paragraphs import load_port
from portforge.remove import remove_package
from portforge.status_db import StatusDatabase
from portforge.triplet import load_available_triplets

logger = get_logger("cli")

console = Console(highlight=False, emoji=False)
err_console = Console(stderr=True, highlight=False, emoji=False)


def print_err(msg: str) -> None:
    err_console.print(msg, style="bold red", markup=False)


def print_ok(msg: str) -> None:
    console.print(msg, style="green", markup=False)


# -----------------------
# Helpers
# -----------------------
def _parse_spec(cfg: Config, text: str) -> PackageSpec:
    available = load_available_triplets(cfg.paths.triplets)
    spec = PackageSpec.parse(text, cfg.default_triplet, available or None)
    if available and spec.triplet.canonical_name not in available:
        raise PortforgeError(
            f"invalid triplet {spec.triplet}; available triplets: {', '.join(sorted(available))}"
        )
    return spec


# -----------------------
# Commands
# -----------------------
def cmd_build(cfg: Config, args: argparse.Namespace) -> int:
    spec = _parse_spec(cfg, args.package)
    paths = cfg.paths
    linter = PostBuildLinter(cfg)

    if args.checks_only:
        orch = BuildOrchestrator(cfg, StatusDatabase(paths.status_file), CommandBuildRunner(cfg), linter)
        errors = orch.check_only(spec)
        if errors:
            print_err(f"Post-build checks for {spec} found {errors} error(s)")
            return 1
        print_ok(f"Post-build checks for {spec} passed")
        return 0

    port_dir = paths.port_dir(spec.name)
    source = load_port(port_dir)
    status_db = StatusDatabase.load_checked(paths.status_file)
    orch = BuildOrchestrator(cfg, status_db, CommandBuildRunner(cfg), linter)
    result = orch.build(spec, source, port_dir)

    if result.code is BuildResult.CASCADED_DUE_TO_MISSING_DEPENDENCIES:
        print_err("The build command requires all dependencies to be already installed.")
        console.print("The following dependencies are missing:", markup=False)
        console.print("")
        for dep in result.unmet_dependencies:
            console.print(f"    {dep}", markup=False)
        console.print("")
        return 1

    if result.code is not BuildResult.SUCCEEDED:
        print_err(create_error_message(result.code, spec))
        console.print(create_user_troubleshooting_message(spec), markup=False)
        return 1

    print_ok(f"Package {spec} is installed")
    return 0


def cmd_remove(cfg: Config, args: argparse.Namespace) -> int:
    spec = _parse_spec(cfg, args.package)
    # half-installed entries are exactly what remove is for, so no consistency check here
    status_db, report = StatusDatabase.load(cfg.paths.status_file)
    if report.skipped:
        logger.warning("%d malformed status entries were skipped", report.skipped)
    result = remove_package(status_db, cfg.paths, spec, purge=args.purge, force=args.force)
    if result.removed:
        print_ok(f"Package {spec} was removed")
    if result.purged:
        print_ok(f"Package directory for {spec} was purged")
    return 0


def cmd_list(cfg: Config, args: argparse.Namespace) -> int:
    status_db, report = StatusDatabase.load(cfg.paths.status_file)
    entries = sorted(status_db.installed(), key=lambda e: str(e.spec))
    if args.triplet:
        entries = [e for e in entries if e.spec.triplet.canonical_name == args.triplet.lower()]
    if not entries:
        console.print("No packages are installed.", markup=False)
        return 0
    table = Table(show_header=True, header_style="bold")
    table.add_column("Package", no_wrap=True)
    table.add_column("Version", no_wrap=True)
    table.add_column("Description", overflow="fold")
    for e in entries:
        para = e.paragraph
        table.add_row(
            Text(str(e.spec)),
            Text(para.version if para else ""),
            Text((para.description if para else "").split("\n")[0]),
        )
    console.print(table)
    if report.half_installed:
        print_err("half-installed: " + ", ".join(str(s) for s in report.half_installed))
    return 0


# -----------------------
# Argparse wiring
# -----------------------
def make_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="portforge", description="Build packages from source recipes")
    ap.add_argument("--version", action="version", version=f"portforge {__version__}")
    ap.add_argument("--config", help="path to a YAML config file")
    ap.add_argument("--root", help="portforge root directory (overrides config)")
    ap.add_argument("--triplet", dest="default_triplet", help="default triplet for specs without one")
    ap.add_argument("--debug", action="store_true", help="show build tool output and debug logs")
    sub = ap.add_subparsers(dest="cmd")

    p_build = sub.add_parser("build", help="build a package whose dependencies are installed")
    p_build.add_argument("package", help="name or name:triplet")
    p_build.add_argument("--checks-only", action="store_true", help="only run post-build checks")

    p_remove = sub.add_parser("remove", help="mark a package not-installed")
    p_remove.add_argument("package")
    p_remove.add_argument("--purge", action="store_true", help="also delete the built package")
    p_remove.add_argument("--force", action="store_true", help="remove even if other packages depend on it")

    p_list = sub.add_parser("list", help="list installed packages")
    p_list.add_argument("--triplet", help="only this triplet")

    return ap


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.root:
        out["root"] = args.root
    if args.default_triplet:
        out["default_triplet"] = args.default_triplet
    if args.debug:
        out["debug"] = True
    return out


COMMANDS = {
    "build": cmd_build,
    "remove": cmd_remove,
    "list": cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return 1

    try:
        cfg = load_config(args.config, overrides=_overrides(args), fatal=True)
        configure_logging(cfg.get("logging"), debug=cfg.debug)
        return COMMANDS[args.cmd](cfg, args)
    except InvariantViolation as e:
        print_err(f"Fatal: {e}")
        return 2
    except PortforgeError as e:
        print_err(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
