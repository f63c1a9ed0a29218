"""Command line interface for regscript.

    regscript run (--file PATH | --template NAME) [--dry-run] [--verbose]
                  [--interactive] [--param KEY=VALUE ...] [--json]
    regscript list-templates
    regscript validate PATH
    regscript create NAME [--type json|py] [-o PATH]

``run`` exits 1 when the report is not successful and 2 on input errors
(missing file, unknown template, bad arguments).
"""

import argparse
import json
import logging
import re
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from regscript.core.config import settings
from regscript.engines import (
    ScriptEngine,
    ScriptNotFoundError,
    ScriptValidationError,
    TemplateCatalog,
    TemplateNotFoundError,
    generate_script_summary,
    load_script_file,
)
from regscript.schemas import ExecutionOptions, ExecutionReport, StepStatus

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INPUT_ERROR = 2


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _parse_params(pairs: Sequence[str] | None) -> dict[str, Any]:
    """KEY=VALUE pairs; values are JSON when they parse as JSON, strings otherwise."""
    params: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise CLIError(f"invalid --param {pair!r}; expected KEY=VALUE")
        try:
            params[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            params[key.strip()] = raw
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="regscript", description="Bitcoin regtest scenario scripts")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a script file or a built-in template")
    source = run_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", "-f", help="Path to a .json or .py script")
    source.add_argument("--template", "-t", help="Template name (see list-templates)")
    run_parser.add_argument("--dry-run", action="store_true", help="Preview without mutating the node")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    run_parser.add_argument(
        "--interactive", "-i", action="store_true", help="Confirm each step (or the whole program)"
    )
    run_parser.add_argument(
        "--param", "-p", action="append", metavar="KEY=VALUE", help="Initial script variable (repeatable)"
    )
    run_parser.add_argument("--json", action="store_true", help="Print the execution report as JSON")

    subparsers.add_parser("list-templates", help="List available templates")

    validate_parser = subparsers.add_parser("validate", help="Check a script without running it")
    validate_parser.add_argument("path", help="Path to a .json or .py script")

    create_parser = subparsers.add_parser("create", help="Write a new script skeleton")
    create_parser.add_argument("name", help="Script name")
    create_parser.add_argument("--type", choices=("json", "py"), default="json", help="Script format")
    create_parser.add_argument("--output", "-o", help="Output path (default: derived from the name)")
    return parser


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _print_report(report: ExecutionReport) -> None:
    status = "SUCCESS" if report.success else "FAILED"
    mode = " (dry run)" if report.dry_run else ""
    print(f"\n{report.script_name}: {status}{mode} in {report.duration_ms} ms")
    marks = {StepStatus.OK: "ok", StepStatus.SKIPPED: "skipped", StepStatus.FAILED: "FAILED"}
    for outcome in report.steps:
        print(f"  [{marks[outcome.status]:>7}] step {outcome.index} {outcome.action}")
    if report.error is not None:
        print(f"\nError ({report.error.kind}): {report.error.message}")
        for detail in report.error.details:
            print(f"  - {detail}")
    if report.wallets:
        print(f"\nWallets: {', '.join(report.wallets)}")
    for tx in report.transactions.values():
        sim = " simulated" if tx.simulated else ""
        print(f"Transaction {tx.id}: {tx.status.value}{sim} {tx.broadcast_txid or ''}".rstrip())
    if report.blocks:
        print(f"Blocks mined: {len(report.blocks)}")


def _print_json(report: ExecutionReport) -> None:
    data = report.model_dump(mode="python")
    data["duration_ms"] = report.duration_ms
    print(json.dumps(data, indent=2, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_run(args: argparse.Namespace, engine: ScriptEngine | None = None) -> int:
    options = ExecutionOptions(
        dry_run=args.dry_run,
        verbose=args.verbose,
        interactive=args.interactive,
        params=_parse_params(args.param),
    )
    engine = engine or ScriptEngine()
    try:
        if args.file:
            report = engine.run_file(args.file, options)
        else:
            if options.dry_run and not args.json:
                print("Dry run - script would do the following:")
                print(generate_script_summary(engine.catalog.get(args.template)))
            report = engine.run_template(args.template, options)
    finally:
        engine.close()
    if args.json:
        _print_json(report)
    else:
        _print_report(report)
    return report.exit_code


def cmd_list_templates(catalog: TemplateCatalog | None = None) -> int:
    catalog = catalog or TemplateCatalog.from_settings(settings)
    for script in catalog.scripts():
        print(f"{script.name} ({script.kind.value}, v{script.version})")
        if script.description:
            print(f"    {script.description}")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        script = load_script_file(args.path)
    except ScriptValidationError as e:
        print(f"{args.path}: {len(e.errors)} problem(s)")
        for message in e.messages:
            print(f"  - {message}")
        return EXIT_FAILED
    print(f"{args.path}: OK")
    print(generate_script_summary(script))
    return EXIT_OK


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "script"


def _skeleton(name: str, kind: str) -> str:
    if kind == "json":
        doc = {
            "name": name,
            "description": "Describe what this scenario does",
            "version": "1.0.0",
            "variables": {"amount": 1.0},
            "steps": [
                {"action": "CREATE_WALLET", "params": {"name": "alice"}},
                {"action": "CREATE_WALLET", "params": {"name": "bob"}},
                {"action": "MINE_BLOCKS", "params": {"count": 101, "toWallet": "alice"}},
                {
                    "action": "CREATE_TRANSACTION",
                    "params": {"fromWallet": "alice", "outputs": [{"bob": "{{ amount }}"}], "txId": "payment"},
                },
                {"action": "SIGN_TRANSACTION", "params": {"txId": "payment", "signerWallet": "alice"}},
                {"action": "BROADCAST_TRANSACTION", "params": {"txId": "payment"}},
                {"action": "MINE_BLOCKS", "params": {"count": 1, "toWallet": "alice"}},
            ],
        }
        return json.dumps(doc, indent=2) + "\n"
    return (
        f'"""\n@name {name}\n@description Describe what this scenario does\n@version 1.0.0\n"""\n\n\n'
        "def run():\n"
        '    wallet_service.create_wallet("alice")\n'
        '    wallet_service.create_wallet("bob")\n'
        '    wallet_service.mine_blocks(101, to_wallet="alice")\n'
        '    tx = transaction_service.create_transaction("alice", [{wallets["bob"].address: 1.0}])\n'
        '    transaction_service.sign_transaction(tx.id, "alice")\n'
        "    transaction_service.broadcast_transaction(tx.id)\n"
        '    wallet_service.mine_blocks(1, to_wallet="alice")\n'
        '    log.info("sent 1 BTC from alice to bob")\n'
        "    return tx.id\n"
    )


def cmd_create(args: argparse.Namespace) -> int:
    path = Path(args.output) if args.output else Path(f"{_slug(args.name)}.{args.type}")
    if path.exists():
        raise CLIError(f"{path} already exists")
    path.write_text(_skeleton(args.name, args.type), encoding="utf-8")
    print(f"Created {path}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    verbose = getattr(args, "verbose", False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "run":
            return cmd_run(args)
        if args.command == "list-templates":
            return cmd_list_templates()
        if args.command == "validate":
            return cmd_validate(args)
        if args.command == "create":
            return cmd_create(args)
    except (ScriptNotFoundError, TemplateNotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        if isinstance(e, TemplateNotFoundError) and e.available:
            print(f"available templates: {', '.join(e.available)}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except CLIError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    parser.error(f"unknown command {args.command}")
    return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
