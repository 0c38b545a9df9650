"""Command-line front end for the calculator and the rate editor."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from config import Settings, get_settings
from schemas import RateTable
from services.admin_gate import AdminGate, GateState
from services.calculator import CalculatorController
from services.delta import ChangeDeltaIndicator, PriceChange
from services.errors import AuthDenied, CalculatorError, SubmitError
from services.identity import StoredIdentity
from services.rates_client import RatesClient
from services.selection_cache import (
    JsonFileStorage,
    SelectionCache,
    ThemePreference,
    system_prefers_dark,
)

logger = logging.getLogger(__name__)


def _storage(args: argparse.Namespace, settings: Settings) -> JsonFileStorage:
    return JsonFileStorage(args.state or settings.client_state_path)


def _client(settings: Settings) -> RatesClient:
    return RatesClient(settings.api_base_url, timeout=settings.request_timeout)


def _parse_assignment(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected FIELD=VALUE, got {text!r}")
    return name.strip(), value.strip()


async def run_estimate(args: argparse.Namespace, settings: Settings) -> int:
    changes: list[PriceChange] = []

    def remember(control: str, change: PriceChange | None) -> None:
        if change is not None:
            changes.append(change)

    controller = CalculatorController(
        _client(settings),
        SelectionCache(_storage(args, settings)),
        ChangeDeltaIndicator(delay=settings.indicator_delay_seconds, on_change=remember),
    )
    if not await controller.initialize():
        print(controller.error, file=sys.stderr)
        return 1

    try:
        if args.project:
            controller.select_project(args.project)
        if args.design:
            controller.select_design(args.design)
        for module in args.module:
            controller.toggle_module(module, enabled=True)
        for module in args.drop_module:
            controller.toggle_module(module, enabled=False)

        selection = controller.selection
        cost, timeline = controller.totals()
        print(f"Project type: {selection.project_type or '-'}")
        print(f"Design:       {selection.design_type or '-'}")
        print(f"Modules:      {', '.join(sorted(selection.modules)) or '-'}")
        for change in changes:
            print(f"  {change.control} {change.text}")
        print(f"Total cost:   {cost}")
        print(f"Timeline:     {timeline}")
    finally:
        controller.close()
    return 0


async def run_theme(args: argparse.Namespace, settings: Settings) -> int:
    preference = ThemePreference(_storage(args, settings))
    prefers_dark = system_prefers_dark()
    theme = preference.toggle(prefers_dark) if args.toggle else preference.load(prefers_dark)
    print(theme)
    return 0


async def run_rates(args: argparse.Namespace, settings: Settings) -> int:
    rates = await _client(settings).fetch_rates()
    print(json.dumps(rates.to_document(), indent=2))
    return 0


async def run_admin(args: argparse.Namespace, settings: Settings) -> int:
    identity = StoredIdentity(_storage(args, settings))
    gate = AdminGate(identity, _client(settings), admin_role=settings.admin_role)
    await gate.start()
    try:
        if args.logout:
            identity.logout()
            await gate.settle()
        if args.login:
            try:
                identity.login(args.login)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2
            await gate.settle()

        if gate.state is not GateState.EDITOR:
            print(gate.message, file=sys.stderr)
            return 0 if gate.state is GateState.LOGIN_PROMPT and args.logout else 1

        fields = gate.form_fields
        if not args.set and not args.unset:
            for name, value in fields.items():
                print(f"{name} = {value}")
            return 0

        fields.update(args.set)
        for name in args.unset:
            fields.pop(name, None)
        try:
            print(await gate.save(fields))
        except (SubmitError, AuthDenied) as e:
            print(f"Failed to save rates: {e}", file=sys.stderr)
            return 1
        return 0
    finally:
        gate.close()


async def run_seed(args: argparse.Namespace, settings: Settings) -> int:
    from database import AsyncSessionLocal, Base, engine
    from services.document_store import DocumentStore

    try:
        table = RateTable.model_validate(json.loads(Path(args.file).read_text()))
    except (OSError, ValueError, ValidationError) as e:
        print(f"Cannot seed rates from {args.file}: {e}", file=sys.stderr)
        return 1

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        await DocumentStore(session).set(
            settings.rates_collection, settings.rates_document, table.to_document()
        )
    await engine.dispose()
    print(f"Seeded {settings.rates_collection}/{settings.rates_document}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="calculator", description=__doc__)
    parser.add_argument("--state", type=Path, help="Local state file (default from settings)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    commands = parser.add_subparsers(dest="command", required=True)

    estimate = commands.add_parser("estimate", help="Update the selection and show totals")
    estimate.add_argument("--project", help="Project type identifier")
    estimate.add_argument("--design", help="Design type identifier")
    estimate.add_argument("--module", action="append", default=[], help="Add a module")
    estimate.add_argument("--drop-module", action="append", default=[], help="Remove a module")
    estimate.set_defaults(handler=run_estimate)

    theme = commands.add_parser("theme", help="Show or toggle the theme preference")
    theme.add_argument("--toggle", action="store_true")
    theme.set_defaults(handler=run_theme)

    rates = commands.add_parser("rates", help="Print the current rate table")
    rates.set_defaults(handler=run_rates)

    admin = commands.add_parser("admin", help="View or edit rates (admin role required)")
    admin.add_argument("--login", metavar="TOKEN", help="Log in with an identity token")
    admin.add_argument("--logout", action="store_true")
    admin.add_argument(
        "--set", action="append", default=[], type=_parse_assignment, metavar="FIELD=VALUE",
        help="Set a rate, e.g. hourlyRate=60 or modules.seo=12",
    )
    admin.add_argument("--unset", action="append", default=[], metavar="FIELD")
    admin.set_defaults(handler=run_admin)

    seed = commands.add_parser("seed-rates", help="Write a rate table JSON file into the store")
    seed.add_argument("file", type=Path)
    seed.set_defaults(handler=run_seed)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        return asyncio.run(args.handler(args, get_settings()))
    except CalculatorError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
