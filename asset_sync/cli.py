"""OO-style CLI for the asset sync client."""

from __future__ import annotations

import argparse
import datetime as _dt
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from core.cli_errors import CLIError, ExitCode, ValidationError, handle_error
from core.constants import DEFAULT_DUE_WINDOW_DAYS
from core.date_utils import parse_date, parse_month

from .cache import LocalCache
from .client import AssetSyncClient
from .endpoints import EndpointResolver
from .models import AssetRecord
from .recurrence import calendar_window, due_alerts, materialize_calendar
from .settings import Settings, load_settings, save_manual_override
from .storage import FileStorage


class Context:
    """Everything a command needs, built lazily from settings."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 today: Optional[_dt.date] = None) -> None:
        self.settings = settings
        self.session = session
        self.today = today or _dt.date.today()
        self._client: Optional[AssetSyncClient] = None

    @property
    def client(self) -> AssetSyncClient:
        if self._client is None:
            storage = FileStorage(self.settings.cache_dir, self.settings.storage_quota)
            self._client = AssetSyncClient(
                EndpointResolver.from_settings(self.settings, session=self.session),
                LocalCache(storage),
            )
        return self._client

    def records(self, offline: bool) -> List[AssetRecord]:
        if offline:
            return self.client.cached_assets()
        return self.client.fetch_assets().records


class Command:
    name: str = ""
    help: str = ""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        ...

    def run(self, args: argparse.Namespace, ctx: Context) -> Any:
        raise NotImplementedError


class SyncCommand(Command):
    name = "sync"
    help = "Fetch assets, reconcile with the local cache, and store the result."

    def run(self, args: argparse.Namespace, ctx: Context):
        result = ctx.client.fetch_assets()
        return {
            "offline": result.offline,
            "error": result.error,
            "cacheTier": None if result.offline else result.tier,
            "count": len(result.records),
            "assets": [
                {"id": r.id, "assetId": r.asset_id, "name": r.name, "status": r.status}
                for r in result.records
            ],
        }


def _offline_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--offline", action="store_true", help="Use the local cache only")


class DueCommand(Command):
    name = "due"
    help = "List overdue and upcoming maintenance/verification dates."

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--today", help="Reference date YYYY-MM-DD (default: today)")
        parser.add_argument("--days", type=int, default=DEFAULT_DUE_WINDOW_DAYS, help="Look-ahead window in days")
        _offline_flag(parser)

    def run(self, args: argparse.Namespace, ctx: Context):
        today = ctx.today
        if args.today:
            today = parse_date(args.today)
            if today is None:
                raise ValidationError(f"Invalid date: {args.today}", hint="Use YYYY-MM-DD")
        alerts = due_alerts(ctx.records(args.offline), today, args.days)
        return {
            "today": today.isoformat(),
            "alerts": [
                {
                    "assetId": a.asset_id,
                    "kind": a.kind,
                    "date": a.date.isoformat(),
                    "daysUntil": a.days_until,
                    "overdue": a.overdue,
                }
                for a in alerts
            ],
        }


class CalendarCommand(Command):
    name = "calendar"
    help = "Show the 6-week maintenance calendar grid for a month."

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--month", help="Month YYYY-MM (default: current month)")
        _offline_flag(parser)

    def run(self, args: argparse.Namespace, ctx: Context):
        if args.month:
            ym = parse_month(args.month)
            if ym is None:
                raise ValidationError(f"Invalid month: {args.month}", hint="Use YYYY-MM")
        else:
            ym = (ctx.today.year, ctx.today.month)
        year, month = ym
        start, end = calendar_window(year, month)
        entries = materialize_calendar(ctx.records(args.offline), year, month)
        return {
            "month": f"{year:04d}-{month:02d}",
            "start": start.isoformat(),
            "end": end.isoformat(),
            "entries": [
                {
                    "date": e.date.isoformat(),
                    "assetId": e.asset_id,
                    "kind": e.kind,
                    "recurring": e.recurring,
                    "note": e.note,
                }
                for e in entries
            ],
        }


class EndpointCommand(Command):
    name = "endpoint"
    help = "Show or change the manual API address override."

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        sub = parser.add_subparsers(dest="endpoint_action")
        sub.required = False
        sub.add_parser("show", help="Show the candidate API addresses in order")
        p_set = sub.add_parser("set", help="Persist a manual API address override")
        p_set.add_argument("url")
        sub.add_parser("clear", help="Remove the manual override")

    def run(self, args: argparse.Namespace, ctx: Context):
        action = getattr(args, "endpoint_action", None) or "show"
        if action == "set":
            save_manual_override(ctx.settings, args.url)
        elif action == "clear":
            save_manual_override(ctx.settings, None)
        resolver = EndpointResolver.from_settings(ctx.settings, session=ctx.session)
        return {
            "override": ctx.settings.manual_override or None,
            "config": ctx.settings.config_path,
            "candidates": resolver.candidate_bases(),
        }


class AssetSyncCLI:
    """Dispatcher for asset sync subcommands."""

    def __init__(
        self,
        commands: List[Command],
        settings_loader: Callable[..., Settings] = load_settings,
        session: Optional[requests.Session] = None,
        env: Optional[Mapping[str, str]] = None,
        today: Optional[_dt.date] = None,
    ) -> None:
        self.commands = {cmd.name: cmd for cmd in commands}
        self.settings_loader = settings_loader
        self.session = session
        self.env = env
        self.today = today
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description="Asset register sync client.")
        parser.add_argument("--config", help="Path to settings.yaml (optional)")
        parser.add_argument("--api", help="API address for this run only (overrides settings)")
        parser.add_argument("--cache-dir", help="Local cache directory (overrides settings)")
        parser.add_argument("--out", help="Path to write JSON output (default stdout)")
        parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
        parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

        subparsers = parser.add_subparsers(dest="command_name")
        subparsers.required = True
        for cmd in self.commands.values():
            sub = subparsers.add_parser(cmd.name, help=cmd.help, description=cmd.help)
            cmd.add_arguments(sub)
            sub.set_defaults(command=cmd)
        return parser

    def _settings(self, args: argparse.Namespace) -> Settings:
        settings = self.settings_loader(args.config, env=self.env)
        if args.api:
            settings.manual_override = args.api.strip()
        if args.cache_dir:
            settings.cache_dir = args.cache_dir
        return settings

    def run(self, argv: Optional[List[str]] = None) -> int:
        args = self.parser.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
        )
        cmd: Command = args.command
        try:
            ctx = Context(self._settings(args), session=self.session, today=self.today)
            payload: Dict[str, Any] = cmd.run(args, ctx)
        except CLIError as exc:
            return handle_error(exc, verbose=args.verbose)
        except KeyboardInterrupt:
            print("\nInterrupted.", file=sys.stderr)
            return ExitCode.INTERRUPTED
        except Exception as exc:
            return handle_error(exc, verbose=args.verbose)

        json_text = json.dumps(payload, indent=2 if args.pretty else None, ensure_ascii=False)
        if args.out:
            Path(args.out).write_text(json_text, encoding="utf-8")
        else:
            print(json_text)
        return 0
