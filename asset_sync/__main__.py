"""CLI to sync the asset register and show due maintenance."""

from __future__ import annotations

from typing import List, Optional

from asset_sync.cli import (
    AssetSyncCLI,
    CalendarCommand,
    DueCommand,
    EndpointCommand,
    SyncCommand,
)


def main(argv: Optional[List[str]] = None) -> int:
    cli = AssetSyncCLI(commands=[SyncCommand(), DueCommand(), CalendarCommand(), EndpointCommand()])
    return cli.run(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
