"""Command-line interface for distributing contact files to agents."""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence

from agentdist.config import Settings, load_settings
from agentdist.persistence import DistributionStore
from agentdist.pipeline import DistributionPipeline


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Distribute contact lists across active agents")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path (default from AGENTDIST_DB_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    distribute = subparsers.add_parser("distribute", help="Upload a CSV/XLS/XLSX file and distribute its rows")
    distribute.add_argument("file", type=Path, help="Path to the contact file")
    distribute.add_argument("--uploaded-by", required=True, help="Identity recorded on the upload")
    distribute.add_argument("--content-type", default=None, help="Override the detected MIME type")

    add_agent = subparsers.add_parser("add-agent", help="Register an agent")
    add_agent.add_argument("name", help="Agent display name")
    add_agent.add_argument("--email", default=None, help="Agent email")
    add_agent.add_argument("--inactive", action="store_true", help="Create the agent as inactive")

    status = subparsers.add_parser("set-agent-status", help="Change an agent's status")
    status.add_argument("agent_id", help="Agent identifier")
    status.add_argument("status", help="New status (e.g. active, inactive)")

    subparsers.add_parser("agents", help="List agents with their assigned item counts")

    history = subparsers.add_parser("history", help="List recent uploads")
    history.add_argument("--limit", type=int, default=20, help="Maximum uploads to show")

    assigned = subparsers.add_parser("assigned", help="Show one agent's assigned items")
    assigned.add_argument("agent_id", help="Agent identifier")
    assigned.add_argument("--page", type=_positive_int, default=1, help="1-based page number")
    assigned.add_argument("--limit", type=_positive_int, default=None, help="Items per page")
    return parser.parse_args(argv)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {raw!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def _dump(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run(args: argparse.Namespace, store: DistributionStore, settings: Settings) -> int:
    if args.command == "distribute":
        content_type = args.content_type or mimetypes.guess_type(args.file.name)[0]
        contents = args.file.read_bytes()
        if len(contents) > settings.max_upload_bytes:
            print(f"File too large: {len(contents)} bytes (limit {settings.max_upload_bytes})")
            return 1
        result = DistributionPipeline(store, settings=settings).run(
            contents,
            filename=args.file.name,
            uploaded_by=args.uploaded_by,
            content_type=content_type,
        )
        payload: dict[str, Any] = {
            "success": result.success,
            "message": result.message,
            "total_records": result.total_records,
            "distribution": result.distribution,
        }
        if result.manifest is not None:
            payload["upload_id"] = result.manifest.upload_id
            payload["status"] = result.manifest.status
        if not result.success:
            payload["reason"] = result.reason
            payload["errors"] = result.errors
        _dump(payload)
        return 0 if result.success else 1

    if args.command == "add-agent":
        agent = store.add_agent(name=args.name, email=args.email, status="inactive" if args.inactive else "active")
        _dump(asdict(agent))
        return 0

    if args.command == "set-agent-status":
        try:
            agent = store.set_agent_status(args.agent_id, args.status)
        except KeyError:
            print(f"Agent {args.agent_id} not found")
            return 1
        except ValueError as exc:
            print(exc)
            return 1
        _dump(asdict(agent))
        return 0

    if args.command == "agents":
        _dump([asdict(agent) for agent in store.list_agents()])
        return 0

    if args.command == "history":
        _dump([asdict(upload) for upload in store.list_uploads(limit=args.limit)])
        return 0

    if args.command == "assigned":
        try:
            page = store.list_assignments(
                args.agent_id,
                page=args.page,
                page_size=args.limit or settings.default_page_size,
            )
        except KeyError:
            print(f"Agent {args.agent_id} not found")
            return 1
        _dump(
            {
                "agent": asdict(page.agent),
                "assigned_lists": [asdict(item) for item in page.items],
                "pagination": {
                    "current_page": page.page,
                    "total_pages": page.total_pages,
                    "total_count": page.total_count,
                    "per_page": page.page_size,
                },
            }
        )
        return 0

    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.log_level)
    with DistributionStore(args.db or settings.db_path) as store:
        return _run(args, store, settings)


if __name__ == "__main__":
    raise SystemExit(main())
