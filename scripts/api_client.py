"""Lightweight REST client for the agentdist API."""

from __future__ import annotations

import argparse
import json
import mimetypes
from pathlib import Path

import httpx


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the agentdist REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("file", type=Path, nargs="?", help="CSV/XLS/XLSX contact file to distribute")
    parser.add_argument("--user", required=True, help="Caller identity sent as X-User-Id")
    parser.add_argument("--history", action="store_true", help="List recent uploads and exit")
    parser.add_argument("--upload", metavar="UPLOAD_ID", help="Show the distribution of one upload and exit")
    parser.add_argument("--agent", metavar="AGENT_ID", help="Show an agent's assigned items and exit")
    parser.add_argument("--page", type=int, default=1, help="Page for --agent")
    parser.add_argument("--limit", type=int, default=10, help="Page size for --agent")
    args = parser.parse_args()

    headers = {"X-User-Id": args.user}
    with httpx.Client(base_url=args.base_url, headers=headers) as client:
        if args.history or args.upload or args.agent:
            if args.history:
                resp = client.get("/api/upload/history")
                resp.raise_for_status()
                print(json.dumps(resp.json(), indent=2))
            if args.upload:
                resp = client.get(f"/api/upload/{args.upload}/distribution")
                if resp.status_code == 404:
                    raise SystemExit(f"upload {args.upload} not found")
                resp.raise_for_status()
                print(json.dumps(resp.json(), indent=2))
            if args.agent:
                resp = client.get(
                    f"/api/agents/{args.agent}/assigned-lists",
                    params={"page": args.page, "limit": args.limit},
                )
                if resp.status_code == 404:
                    raise SystemExit(f"agent {args.agent} not found")
                resp.raise_for_status()
                print(json.dumps(resp.json(), indent=2))
            return

        if args.file is None:
            raise SystemExit("a contact file is required unless using --history/--upload/--agent")

        content_type = mimetypes.guess_type(args.file.name)[0] or "application/octet-stream"
        files = {"file": (args.file.name, args.file.read_bytes(), content_type)}
        resp = client.post("/api/upload/distribute", files=files)
        payload = resp.json()
        if resp.status_code != 200:
            print("Upload failed:", json.dumps(payload, indent=2))
            raise SystemExit(1)
        data = payload["data"]
        print(f"Distributed {data['total_records']} records across {data['agents_count']} agents")
        for entry in data["distribution"]:
            print(f"  {entry['agent_name']}: {entry['count']}")


if __name__ == "__main__":
    main()
