"""CLI client that triggers raw data syncs on a Labfiles server."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from labfiles.services.datetime_service import format_iso, now_utc, parse_datetime

STATE_FILE = ".labfiles-sync.json"
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


class SyncFailedError(Exception):
    """Raised when the server reports a failed sync."""


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def load_state(state_path: Path) -> dict[str, str]:
    """Load the sync state file (server URL and last sync time)."""
    if not state_path.exists():
        return {}
    state: dict[str, str] = json.loads(state_path.read_text())
    return state


def save_state(state_path: Path, state: dict[str, str]) -> None:
    """Save the sync state file."""
    state_path.write_text(json.dumps(state, indent=2))


class SyncClient:
    """Client for triggering syncs on a Labfiles server."""

    def __init__(self, server_url: str, state_path: Path) -> None:
        self.server_url = server_url.rstrip("/")
        self.state_path = state_path
        self.client = httpx.Client(base_url=self.server_url, timeout=300.0)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def last_sync_time(self) -> datetime | None:
        """Watermark stored by the previous successful sync, if any."""
        raw = load_state(self.state_path).get("last_sync_time")
        return parse_datetime(raw) if raw else None

    def _save_last_sync_time(self, value: datetime) -> None:
        state = load_state(self.state_path)
        state["last_sync_time"] = format_iso(value)
        save_state(self.state_path, state)

    def _post(self, path: str, payload: dict[str, Any] | None) -> dict[str, Any]:
        resp = self.client.post(path, json=payload)
        body: dict[str, Any] = resp.json()
        if resp.status_code >= 400 or not body.get("success", False):
            raise SyncFailedError(body.get("error") or f"HTTP {resp.status_code}")
        return body

    def full_sync(self) -> dict[str, Any]:
        """Run a full sync and store the new watermark."""
        started = now_utc()
        body = self._post("/api/sync/full", None)
        self._save_last_sync_time(started)
        return body

    def incremental_sync(self, since: datetime | None = None) -> dict[str, Any]:
        """Run an incremental sync from *since*, or from the stored watermark.

        With no watermark at all the server performs a full sync.
        """
        if since is None:
            since = self.last_sync_time()
        started = now_utc()
        payload = {"last_sync_time": format_iso(since) if since is not None else None}
        body = self._post("/api/sync/incremental", payload)
        self._save_last_sync_time(started)
        return body


def format_summary(body: dict[str, Any]) -> str:
    """Render a one-line completion message from a sync response."""
    summary = body.get("summary") or {}
    parts = [
        f"total {summary.get('total', 0)}",
        f"created {summary.get('created', 0)}",
        f"updated {summary.get('updated', 0)}",
        f"deleted {summary.get('deleted', 0)}",
    ]
    if summary.get("unchanged") is not None:
        parts.append(f"unchanged {summary['unchanged']}")
    return "Sync complete: " + ", ".join(parts)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="labfiles-sync",
        description="Reconcile the Labfiles raw data directory with its records",
    )
    parser.add_argument("--server", "-s", help="Server URL")
    parser.add_argument(
        "--state",
        default=STATE_FILE,
        help=f"State file holding the last sync time (default: {STATE_FILE})",
    )
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("full", help="Full sync of the raw data directory")
    incremental = subparsers.add_parser("incremental", help="Sync files changed since last run")
    incremental.add_argument("--since", help="Watermark overriding the stored last sync time")

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return

    state_path = Path(args.state).resolve()
    configured_server_url = args.server or load_state(state_path).get("server")
    if not configured_server_url:
        print("Error: No server configured. Pass --server <url>.")
        sys.exit(1)
    try:
        server_url = validate_server_url(configured_server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    state = load_state(state_path)
    if state.get("server") != server_url:
        state["server"] = server_url
        save_state(state_path, state)

    with SyncClient(server_url, state_path) as client:
        try:
            if args.command == "full":
                body = client.full_sync()
            else:
                since = parse_datetime(args.since) if args.since else None
                body = client.incremental_sync(since)
        except (SyncFailedError, httpx.HTTPError, ValueError) as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        print(format_summary(body))


if __name__ == "__main__":
    main()
