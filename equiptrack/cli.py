"""
equiptrack-cli

Small command-line client for the equipment API.

Commands:
  ensure <id>     Create the item if it does not exist yet, otherwise print it.
  seed            Load the demo inventory through the bulk import endpoint.
  history <id>    Print an item's history, oldest first.

Auth precedence:
  1) --token <value>
  2) env EQUIPTRACK_API_TOKEN

Exit codes:
  0 = success
  1 = handled application error (the API rejected the request)
  2 = network/HTTP error
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, Optional, Sequence

import requests

DEFAULT_BASE_URL = "http://localhost:8089/api/v1"

DEMO_INVENTORY: list[dict[str, Any]] = [
    {"id": "EG1616", "name": "0-100psi Transducer", "category": "Transducer", "system_color": "Blue",
     "notes": "Standard Blue System Transducer"},
    {"id": "EG1617", "name": "Data Acquisition Module", "category": "DAQ", "system_color": "Blue"},
    {"id": "EG1618", "name": "0-100psi Transducer", "category": "Transducer", "system_color": "Red"},
    {"id": "EG1619", "name": "0-100psi Transducer (Spare)", "category": "Transducer"},
    {"id": "EQ-001", "name": "Fluke 87V Multimeter", "category": "Measurement", "notes": "Calibrated last month"},
    {"id": "EQ-002", "name": "Tektronix Oscilloscope", "category": "Analysis"},
    {"id": "EQ-003", "name": "Hydraulic Pressure Gauge", "category": "Pressure", "status": "broken",
     "notes": "Leaking seal on connector"},
    {"id": "EQ-004", "name": "Thermal Camera T540", "category": "Imaging"},
    {"id": "EQ-005", "name": "Vibration Analyzer", "category": "Analysis"},
]


class ApiError(Exception):
    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"API error {status_code}")
        self.status_code = status_code
        self.body = body


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="equiptrack-cli", description="Equipment tracker API client.")
    p.add_argument("--base-url", default=os.getenv("EQUIPTRACK_BASE_URL", DEFAULT_BASE_URL),
                   help=f"Base API URL (default: {DEFAULT_BASE_URL})")
    p.add_argument("--token", default=None, help="API token (X-API-Key). Overrides env.")
    p.add_argument("--timeout", type=float, default=15.0, help="HTTP timeout in seconds (default: 15)")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging to stderr.")
    sub = p.add_subparsers(dest="command", required=True)

    ensure = sub.add_parser("ensure", help="Create an item if it is missing.")
    ensure.add_argument("id", help="Equipment id printed on the tag.")
    ensure.add_argument("-n", "--name", help="Name. Defaults to the id.")
    ensure.add_argument("-c", "--category", default="General", help="Category (default: General).")
    ensure.add_argument("-s", "--system-color", default=None, help="Permanent system color.")

    sub.add_parser("seed", help="Load the demo inventory.")

    history = sub.add_parser("history", help="Show an item's history.")
    history.add_argument("id")
    return p.parse_args(argv)


def resolve_token(cli_token: Optional[str]) -> Optional[str]:
    return cli_token or os.getenv("EQUIPTRACK_API_TOKEN") or None


def build_headers(token: Optional[str], content_json: bool = False) -> Dict[str, str]:
    headers: Dict[str, str] = {"Accept": "application/json"}
    if content_json:
        headers["Content-Type"] = "application/json"
    if token:
        headers["X-API-Key"] = token
    return headers


def vprint(enabled: bool, *args: Any) -> None:
    if enabled:
        print(*args, file=sys.stderr)


class Client:
    def __init__(self, session: requests.Session, base_url: str, token: Optional[str], timeout: float,
                 verbose: bool = False) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.verbose = verbose

    def _request(self, method: str, path: str, payload: Any = None, allow: Sequence[int] = ()) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        vprint(self.verbose, f"{method} {url}" + (f" json={payload}" if payload is not None else ""))
        r = self.session.request(
            method,
            url,
            headers=build_headers(self.token, content_json=payload is not None),
            json=payload,
            timeout=self.timeout,
        )
        if r.status_code >= 400 and r.status_code not in allow:
            try:
                body = r.json()
            except ValueError:
                body = r.text
            raise ApiError(r.status_code, body)
        return r

    def get_equipment(self, item_id: str) -> Optional[Dict[str, Any]]:
        r = self._request("GET", f"equipment/{item_id}", allow=(404,))
        return None if r.status_code == 404 else r.json()

    def create_equipment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "equipment", payload).json()

    def bulk_import(self, rows: list[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", "bulk/import", {"rows": rows}).json()

    def history(self, item_id: str) -> list[Dict[str, Any]]:
        return self._request("GET", f"equipment/{item_id}/history").json()


def cmd_ensure(client: Client, args: argparse.Namespace) -> Dict[str, Any]:
    existing = client.get_equipment(args.id)
    if existing:
        return {"status": "exists", "id": existing["id"], "record": existing}
    payload = {"id": args.id, "name": args.name or args.id, "category": args.category}
    if args.system_color:
        payload["system_color"] = args.system_color
    created = client.create_equipment(payload)
    return {"status": "created", "id": created["id"], "record": created}


def cmd_seed(client: Client, args: argparse.Namespace) -> Dict[str, Any]:
    return client.bulk_import(DEMO_INVENTORY)


def cmd_history(client: Client, args: argparse.Namespace) -> list[Dict[str, Any]]:
    return client.history(args.id)


COMMANDS = {"ensure": cmd_ensure, "seed": cmd_seed, "history": cmd_history}


def main(argv: Optional[Sequence[str]] = None, session: Optional[requests.Session] = None) -> int:
    args = parse_args(argv)
    token = resolve_token(args.token)
    client = Client(session or requests.Session(), args.base_url, token, args.timeout, args.verbose)
    try:
        result = COMMANDS[args.command](client, args)
    except ApiError as exc:
        print(json.dumps({"status": "error", "http_status": exc.status_code, "error": exc.body}, indent=2),
              file=sys.stderr)
        return 1
    except requests.RequestException as exc:
        print(json.dumps({"status": "error", "error": str(exc)}, indent=2), file=sys.stderr)
        return 2
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
