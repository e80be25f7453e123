"""ActionGate CLI entrypoint.

Usage:
    python -m actiongate                       # Start the server
    python -m actiongate --sign BODY           # Print the X-Signature for a JSON body
    python -m actiongate --send BODY           # Sign and post an envelope
    python -m actiongate --logs                # Query the audit log
    python -m actiongate --version             # Print version
    python -m actiongate --help                # Show help
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

from actiongate.auth import sign_body
from actiongate.client import ActionGateAPIError, ActionGateClient

DEFAULT_BASE_URL = "http://localhost:8000"


def _load_body(value: str) -> str:
    """Return the body text exactly as given, reading it from a file if one exists."""
    body = Path(value).read_text(encoding="utf-8") if os.path.isfile(value) else value
    json.loads(body)
    return body


def render_signature(body: str, secret: str, *, base_url: str = DEFAULT_BASE_URL) -> str:
    """Return the signature header and a ready-to-run curl command for ``body``."""
    signature = sign_body(body, secret)
    lines = [
        "X-Signature Header:",
        signature,
        "",
        "Full cURL Example:",
        f"curl -X POST {base_url}/v1/actions/execute \\",
        '  -H "Content-Type: application/json" \\',
        '  -H "x-gateway-key: YOUR_GATEWAY_KEY_HERE" \\',
        f'  -H "X-Signature: {signature}" \\',
        f"  -d '{body}'",
    ]
    return "\n".join(lines)


async def send_envelope(
    body: str, *, base_url: str, gateway_key: str, secret: str
) -> dict[str, Any]:
    async with ActionGateClient(
        base_url, gateway_key=gateway_key, hmac_secret=secret
    ) as client:
        return await client.send_raw(body)


async def fetch_logs(
    *, base_url: str, admin_user: str, admin_password: str, filters: dict[str, str | None]
) -> list[dict[str, Any]]:
    async with ActionGateClient(
        base_url, admin_user=admin_user, admin_password=admin_password
    ) as client:
        return await client.get_logs(**filters)


def main() -> None:
    """CLI entrypoint."""
    from actiongate import __version__

    parser = argparse.ArgumentParser(
        prog="actiongate",
        description="ActionGate: Policy-enforcing action gateway for AI agents",
    )
    parser.add_argument(
        "--version", "-v", action="version", version=f"ActionGate {__version__}"
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--sign",
        metavar="BODY",
        help="Print the X-Signature header for a JSON body (literal or file path)",
    )
    mode_group.add_argument(
        "--send",
        metavar="BODY",
        help="Sign a JSON envelope (literal or file path) and post it to the gateway",
    )
    mode_group.add_argument(
        "--logs", action="store_true", help="Query the audit log with admin credentials"
    )
    parser.add_argument(
        "--secret",
        default=os.getenv("ACTIONGATE_HMAC_SECRET", ""),
        help="HMAC secret used to sign bodies (default: $ACTIONGATE_HMAC_SECRET)",
    )
    parser.add_argument(
        "--gateway-key",
        default=os.getenv("ACTIONGATE_GATEWAY_KEY", ""),
        help="Tenant gateway key for --send (default: $ACTIONGATE_GATEWAY_KEY)",
    )
    parser.add_argument(
        "--admin-user",
        default=os.getenv("ACTIONGATE_ADMIN_USER", ""),
        help="Admin user for --logs",
    )
    parser.add_argument(
        "--admin-pass",
        default=os.getenv("ACTIONGATE_ADMIN_PASS", ""),
        help="Admin password for --logs",
    )
    parser.add_argument("--trace-id", default=None, help="Filter --logs by trace ID")
    parser.add_argument("--tenant", default=None, help="Filter --logs by tenant")
    parser.add_argument("--action", default=None, help="Filter --logs by action")
    parser.add_argument(
        "--status",
        choices=("success", "error", "warning"),
        default=None,
        help="Filter --logs by status",
    )
    parser.add_argument(
        "--base-url",
        default=os.getenv("ACTIONGATE_URL", DEFAULT_BASE_URL),
        help=f"Gateway base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)"  # nosec B104
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind to (default: 8000)"
    )

    args = parser.parse_args()

    if args.sign is not None or args.send is not None:
        if not args.secret:
            parser.error("--secret or ACTIONGATE_HMAC_SECRET is required to sign")
        try:
            body = _load_body(args.sign if args.sign is not None else args.send)
        except ValueError as exc:
            parser.error(f"Invalid JSON body: {exc}")

    if args.sign is not None:
        print(render_signature(body, args.secret, base_url=args.base_url))
    elif args.send is not None:
        if not args.gateway_key:
            parser.error("--gateway-key or ACTIONGATE_GATEWAY_KEY is required for --send")
        try:
            result = asyncio.run(
                send_envelope(
                    body,
                    base_url=args.base_url,
                    gateway_key=args.gateway_key,
                    secret=args.secret,
                )
            )
        except ActionGateAPIError as exc:
            print(json.dumps(exc.payload, indent=2), file=sys.stderr)
            sys.exit(1)
        print(json.dumps(result, indent=2))
    elif args.logs:
        if not args.admin_user or not args.admin_pass:
            parser.error("--admin-user and --admin-pass are required for --logs")
        try:
            logs = asyncio.run(
                fetch_logs(
                    base_url=args.base_url,
                    admin_user=args.admin_user,
                    admin_password=args.admin_pass,
                    filters={
                        "trace_id": args.trace_id,
                        "tenant": args.tenant,
                        "action": args.action,
                        "status": args.status,
                    },
                )
            )
        except ActionGateAPIError as exc:
            print(str(exc), file=sys.stderr)
            sys.exit(1)
        print(json.dumps(logs, indent=2))
    else:
        import uvicorn

        uvicorn.run(
            "actiongate.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=False,
        )


if __name__ == "__main__":
    main()
