"""ActionGate: Signed, idempotent action gateway for AI agents.

ActionGate sits between AI agents and sensitive business systems, accepting a
small set of named actions and producing a redacted audit trail for every
attempt.

Key features:
    - HMAC request signing with per-tenant gateway keys
    - Strict envelope and per-action parameter validation
    - Dry-run / execute modes with idempotency-key deduplication
    - Retrying outbound HTTP with exponential backoff
    - Secret-redacting, retention-bounded audit log

Example:
    >>> from actiongate.client import ActionGateClient
    >>> async with ActionGateClient(
    ...     "http://localhost:8000", gateway_key="...", hmac_secret="..."
    ... ) as client:
    ...     result = await client.execute(
    ...         action="echo",
    ...         mode="dry_run",
    ...         idempotency_key="demo-1",
    ...         params={"msg": "hi"},
    ...     )
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
