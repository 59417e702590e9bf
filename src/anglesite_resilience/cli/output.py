"""JSON output envelopes for CLI commands.

Every command prints exactly one JSON document:
``{"success": true, "data": ...}`` or
``{"success": false, "error": ..., "code": ..., "remediation": ...}``.
"""

import json
from typing import Any, NoReturn, Optional

import click


def emit_success(data: Any) -> None:
    click.echo(json.dumps({"success": True, "data": data}, indent=2, default=str))


def emit_error(message: str, *, code: str, remediation: Optional[str] = None) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    payload = {"success": False, "error": message, "code": code}
    if remediation:
        payload["remediation"] = remediation
    click.echo(json.dumps(payload, indent=2))
    raise SystemExit(1)
