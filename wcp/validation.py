"""Field validation and small identifier/time helpers."""

from __future__ import annotations

import difflib
import re
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .errors import ValidationError

CALLSIGN_PATTERN = re.compile(r"^([A-Z]+)-(\d+)$")
NAMESPACE_PATTERN = re.compile(r"^[A-Z]+$")

VALID_VERDICTS = ("approved", "rejected")


def parse_callsign(item_id: str) -> Tuple[str, int]:
    """Split a callsign like ``PIPE-12`` into ``("PIPE", 12)``."""
    match = CALLSIGN_PATTERN.match(item_id or "")
    if not match:
        raise ValidationError(
            "id",
            f"'{item_id}' is not a valid callsign. Expected format: NAMESPACE-NUMBER (e.g., PIPE-12)",
        )
    return match.group(1), int(match.group(2))


def today() -> str:
    return date.today().isoformat()


def now() -> str:
    """Current UTC time as an ISO-8601 string with seconds precision."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def closest_match(value: str, choices: Iterable[str]) -> Optional[str]:
    matches = difflib.get_close_matches(value, list(choices), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _check(field: str, value: str, allowed: List[str], *, extensible: bool) -> None:
    if value in allowed:
        return
    parts = [f"'{value}'."]
    suggestion = closest_match(value, allowed)
    if suggestion:
        parts.append(f"Did you mean '{suggestion}'?")
    parts.append(f"Valid values: {', '.join(allowed)}.")
    if extensible:
        parts.append("Use wcp_schema to add custom values for a namespace.")
    raise ValidationError(field, " ".join(parts))


def validate_status(value: str, allowed: List[str]) -> None:
    _check("status", value, allowed, extensible=True)


def validate_priority(value: str, allowed: List[str]) -> None:
    _check("priority", value, allowed, extensible=False)


def validate_type(value: str, allowed: List[str]) -> None:
    _check("type", value, allowed, extensible=False)


def validate_artifact_type(value: str, allowed: List[str]) -> None:
    _check("artifact_type", value, allowed, extensible=True)


def validate_verdict(value: str) -> None:
    _check("verdict", value, list(VALID_VERDICTS), extensible=False)


def validate_filename(filename: str) -> None:
    """Artifact filenames are bare names stored inside the item's directory."""
    if not filename or not filename.strip():
        raise ValidationError("filename", "Artifact filename cannot be empty")
    if "/" in filename or "\\" in filename or filename in {".", ".."}:
        raise ValidationError("filename", f"'{filename}' must be a plain file name without directories")
