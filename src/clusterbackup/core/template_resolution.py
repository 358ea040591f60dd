from __future__ import annotations

from datetime import datetime, timezone
import re
from typing import Any, Mapping


# Only simple identifiers are substituted, so document query expressions
# such as ."kubectl.kubernetes.io/..." inside strip_fields stay untouched.
_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_]*"
_PATTERN = re.compile(rf"\{{\{{\s*({_IDENTIFIER})\s*\}}\}}|\$\{{({_IDENTIFIER})\}}")


def default_template_vars(*, now: datetime | None = None) -> dict[str, str]:
    now = now or datetime.now(timezone.utc)
    return {
        "ts_yyyy": f"{now.year:04d}",
        "ts_MM": f"{now.month:02d}",
        "ts_dd": f"{now.day:02d}",
        "ts_HH": f"{now.hour:02d}",
        "ts_mm": f"{now.minute:02d}",
        "ts_ss": f"{now.second:02d}",
        "ts_compact": now.strftime("%Y%m%dT%H%M%SZ"),
    }


def resolve_template_string(value: str, variables: Mapping[str, Any]) -> str:
    if "{{" not in value and "${" not in value:
        return value

    def _repl(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return _PATTERN.sub(_repl, value)


def resolve_templates(obj: Any, variables: Mapping[str, Any]) -> Any:
    """Recursively resolve {{var}} and ${var} in string values inside obj.

    Keys are left alone; unknown placeholders are kept verbatim so a typo
    shows up in the output path instead of silently disappearing.
    """

    if isinstance(obj, str):
        return resolve_template_string(obj, variables)

    if isinstance(obj, list):
        return [resolve_templates(x, variables) for x in obj]

    if isinstance(obj, dict):
        return {k: resolve_templates(v, variables) for k, v in obj.items()}

    return obj


def backup_template_vars(
    *, run_id: str, backup_name: str, now: datetime | None = None
) -> dict[str, str]:
    """Variables available to a backup config: the ``ts_*`` set plus run identity."""
    variables = default_template_vars(now=now)
    variables["run_id"] = str(run_id)
    variables["backup_name"] = backup_name
    return variables


def unresolved_placeholders(obj: Any) -> list[str]:
    """Placeholder names still present in the string values of obj, in order of appearance."""
    found: list[str] = []

    def _visit(value: Any) -> None:
        if isinstance(value, str):
            for match in _PATTERN.finditer(value):
                key = match.group(1) or match.group(2)
                if key not in found:
                    found.append(key)
        elif isinstance(value, list):
            for item in value:
                _visit(item)
        elif isinstance(value, dict):
            for item in value.values():
                _visit(item)

    _visit(obj)
    return found


def resolve_config_templates(
    raw: Mapping[str, Any], *, run_id: str, now: datetime | None = None
) -> dict[str, Any]:
    """Resolve placeholders across a raw backup config mapping.

    ``backup_name`` itself is taken literally (default ``"backup"``) so it can
    be referenced from sink paths.
    """
    variables = backup_template_vars(
        run_id=run_id,
        backup_name=str(raw.get("backup_name") or "backup"),
        now=now,
    )
    return resolve_templates(dict(raw), variables)
