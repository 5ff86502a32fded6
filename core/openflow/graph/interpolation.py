"""
Template interpolation for canned node outputs.

Supports:
- {{input}}           - The whole node input
- {{input.a.b}}       - A nested field of the input
- {{config.name}}     - A node config option
- {{memory.key}}      - A shared memory value
- {{trigger.field}}   - The run's trigger payload

A string that is exactly one placeholder renders to the raw value, so
"{{input}}" keeps a dict a dict. Placeholders embedded in longer strings
are stringified in place. Unknown paths render as "".
"""

import re
from typing import Any

PLACEHOLDER = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")

_MISSING = object()


def _get_nested(data: Any, path: list[str]) -> Any:
    """Get nested value from dict/list."""
    current = data
    for part in path:
        if isinstance(current, dict):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list | tuple):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return current


def resolve_path(path: str, scope: dict[str, Any]) -> Any:
    """Resolve a dotted path like 'input.user.name' against a scope dict."""
    parts = path.split(".")
    if parts[0] not in scope:
        return _MISSING
    return _get_nested(scope[parts[0]], parts[1:])


def _render_string(template: str, scope: dict[str, Any]) -> Any:
    whole = PLACEHOLDER.fullmatch(template)
    if whole:
        value = resolve_path(whole.group(1), scope)
        return "" if value is _MISSING else value

    def replacer(match: re.Match) -> str:
        value = resolve_path(match.group(1), scope)
        if value is _MISSING or value is None:
            return ""
        return str(value)

    return PLACEHOLDER.sub(replacer, template)


def interpolate(template: Any, scope: dict[str, Any]) -> Any:
    """Render a JSON-like template (str, dict, list, scalar) against a scope."""
    if isinstance(template, str):
        return _render_string(template, scope)
    if isinstance(template, dict):
        return {key: interpolate(value, scope) for key, value in template.items()}
    if isinstance(template, list):
        return [interpolate(item, scope) for item in template]
    return template
