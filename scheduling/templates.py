"""
scheduling/templates.py
-----------------------
HookCron – Request body templates

Bodies may contain `{{name}}` placeholders. A template is split once into a
flat stream of literal spans and placeholder references and then rendered
in a single pass, so text coming out of a substituted value is never
scanned for placeholders again.

    render('{"text": "{{message}}"}', {"message": 'say "hi"'})
    → '{"text": "say \\"hi\\""}'

String values are escaped for use inside a JSON string literal (newline,
carriage return, tab and double quote). Every other value is JSON-encoded.
`{{REMINDER}}` always resolves, to the empty string when no reminder text
was supplied. Unknown placeholders are left in the output untouched.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional, Union

from .errors import TemplateMarshalError

logger = logging.getLogger("hookcron.scheduling.templates")

REMINDER_VAR = "REMINDER"

# Values that can come out of a selector or be injected by the engine.
JsonValue = Union[str, int, float, bool, None, list, dict]

LITERAL = "literal"
VAR     = "var"

_PLACEHOLDER_RE = re.compile(r"\{\{([^{}]+)\}\}")

_STRING_ESCAPES = (
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ('"',  '\\"'),
)


def tokenize(template: str) -> list[tuple[str, str]]:
    """Split *template* into (LITERAL, text) and (VAR, name) tokens."""
    tokens: list[tuple[str, str]] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(template):
        if m.start() > pos:
            tokens.append((LITERAL, template[pos:m.start()]))
        tokens.append((VAR, m.group(1)))
        pos = m.end()
    if pos < len(template):
        tokens.append((LITERAL, template[pos:]))
    return tokens


def escape_string(value: str) -> str:
    for raw, escaped in _STRING_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def _marshal(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise TemplateMarshalError(f"cannot encode {type(value).__name__}: {exc}") from exc


def format_value(name: str, value: JsonValue) -> str:
    """Text substituted for one placeholder."""
    if isinstance(value, str):
        return escape_string(value)
    if isinstance(value, (bool, int, float, list, dict)) or value is None:
        try:
            return _marshal(value)
        except TemplateMarshalError as exc:
            logger.warning("[Templates] Failed to marshal value for %r: %s", name, exc)
            return str(value)
    logger.warning("[Templates] Unsupported value type %s for %r", type(value).__name__, name)
    try:
        return _marshal(value)
    except TemplateMarshalError:
        return str(value)


def render(template: str, variables: Optional[Mapping[str, JsonValue]] = None) -> str:
    """Substitute every known `{{name}}` in *template* from *variables*."""
    if not template:
        return template
    variables = variables or {}
    out: list[str] = []
    for kind, text in tokenize(template):
        if kind == LITERAL:
            out.append(text)
        elif text in variables:
            out.append(format_value(text, variables[text]))
        elif text == REMINDER_VAR:
            out.append("")
        else:
            out.append("{{" + text + "}}")
    return "".join(out)
