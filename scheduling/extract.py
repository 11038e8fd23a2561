"""
scheduling/extract.py
---------------------
HookCron – Variable extraction with jq selectors

A secondary webhook may declare `jq_selectors`, a mapping of variable name
to jq expression. Each expression is run against the primary response and
its first result becomes the value of that variable:

    extract_variables('{"items": [{"id": 7}]}', {"first": ".items[0].id"})
    → {"first": 7}

A selector that yields nothing leaves its variable unset. A selector that
fails to compile or raises while running is logged and skipped; the other
selectors still run.
"""

from __future__ import annotations

import json
import logging
from typing import Mapping

import jq

from .errors import JQEvalError, JQParseError, JSONParseError
from .templates import JsonValue

logger = logging.getLogger("hookcron.scheduling.extract")


def _first_result(name: str, expression: str, document: JsonValue) -> tuple[bool, JsonValue]:
    try:
        program = jq.compile(expression)
    except ValueError as exc:
        raise JQParseError(f"selector {expression!r} for {name!r}: {exc}") from exc
    try:
        return True, next(iter(program.input_value(document)))
    except StopIteration:
        return False, None
    except ValueError as exc:
        raise JQEvalError(f"selector {expression!r} for {name!r}: {exc}") from exc


def extract_variables(json_text: str, selectors: Mapping[str, str]) -> dict[str, JsonValue]:
    """Run every selector in *selectors* against the JSON document *json_text*.

    Raises JSONParseError when *json_text* is not JSON. With no selectors the
    text is never parsed and an empty mapping is returned.
    """
    if not selectors:
        return {}

    try:
        document = json.loads(json_text)
    except (TypeError, ValueError) as exc:
        raise JSONParseError(f"failed to parse JSON response: {exc}") from exc

    variables: dict[str, JsonValue] = {}
    for name, expression in selectors.items():
        try:
            found, value = _first_result(name, expression, document)
        except (JQParseError, JQEvalError) as exc:
            logger.warning("[Extract] %s", exc)
            continue
        if not found:
            logger.debug("[Extract] No result for %r (%s)", name, expression)
            continue
        variables[name] = value
        logger.debug("[Extract] %s = %r", name, value)
    return variables


def has_non_empty(variables: Mapping[str, JsonValue]) -> bool:
    """True if at least one variable holds something other than null/""/[]/{}."""
    return any(v not in (None, "", [], {}) for v in variables.values())
