# src/otelconfig/substitution.py
"""Environment variable substitution for raw configuration text.

Substitution runs on the document text *before* it is parsed, so the value of
a variable takes part in YAML/JSON typing: ``port: ${PORT}`` with ``PORT=9464``
becomes an integer, while ``port: "${PORT}"`` stays a string.

Grammar:
    ${NAME}             value of NAME, or "" when unset or empty
    ${env:NAME}         same as ${NAME}
    ${NAME:-fallback}   fallback when NAME is unset or empty

NAME follows the usual shell rules (``[a-zA-Z_][a-zA-Z0-9_]*``). Anything else
that looks like a reference is left untouched, and any other ``$`` (doubled or
not) is kept as written. Substituted values are not scanned again, so a value
containing ``${OTHER}`` is inserted literally. A string that must hold a
literal ``${`` spells the brace with a YAML or JSON escape (``"$\\x7B"`` or
``"$\\u007b"``), which is what ``otelconfig.loader.dump`` writes.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

import structlog

logger = structlog.get_logger(__name__)

_REFERENCE = re.compile(r"\$\{(?:env:)?([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace every variable reference in ``text``.

    Args:
        text: Raw document text
        environ: Variables to read; defaults to ``os.environ``

    Returns:
        Text with references replaced. Values are inserted verbatim.
    """
    env = os.environ if environ is None else environ
    unresolved: list[str] = []

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = env.get(name, "")
        if value:
            return value
        fallback = match.group(2)
        if fallback is not None:
            return fallback
        unresolved.append(name)
        return ""

    result = _REFERENCE.sub(replace, text)
    if unresolved:
        logger.debug("env_vars_unresolved", names=sorted(set(unresolved)))
    return result
