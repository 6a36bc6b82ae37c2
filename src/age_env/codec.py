"""KEY=VALUE text codec.

Parsing follows dotenv line semantics (unquoted, single-quoted and
double-quoted values, ``#`` comments, blank lines, optional ``export``
prefix) using python-dotenv's line parser, but without variable
interpolation and with hard failures on malformed lines.
"""

import io
import re

from dotenv.parser import parse_stream

from .errors import FormatError

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
}


def quote_value(value: str) -> str:
    """Double-quote a value, escaping what the parser would unescape."""
    return '"' + "".join(_ESCAPES.get(char, char) for char in value) + '"'


def serialize(values: dict) -> str:
    """Render a mapping as ``KEY="VALUE"`` lines, in the mapping's order."""
    return "\n".join(f"{key}={quote_value(value)}" for key, value in values.items())


def parse(text: str) -> dict:
    """
    Parse dotenv text into an ordered mapping.

    Raises FormatError on unterminated quotes, lines without ``=`` and keys
    that are not shell identifiers. Later duplicates override earlier ones.
    """
    values = {}
    for binding in parse_stream(io.StringIO(text)):
        line = binding.original.line
        if binding.error:
            raise FormatError(
                f"Line {line}: cannot parse {binding.original.string.strip()!r}"
            )
        if binding.key is None:
            # Blank line or comment
            continue
        if not KEY_PATTERN.match(binding.key):
            raise FormatError(f"Line {line}: invalid key {binding.key!r}")
        if binding.value is None:
            raise FormatError(f"Line {line}: missing '=' after {binding.key!r}")
        values[binding.key] = binding.value
    return values
