"""
Column value to SQL literal encoding.

Escaping follows the engine's string-literal rules: NUL, quotes, backspace,
newline, carriage return, ASCII 26, backslash and percent each become a
two-character escape. Escaping is one-shot: re-encoding an already escaped
string escapes it again.

Text that came from raw bytes is carried as ``surrogateescape`` decoded str
so it reaches the sink byte-for-byte; use ``to_bytes``/``byte_length`` for
anything that measures or writes encoded output.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Sequence

from .base import Column, ColumnCategory, DumpSchemaError

NULL = "NULL"

_ESCAPES = str.maketrans(
    {
        "\x00": "\\0",
        "'": "\\'",
        '"': '\\"',
        "\b": "\\b",
        "\n": "\\n",
        "\r": "\\r",
        "\x1a": "\\Z",
        "\\": "\\\\",
        "%": "\\%",
    }
)


def sanitize(text: str) -> str:
    """Escape text for use inside a single or double quoted literal."""
    return text.translate(_ESCAPES)


def to_bytes(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def byte_length(text: str) -> int:
    return len(to_bytes(text))


def _format_time(value: timedelta) -> str:
    # TIME columns come back from drivers as timedelta
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, remainder = divmod(value.days * 86400 + value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{value.microseconds:06d}"
    return text


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "surrogateescape")
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, timedelta):
        return _format_time(value)
    if isinstance(value, (set, frozenset)):
        # SET columns arrive as a set of member names
        return ",".join(sorted(_as_text(member) for member in value))
    return str(value)


def encode_value(value: Any, category: ColumnCategory) -> str:
    """Render one column value as a SQL literal.

    Args:
        value: Raw value from the driver (None means SQL NULL)
        category: Encoding rule from the column plan

    Returns:
        Literal text ready to be placed in a VALUES tuple

    Raises:
        DumpSchemaError: If an integer column holds a non-integer value
    """
    if value is None:
        return NULL

    if category is ColumnCategory.INTEGER:
        try:
            return str(int(value))
        except (TypeError, ValueError) as e:
            raise DumpSchemaError(f"Integer column holds non-integer value {value!r}") from e

    if category is ColumnCategory.BINARY:
        if isinstance(value, str):
            value = to_bytes(value)
        elif isinstance(value, int):
            # BIT columns arrive as integers
            value = value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")
        data = bytes(value)
        # Empty blobs are written as NULL
        if not data:
            return NULL
        return f"_binary '{sanitize(data.decode('utf-8', 'surrogateescape'))}'"

    return f"'{sanitize(_as_text(value))}'"


def encode_row(values: Sequence[Any], plan: Sequence[Column]) -> str:
    """Render a row as ``(v1,v2,...)`` following the column plan."""
    return "(" + ",".join(encode_value(v, c.category) for v, c in zip(values, plan)) + ")"
