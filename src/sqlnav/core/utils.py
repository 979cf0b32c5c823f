"""Utility functions for sqlnav.

Classes:
    StringUtils: Identifier quoting and text helpers
    SqlUtils: Helpers for interpreting SQL text and backend messages
    FormatUtils: Human-readable formatting for status lines

Example:
    >>> StringUtils.quote_identifier('odd"name')
    '"odd""name"'
    >>> SqlUtils.locate_error_position("SELEC 1", "near 'SELEC 1' at line 1")
    1
"""

import re
from typing import Optional, Tuple, Union


class StringUtils:
    """Utility class for string operations."""

    @staticmethod
    def quote_identifier(identifier: str, *, quote: str = '"') -> str:
        """Quote an identifier, doubling embedded quote characters.

        Example:
            >>> StringUtils.quote_identifier("users", quote="`")
            '`users`'
        """
        return f"{quote}{identifier.replace(quote, quote * 2)}{quote}"

    @staticmethod
    def decode(value: Union[str, bytes, None]) -> Optional[str]:
        """Decode catalog values some drivers return as bytes."""
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return value


class SqlUtils:
    """Helpers for SQL text and backend error messages."""

    # MySQL: "... near 'SELEC 1' at line 1"; SQLite: 'near "SELEC": syntax error'
    _NEAR_PATTERNS = (
        re.compile(r"near '(?P<fragment>.*)' at line (?P<line>\d+)", re.DOTALL),
        re.compile(r'near "(?P<fragment>[^"]*)"'),
    )

    @staticmethod
    def is_blank(sql: Optional[str]) -> bool:
        return sql is None or not sql.strip()

    @classmethod
    def locate_error_position(cls, sql: str, message: str) -> Optional[int]:
        """Derive a 1-based character position from a ``near ...`` fragment.

        Returns None when the message has no fragment or the fragment cannot
        be found in ``sql``.
        """
        for pattern in cls._NEAR_PATTERNS:
            match = pattern.search(message)
            if not match:
                continue

            fragment = match.group("fragment")
            line = match.groupdict().get("line")

            if not fragment:
                # MySQL reports an empty fragment for errors at end of input
                return len(sql) + 1 if line is not None else None

            offset = 0
            if line is not None:
                lines = sql.splitlines(keepends=True)
                line_index = int(line) - 1
                if 0 <= line_index < len(lines):
                    offset = sum(len(text) for text in lines[:line_index])

            index = sql.find(fragment, offset)
            if index < 0:
                index = sql.find(fragment)
            return index + 1 if index >= 0 else None

        return None

    @staticmethod
    def parse_version(text: str) -> Tuple[int, ...]:
        """Extract the leading numeric version from a server version string.

        Example:
            >>> SqlUtils.parse_version("10.6.12-MariaDB-log")
            (10, 6, 12)
        """
        match = re.match(r"\s*(\d+(?:\.\d+)*)", text or "")
        if not match:
            return ()
        return tuple(int(part) for part in match.group(1).split("."))


class FormatUtils:
    """Utility class for formatting operations."""

    @staticmethod
    def format_duration(seconds: Union[int, float]) -> str:
        """Format a duration for a status line.

        Example:
            >>> FormatUtils.format_duration(0.0042)
            '4.20ms'
            >>> FormatUtils.format_duration(2.5)
            '2.50s'
        """
        if seconds < 1:
            return f"{seconds * 1000:.2f}ms"
        return f"{seconds:.2f}s"

    @staticmethod
    def format_row_count(count: int, *, verb: Optional[str] = None) -> str:
        noun = "row" if count == 1 else "rows"
        return f"{count} {noun} {verb}" if verb else f"{count} {noun}"
