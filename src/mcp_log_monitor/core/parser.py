"""Access log line parser.

Lines look like the Common Log Format::

    127.0.0.1 - james [09/May/2018:16:00:39 +0000] "GET /report HTTP/1.0" 200 123

A line that does not have a bracketed timestamp followed by a quoted request is
rejected as a whole. Inside a well-formed line, fields that fail conversion keep
their zero value and a warning is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .errors import ParseError
from .models import ZERO_TIME, LogRecord

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

# Largest value an SQLite INTEGER column holds.
MAX_RESPONSE_BYTES = 2**63 - 1


class TokenKind(str, Enum):
    """How a token was delimited in the source line."""

    BARE = "bare"
    BRACKET = "bracket"
    QUOTED = "quoted"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str


def tokenize(line: str) -> list[Token]:
    """Split a line into whitespace, bracket and quote delimited tokens.

    Raises ParseError when a bracket or quote is never closed.
    """
    tokens: list[Token] = []
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
            continue

        if ch in "[\"":
            close = "]" if ch == "[" else '"'
            j = line.find(close, i + 1)
            if j < 0:
                raise ParseError(f"unterminated {ch!r} at column {i}", line=line)
            kind = TokenKind.BRACKET if ch == "[" else TokenKind.QUOTED
            tokens.append(Token(kind, line[i + 1 : j].strip()))
            i = j + 1
            continue

        j = i
        while j < n and not line[j].isspace():
            j += 1
        tokens.append(Token(TokenKind.BARE, line[i:j]))
        i = j
    return tokens


def _check_structure(tokens: list[Token], line: str) -> None:
    """Require a bracketed timestamp immediately followed by a quoted request."""
    for idx, tok in enumerate(tokens):
        if tok.kind is TokenKind.BRACKET:
            nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
            if nxt is None or nxt.kind is not TokenKind.QUOTED:
                raise ParseError("bracketed timestamp is not followed by a quoted request", line=line)
            return
    raise ParseError("missing bracketed timestamp", line=line)


def _parse_ts(raw: str, log: logging.Logger) -> datetime:
    try:
        return datetime.strptime(raw, TIMESTAMP_FORMAT).astimezone(UTC)
    except (ValueError, OverflowError):
        log.warning("Unable to parse timestamp from %r", raw)
        return ZERO_TIME


def _parse_int(raw: str, what: str, log: logging.Logger, *, upper: int | None = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        log.warning("Unable to parse %s from %r", what, raw)
        return 0
    if value < 0 or (upper is not None and value > upper):
        log.warning("Out of range %s %r", what, raw)
        return 0
    return value


def parse_line(line: str, *, log: logging.Logger | None = None) -> LogRecord:
    """Parse one access-log line into a LogRecord.

    Raises ParseError if the line does not match the grammar.
    """
    log = log or logger
    line = line.rstrip("\r\n")
    if not line.strip():
        raise ParseError("empty line", line=line)

    tokens = tokenize(line)
    _check_structure(tokens, line)

    values: dict[str, object] = {}
    for idx, tok in enumerate(tokens[:7]):
        if idx == 0:
            values["host"] = tok.text
        elif idx == 1:
            values["user"] = tok.text
        elif idx == 2:
            values["auth_user"] = tok.text
        elif idx == 3:
            values["timestamp"] = _parse_ts(tok.text, log)
        elif idx == 4:
            parts = tok.text.split()
            if len(parts) < 2:
                log.warning("Unable to parse method and path from %r", tok.text)
            else:
                values["method"] = parts[0]
                values["path"] = parts[1]
        elif idx == 5:
            values["status"] = _parse_int(tok.text, "response status", log, upper=0xFFFF)
        else:
            values["response_bytes"] = _parse_int(tok.text, "response size", log, upper=MAX_RESPONSE_BYTES)

    return LogRecord(**values)


@dataclass(frozen=True, slots=True)
class AccessLogParser:
    """Parser bound to a diagnostic logger; returns None for unparseable lines."""

    log: logging.Logger = field(default=logger)

    def parse(self, line: str) -> LogRecord | None:
        """Parse a line, or return None when it must be skipped."""
        try:
            return parse_line(line, log=self.log)
        except ParseError:
            return None
