""".env loader for API keys and OAuth client settings."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

_KEY_RE = re.compile(r"\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_.]*)\s*=")
_DOUBLE_QUOTE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", '"': '"'}


def _read_quoted(text: str, start: int, quote: str) -> tuple[str, int]:
    """Read a quoted value starting after the opening quote.

    Returns the unescaped value and the index just past the closing quote
    (or the end of text when the quote is never closed).
    """
    out: list[str] = []
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            if quote == '"' and nxt in _DOUBLE_QUOTE_ESCAPES:
                out.append(_DOUBLE_QUOTE_ESCAPES[nxt])
                i += 2
                continue
            if quote == "'" and nxt in ("\\", "'"):
                out.append(nxt)
                i += 2
                continue
        if ch == quote:
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    return "".join(out), i


def _read_bare(text: str, start: int) -> tuple[str, int]:
    end = text.find("\n", start)
    if end < 0:
        end = len(text)
    line = text[start:end]
    # '#' starts a comment only at the beginning or after whitespace
    match = re.search(r"(^|\s)#", line)
    if match:
        line = line[: match.start()]
    return line.strip(), end


def parse_env_text(text: str) -> dict[str, str]:
    """Parse .env content into a dict, later keys winning."""

    values: dict[str, str] = {}
    pos = 0
    while pos < len(text):
        line_end = text.find("\n", pos)
        if line_end < 0:
            line_end = len(text)
        match = _KEY_RE.match(text, pos, line_end)
        if not match:
            pos = line_end + 1
            continue

        key = match.group(1)
        cursor = match.end()
        while cursor < line_end and text[cursor] in " \t":
            cursor += 1

        if cursor < line_end and text[cursor] in ("'", '"'):
            value, cursor = _read_quoted(text, cursor + 1, text[cursor])
            next_line = text.find("\n", cursor)
            pos = len(text) if next_line < 0 else next_line + 1
        else:
            value, cursor = _read_bare(text, cursor)
            pos = cursor + 1
        values[key] = value
    return values


def load_env_file(path: Path) -> None:
    """Load a .env file into os.environ without overriding existing values."""

    try:
        text = path.read_text(encoding="utf-8", errors="ignore")
    except FileNotFoundError:
        return
    except OSError as e:
        print(f"[config] failed to read env file '{path}': {e}", file=sys.stderr)
        return

    for key, value in parse_env_text(text).items():
        os.environ.setdefault(key, value)


__all__ = ["load_env_file", "parse_env_text"]
