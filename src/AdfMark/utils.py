from __future__ import annotations

import logging
import re
import secrets
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

from . import dialect

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ATTR_PAIR_RE = re.compile(r'(\w+)=(?:"((?:[^"\\]|\\.)*)"|([^\s"]+))')
_ATTR_ESCAPE_RE = re.compile(r'\\(["\\])')
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def configure_logging(verbose: bool = False) -> None:
    """Configure a simple console logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )


def resolve_output_path(input_path: Path, output: Optional[str], suffix: str) -> Path | None:
    """Pick the output file; ``None`` means standard output."""
    if output == "-":
        return None
    if output:
        out_path = Path(output)
        if out_path.is_dir():
            out_path = out_path / f"{input_path.stem}{suffix}"
        return out_path
    return input_path.with_suffix(suffix)


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path | None, text: str) -> None:
    if path is None:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def parse_attrs(attr_str: str | None) -> dict[str, str]:
    """Parse ``key="value"`` / ``key=value`` pairs; malformed pieces are ignored."""
    result: dict[str, str] = {}
    if not attr_str:
        return result
    for match in _ATTR_PAIR_RE.finditer(attr_str):
        quoted, bare = match.group(2), match.group(3)
        result[match.group(1)] = _ATTR_ESCAPE_RE.sub(r"\1", quoted) if quoted is not None else bare
    return result


def format_attrs(attrs: Mapping[str, object], *keys: str) -> str:
    """Format the given keys of ``attrs`` as a fence/comment attribute string.

    Keys are emitted in the order requested; missing keys and empty strings are
    skipped. The result starts with a space, or is empty when nothing was kept.
    """
    parts: list[str] = []
    for key in keys:
        if key not in attrs:
            continue
        value = attrs[key]
        if isinstance(value, bool):
            parts.append(f'{key}="{str(value).lower()}"')
        elif isinstance(value, (int, float)):
            parts.append(f'{key}="{format_number(value)}"')
        elif isinstance(value, str) and value:
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
    if not parts:
        return ""
    return " " + " ".join(parts)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def split_status_attrs(attr_str: str | None) -> dict[str, str]:
    """Parse the comma separated ``key=value`` tail of a status token."""
    result: dict[str, str] = {}
    if not attr_str:
        return result
    for pair in attr_str.split(","):
        key, sep, value = pair.partition("=")
        if sep:
            result[key.strip()] = value.strip()
    return result


def escape_markdown(text: str) -> str:
    return "".join("\\" + ch if ch in dialect.ESCAPE_CHARS else ch for ch in text)


def protect_backslashes(text: str) -> str:
    """Double each backslash the inline scanner would otherwise read as an escape.

    A trailing backslash is doubled as well, since the next inline node may
    start with an escapable character.
    """
    result: list[str] = []
    for idx, ch in enumerate(text):
        if ch == "\\" and (idx + 1 == len(text) or text[idx + 1] in dialect.UNESCAPE_CHARS):
            result.append("\\\\")
        else:
            result.append(ch)
    return "".join(result)


def unescape_markdown(text: str) -> str:
    result: list[str] = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text) and text[i + 1] in dialect.UNESCAPE_CHARS:
            result.append(text[i + 1])
            i += 2
            continue
        result.append(text[i])
        i += 1
    return "".join(result)


def generate_local_id() -> str:
    return f"{time.time_ns() & 0xFFFFFFFF:x}-{secrets.token_hex(8)}"


def is_all_digits(value: str) -> bool:
    return bool(value) and all("0" <= ch <= "9" for ch in value)


def parse_timestamp(value: str) -> str:
    """Convert an ISO date / date-time (or millisecond string) to epoch milliseconds.

    Anything that cannot be understood is returned unchanged.
    """
    value = value.strip()
    if len(value) >= 10 and is_all_digits(value):
        return value

    moment: datetime | None = None
    if _ISO_DATE_RE.match(value):
        try:
            moment = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            moment = None
    elif "T" in value:
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            moment = None
        if moment is not None and moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)

    if moment is None:
        logging.debug("Keeping unparseable date %r verbatim", value)
        return value
    return str((moment - EPOCH) // timedelta(milliseconds=1))


def format_timestamp(value: str) -> str:
    """Convert an epoch-millisecond string to a ``YYYY-MM-DD`` date (UTC)."""
    value = value.strip()
    match = _LEADING_INT_RE.match(value)
    if not match:
        return value
    try:
        moment = EPOCH + timedelta(milliseconds=int(match.group(0)))
    except OverflowError:
        return value
    return moment.strftime("%Y-%m-%d")


def get_indent_level(line: str) -> int:
    spaces = 0
    for ch in line:
        if ch == " ":
            spaces += 1
        elif ch == "\t":
            spaces += dialect.TAB_WIDTH
        else:
            break
    return spaces // dialect.INDENT_WIDTH


def trim_indent(line: str, levels: int) -> str:
    to_remove = levels * dialect.INDENT_WIDTH
    removed = 0
    for idx, ch in enumerate(line):
        if removed >= to_remove:
            return line[idx:]
        if ch == " ":
            removed += 1
        elif ch == "\t":
            removed += dialect.TAB_WIDTH
        else:
            return line[idx:]
    return ""


def normalize_whitespace(text: str) -> str:
    lines = [line.rstrip(" \t") for line in text.split("\n")]
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()
