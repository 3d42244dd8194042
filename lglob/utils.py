"""Small helpers shared by the CLI: colours, source expansion, file output."""

from __future__ import annotations

import glob
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List

__all__ = [
    "colorize_text",
    "expand_sources",
    "parse_line_range",
    "write_json",
]

_COLOR_CODES = {
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
}


def colorize_text(text: str, color: str, bold: bool = False) -> str:
    """Return *text* wrapped in ANSI color codes."""
    code = _COLOR_CODES.get(color, "0")
    style = "1;" if bold else ""
    return f"\033[{style}{code}m{text}\033[0m"


def expand_sources(patterns: Iterable[str]) -> List[Path]:
    """Expand files, directories (``**/*.lua``) and glob patterns in order.

    Duplicates are dropped; a pattern matching nothing is kept verbatim so
    the caller can report it as missing.
    """

    seen = set()
    expanded: List[Path] = []

    def _add(path: Path) -> None:
        key = os.path.normpath(str(path))
        if key not in seen:
            seen.add(key)
            expanded.append(path)

    for pattern in patterns:
        path = Path(pattern)
        if path.is_dir():
            for item in sorted(path.rglob("*.lua")):
                _add(item)
            continue
        if glob.has_magic(pattern):
            for item in sorted(glob.glob(pattern, recursive=True)):
                _add(Path(item))
            continue
        _add(path)
    return expanded


def parse_line_range(text: str) -> tuple[int, int]:
    """Parse ``FIRST-LAST`` (or a single line number) into a tuple."""

    token = text.strip()
    if not token:
        raise ValueError("line range must be a non-empty string")
    if "-" in token:
        first, last = token.split("-", 1)
        start, end = int(first), int(last)
    else:
        start = end = int(token)
    if start > end:
        raise ValueError(f"empty line range {text!r}")
    return start, end


def write_json(path: str | os.PathLike[str], obj, *, encoding: str = "utf-8", sort_keys: bool = False) -> None:
    """Serialise ``obj`` as pretty JSON at ``path`` atomically."""

    target = os.fspath(path)
    directory = os.path.dirname(target) or "."
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".partial", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            json.dump(obj, handle, ensure_ascii=False, indent=2, sort_keys=sort_keys)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise
