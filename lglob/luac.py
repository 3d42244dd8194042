"""Locate and invoke the ``luac`` disassembler."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .dialects import Dialect
from .exceptions import ToolUnavailableError

LOG = logging.getLogger(__name__)

__all__ = ["build_luac_command", "disassemble", "find_luac"]


def _candidate_names(dialect: Dialect | None) -> List[str]:
    if dialect is None:
        return ["luac"]
    return list(dialect.luac_names)


def find_luac(dialect: Dialect | None = None, explicit: str | os.PathLike[str] | None = None) -> Path | None:
    """Return the disassembler to use for ``dialect`` if one is available."""

    if explicit:
        candidate = Path(explicit)
        if candidate.exists():
            return candidate
        located = shutil.which(str(explicit))
        return Path(located) if located else None
    for name in _candidate_names(dialect):
        located = shutil.which(name)
        if located:
            return Path(located)
    return None


def build_luac_command(executable: Path, source: Path) -> List[str]:
    """``-l -l`` lists locals and upvalues, ``-p`` skips writing ``luac.out``."""

    return [str(executable), "-l", "-l", "-p", str(source)]


def disassemble(
    source: str | os.PathLike[str],
    *,
    dialect: Dialect | None = None,
    luac: str | os.PathLike[str] | None = None,
    timeout: Optional[float] = None,
) -> str:
    """Return the listing of ``source`` or raise :class:`ToolUnavailableError`."""

    executable = find_luac(dialect, luac)
    if executable is None:
        wanted = luac or ", ".join(_candidate_names(dialect))
        raise ToolUnavailableError(f"no disassembler found (looked for {wanted})")

    command = build_luac_command(executable, Path(source))
    LOG.debug("running %s", " ".join(command))
    try:
        completed = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise ToolUnavailableError(f"{executable} invocation failed: {exc}") from exc

    if completed.returncode != 0:
        detail = (completed.stderr or completed.stdout or "").strip()
        raise ToolUnavailableError(f"{executable} exited with {completed.returncode}: {detail}")
    if not completed.stdout.strip():
        raise ToolUnavailableError(f"{executable} produced no listing for {source}")
    return completed.stdout
