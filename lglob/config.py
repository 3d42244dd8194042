"""Run configuration shared by the CLI and library callers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

__all__ = ["AnalysisOptions", "DEFAULT_DIALECT", "DEFAULT_TIMEOUT"]

DEFAULT_DIALECT = "5.1"
DEFAULT_TIMEOUT = 30.0


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class AnalysisOptions:
    """Options controlling one checker run.

    Environment variables provide defaults (``LGLOB_DIALECT``,
    ``LGLOB_LUAC`` and ``LGLOB_TIMEOUT``); command line flags override them.
    """

    dialect: str = DEFAULT_DIALECT
    tolerant: bool = False
    resolve_requires: bool = False
    include_stdlib: bool = True
    luac: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    whitelist_files: List[Path] = field(default_factory=list)
    module_files: List[Path] = field(default_factory=list)
    search_dirs: List[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        # tolerant mode has nothing to check against without resolution
        if self.tolerant:
            self.resolve_requires = True

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides) -> "AnalysisOptions":
        env = os.environ if env is None else env
        values = {
            "dialect": env.get("LGLOB_DIALECT") or DEFAULT_DIALECT,
            "luac": env.get("LGLOB_LUAC") or None,
            "timeout": _env_float(env, "LGLOB_TIMEOUT", DEFAULT_TIMEOUT),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
