"""Find undefined and redefined globals in Lua sources from ``luac`` listings."""

from __future__ import annotations

from .config import AnalysisOptions
from .definitions import build_whitelist, load_whitelist_file
from .dialects import get_dialect
from .exceptions import (
    LglobError,
    MalformedListingError,
    ToolUnavailableError,
    UnresolvedModuleError,
    WhitelistError,
)
from .extractor import GlobalReference, GlobalReferenceExtractor
from .resolver import REDEFINED, UNDEFINED, Diagnostic, FileResult, Resolver
from .whitelist import IN_MODULE, Whitelist

__version__ = "0.1.0"

__all__ = [
    "AnalysisOptions",
    "Diagnostic",
    "FileResult",
    "GlobalReference",
    "GlobalReferenceExtractor",
    "IN_MODULE",
    "LglobError",
    "MalformedListingError",
    "REDEFINED",
    "Resolver",
    "ToolUnavailableError",
    "UNDEFINED",
    "UnresolvedModuleError",
    "Whitelist",
    "WhitelistError",
    "build_whitelist",
    "get_dialect",
    "load_whitelist_file",
    "__version__",
]
