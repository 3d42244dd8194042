#!/usr/bin/env python3
"""Compat shim that forwards to :mod:`lglob.main`.

Lets the checker run straight from a checkout (``python main.py file.lua``)
without installing the ``lglob`` console script first.
"""

from __future__ import annotations

import sys

from lglob import main as _cli


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``python main.py``.

    Parameters
    ----------
    argv:
        Optional argument vector.  When ``None`` the wrapper forwards the
        current ``sys.argv[1:]`` to :func:`lglob.main.main`.
    """

    return _cli.main(sys.argv[1:] if argv is None else argv)


if __name__ == "__main__":  # pragma: no cover - thin CLI shim
    raise SystemExit(main())
