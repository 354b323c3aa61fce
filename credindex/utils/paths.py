"""Filesystem path helpers for credindex state."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

HOME_ENV = "CREDINDEX_HOME"


def state_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory used for persistent credindex state.

    The location defaults to ``~/.credindex`` but can be overridden via the
    ``CREDINDEX_HOME`` variable, looked up in *environ* when given and in
    the process environment otherwise. The path is expanded and resolved so
    callers always receive an absolute location.
    """

    override = (os.environ if environ is None else environ).get(HOME_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".credindex"


def ensure_state_dir() -> Path:
    path = state_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


__all__ = ["HOME_ENV", "ensure_state_dir", "state_dir"]
