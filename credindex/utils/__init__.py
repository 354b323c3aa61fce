"""Utility helpers exposed by credindex."""

from .paths import ensure_state_dir, state_dir

__all__ = ["ensure_state_dir", "state_dir"]
