"""Short import path for AppState and its application key."""

from __future__ import annotations

from .models.app_state import APP_STATE_KEY, AppState

__all__ = ["APP_STATE_KEY", "AppState"]
