"""MCP tools for the light/dark presentation preference."""

from __future__ import annotations

import json
import logging

from fastmcp import FastMCP

from riskview.core.preferences.store import PreferenceState, PreferenceStore, ThemeMode

logger = logging.getLogger(__name__)


def _as_json(state: PreferenceState) -> str:
    return json.dumps({"mode": state.mode.value, "origin": state.origin.value})


def register_preference_tools(mcp: FastMCP, store: PreferenceStore) -> None:
    """Register theme tools backed by the process-wide preference store."""

    @mcp.tool
    def get_theme() -> str:
        """Return the current presentation mode and whether the user chose it."""
        return _as_json(store.state)

    @mcp.tool
    def set_theme(mode: str) -> str:
        """Set the presentation mode.

        Args:
            mode: 'light' or 'dark'.
        """
        try:
            selected = ThemeMode(mode)
        except ValueError:
            return json.dumps({
                "status": "error",
                "error": f"Unknown mode {mode!r}; use light or dark",
            })
        return _as_json(store.set_mode(selected))

    @mcp.tool
    def toggle_theme() -> str:
        """Switch between light and dark mode."""
        return _as_json(store.toggle())
