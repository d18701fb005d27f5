"""Widget library for the Textual UI."""

from __future__ import annotations

from .admin_screen import AdminSettingsScreen
from .results_panel import ResultsPanel
from .status_bar import StatusBar

__all__ = ["AdminSettingsScreen", "ResultsPanel", "StatusBar"]
