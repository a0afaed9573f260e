"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so imports like
``import stats_engine`` resolve correctly regardless of the working directory
pytest chooses, and provides shared calendar fixtures.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()


@pytest.fixture
def now() -> datetime:
    """A fixed "now" well after every test interval."""
    return datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def calendar(now):
    """UTC calendar, Monday first, pinned to the ``now`` fixture."""
    from stats_engine.domain.utils.calendar import StatsCalendar

    return StatsCalendar(timezone=timezone.utc, first_weekday=0, clock=lambda: now)
