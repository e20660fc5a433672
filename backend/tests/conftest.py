"""Shared test fixtures for all test groups."""

from datetime import UTC, datetime, timedelta

import pytest

from farmtrack.core.config import DEFAULT_STAGE_CATALOG
from farmtrack.domain.stages import StageCatalog
from farmtrack.ledger.stage_ledger import StageLedger


class RecordingNotifier:
    """Captures every StageAdvanced fact it is given."""

    def __init__(self):
        self.facts = []

    def notify(self, fact):
        self.facts.append(fact)


@pytest.fixture
def catalog():
    """The six-stage reference catalog."""
    return StageCatalog(DEFAULT_STAGE_CATALOG)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger(catalog, notifier):
    """Fresh ledger wired to a RecordingNotifier."""
    return StageLedger(catalog, notifier=notifier)


@pytest.fixture
def t0():
    return datetime(2024, 6, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def at(t0):
    """at(days) -> t0 shifted by the given number of days."""

    def _at(days: float) -> datetime:
        return t0 + timedelta(days=days)

    return _at
