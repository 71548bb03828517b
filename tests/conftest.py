"""Shared fixtures for GatheringSplit tests."""

import pytest

from gathering_split.config import Settings
from gathering_split.db import Database
from gathering_split.service import GatheringService


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary database."""
    return Settings(database_path=tmp_path / "test.db")


@pytest.fixture
def db(settings):
    """Create a temporary database."""
    database = Database(settings.database_path)
    yield database
    database.close()


@pytest.fixture
def service(settings, db):
    """Create a GatheringService instance."""
    return GatheringService(settings, db)
