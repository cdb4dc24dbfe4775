"""Lifespan startup and shutdown, with the database manager and migrations mocked."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from followdeck.app import create_app, lifespan
from presence.errors import PersistenceFailure


@pytest.fixture
def db_manager():
    manager = MagicMock()
    manager.connect = AsyncMock()
    manager.disconnect = AsyncMock()
    return manager


async def test_failed_migration_closes_pool(db_manager):
    runner = MagicMock()
    runner.run_pending = AsyncMock(side_effect=PersistenceFailure("migration 000 failed"))

    with (
        patch("followdeck.app.init_database_manager", return_value=db_manager),
        patch("followdeck.app.MigrationRunner", return_value=runner),
        pytest.raises(PersistenceFailure),
    ):
        async with lifespan(create_app()):
            pass

    db_manager.connect.assert_awaited_once()
    db_manager.disconnect.assert_awaited_once()


async def test_shutdown_closes_pool(db_manager):
    runner = MagicMock()
    runner.run_pending = AsyncMock(return_value=[])

    with (
        patch("followdeck.app.init_database_manager", return_value=db_manager),
        patch("followdeck.app.MigrationRunner", return_value=runner),
    ):
        async with lifespan(create_app()):
            db_manager.disconnect.assert_not_awaited()

    db_manager.disconnect.assert_awaited_once()
