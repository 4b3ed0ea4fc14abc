"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from upholstery_tracker.models.base import Base
from upholstery_tracker.models.enums import MaterialKind, UnitOfMeasure
from upholstery_tracker.utils.config import reset_config


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep the developer's environment out of the configuration singleton."""
    for var in (
        "UPHOLSTERY_TRACKER_ENV",
        "UPHOLSTERY_TRACKER_DATABASE_URL",
        "UPHOLSTERY_TRACKER_TENANT",
        "UPHOLSTERY_TRACKER_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import upholstery_tracker.models  # noqa: F401

    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import upholstery_tracker.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def vinyl(test_db):
    """Black vinyl with 10 m in stock at 5.00/m (value 50)."""
    from upholstery_tracker.services import inventory_service

    material = inventory_service.create_material(
        "Black Vinyl", MaterialKind.VINYL, UnitOfMeasure.METER, min_stock=2.0
    )
    return inventory_service.record_purchase(material.id, 10.0, 50.0)


@pytest.fixture(scope="function")
def foam(test_db):
    """Seat foam with 4 sheets in stock at 12.50/sheet."""
    from upholstery_tracker.services import inventory_service

    material = inventory_service.create_material(
        "Seat Foam 2cm", MaterialKind.FOAM, UnitOfMeasure.SHEET
    )
    return inventory_service.record_purchase(material.id, 4.0, 50.0)


@pytest.fixture(scope="function")
def seat_cover(test_db, vinyl, foam):
    """Seat cover product: 3 m vinyl + 1 sheet foam, list price 200."""
    from upholstery_tracker.services import product_service

    return product_service.create_product(
        "Seat Cover",
        200.0,
        [
            {"material_id": vinyl.id, "quantity": 3.0},
            {"material_id": foam.id, "quantity": 1.0},
        ],
        stock=1.0,
    )
