"""
Test configuration and shared fixtures for the scheduling test suite.

Uses an in-memory SQLite database by default (override with
TEST_DATABASE_URL). Each test gets a freshly created schema, so services
are free to commit and roll back.

All service fixtures share a fixed clock: "now" is Monday 2025-06-02 08:00
in Europe/Paris.
"""

import os
from datetime import date, datetime, time
from typing import Any, Callable, Dict, Generator, List, Optional
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
from models import (
    Appointment,
    Client,
    OrganizationScheduleSettings,
    Service,
)
from models.organization_schedule_settings import ScheduleSettings
from services import (
    AppointmentEventPublisher,
    AppointmentService,
    AvailabilityService,
    BookingService,
    ScheduleStore,
    SettingsService,
)
from utils.datetime_utils import get_zone


# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

ORG_ID = "org-1"
PARIS = ZoneInfo("Europe/Paris")
FIXED_NOW = datetime(2025, 6, 2, 8, 0, tzinfo=PARIS)  # Monday


def fixed_clock(tz_name: Optional[str] = None) -> datetime:
    """Clock pinned to FIXED_NOW, expressed in the requested timezone."""
    return FIXED_NOW.astimezone(get_zone(tz_name))


def _merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    In-memory SQLite needs a single shared connection (StaticPool) so the
    schema is visible to every session, including the API's.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> Generator[sessionmaker, None, None]:
    """Fresh schema for every test; yields a session factory bound to it."""
    Base.metadata.create_all(bind=db_engine)
    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)

    yield factory

    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# ===== Services =====

@pytest.fixture
def store(db_session) -> ScheduleStore:
    return ScheduleStore(db_session)


@pytest.fixture
def settings_service(store) -> SettingsService:
    return SettingsService(store)


@pytest.fixture
def availability_service(store, settings_service) -> AvailabilityService:
    return AvailabilityService(store, settings_service)


@pytest.fixture
def publisher() -> AppointmentEventPublisher:
    return AppointmentEventPublisher()


@pytest.fixture
def published_events(publisher) -> List[Any]:
    """Events published during the test, in order."""
    events: List[Any] = []
    publisher.subscribe(events.append)
    return events


@pytest.fixture
def appointment_service(store, availability_service, settings_service, publisher) -> AppointmentService:
    return AppointmentService(store, availability_service, settings_service, publisher, clock=fixed_clock)


@pytest.fixture
def booking_service(store, appointment_service) -> BookingService:
    return BookingService(store, appointment_service)


# ===== Factories =====

@pytest.fixture
def make_settings(db_session) -> Callable[..., OrganizationScheduleSettings]:
    """
    Create organization settings.

    Keyword arguments are deep-merged into the defaults, e.g.
    make_settings(booking_rules={"cancellation_deadline_hours": 48}).
    """
    def _make(organization_id: str = ORG_ID, **overrides: Any) -> OrganizationScheduleSettings:
        document = _merge(ScheduleSettings().model_dump(), overrides)
        row = OrganizationScheduleSettings(organization_id=organization_id)
        row.set_validated_settings(ScheduleSettings.model_validate(document))
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_client(db_session) -> Callable[..., Client]:
    def _make(
        organization_id: str = ORG_ID,
        email: str = "jane.doe@example.com",
        first_name: str = "Jane",
        last_name: str = "Doe",
        phone: str = "+33612345678",
    ) -> Client:
        client = Client(
            organization_id=organization_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )
        db_session.add(client)
        db_session.commit()
        return client

    return _make


@pytest.fixture
def make_service(db_session) -> Callable[..., Service]:
    def _make(
        organization_id: str = ORG_ID,
        name: str = "Consultation",
        duration: int = 30,
        practitioners: Optional[List[str]] = None,
        is_active: bool = True,
    ) -> Service:
        service = Service(
            organization_id=organization_id,
            name=name,
            duration=duration,
            practitioners=practitioners if practitioners is not None else ["prac-1", "prac-2"],
            is_active=is_active,
        )
        db_session.add(service)
        db_session.commit()
        return service

    return _make


@pytest.fixture
def make_appointment(db_session) -> Callable[..., Appointment]:
    """Persist an appointment directly, bypassing the scheduling rules."""
    def _make(
        client: Client,
        service: Service,
        practitioner_id: str = "prac-1",
        day: date = date(2025, 6, 3),
        start: time = time(10, 0),
        duration: int = 30,
        status: str = "scheduled",
        organization_id: str = ORG_ID,
    ) -> Appointment:
        appointment = Appointment(
            organization_id=organization_id,
            client_id=client.id,
            practitioner_id=practitioner_id,
            service_id=service.id,
            date=day,
            start_time=start,
            duration=duration,
            status=status,
        )
        db_session.add(appointment)
        db_session.commit()
        return appointment

    return _make


# ===== API =====

@pytest.fixture
def api_client(session_factory, publisher) -> Generator[TestClient, None, None]:
    """
    TestClient for the FastAPI app backed by the test database.

    Each request gets its own session from the test session factory; the
    scheduling clock is pinned to FIXED_NOW.
    """
    from unittest.mock import patch

    from main import create_app

    app = create_app(publisher)

    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with patch("services.appointment_service.organization_now", fixed_clock):
        yield TestClient(app)

    app.dependency_overrides.clear()
