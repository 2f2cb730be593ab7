"""
conftest.py — Shared Test Fixtures for AutoQuote

Provides an in-memory SQLite database, FastAPI TestClient with auth
overrides, and factory fixtures for the core models (User, Vehicle,
Quotation, Supplier, QuotationRequest, WhatsAppConfig).

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- Auth is overridden so router tests don't need a session cookie
- Each test function gets a fresh DB session and fresh tables
- Rate limiting is disabled unless a test turns it back on
- The WhatsApp gateway is never called: services get a fake client

Called by: all test files via pytest autodiscovery
Depends on: autoquote.models (Base), autoquote.database (get_db), autoquote.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing autoquote modules
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TEMPLATE_SEND_DELAY_SECONDS", "0")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from autoquote.models import (
    Base,
    Quotation,
    QuotationRequest,
    Supplier,
    User,
    Vehicle,
    WhatsAppConfig,
    Workshop,
)
from autoquote.services.auth_service import hash_password
from autoquote.services.part_parser import empty_part

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """A standard shop operator."""
    user = User(
        email="oficina@autoquote.test",
        name="Oficina Teste",
        password_hash=hash_password("senha-forte"),
        is_active=True,
        is_admin=False,
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    """An admin user for company management."""
    user = User(
        email="admin@autoquote.test",
        name="Admin",
        password_hash=hash_password("admin-pass"),
        is_active=True,
        is_admin=True,
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def test_vehicle(db_session: Session, test_user: User) -> Vehicle:
    """A vehicle with one photo."""
    vehicle = Vehicle(
        brand="Honda",
        model="Civic",
        year="2021",
        plate="ABC1D23",
        chassis="93HFC2630MZ100001",
        images=["https://cdn.autoquote.test/civic.jpg"],
        user_id=test_user.id,
    )
    db_session.add(vehicle)
    db_session.commit()
    db_session.refresh(vehicle)
    return vehicle


@pytest.fixture()
def test_quotation(db_session: Session, test_user: User, test_vehicle: Vehicle) -> Quotation:
    """A pending quotation with two parts (qty 2 and qty 1)."""
    q = Quotation(
        vehicle_id=test_vehicle.id,
        parts=[
            empty_part(code="33150T5NM01", description="FAROL ESQUERDO", quantity=2),
            empty_part(
                operation="replace+paint",
                code="04711T5NZ00ZZ",
                description="PARA-CHOQUE DIANTEIRO",
                quantity=1,
            ),
        ],
        status="pending",
        input_type="manual",
        user_id=test_user.id,
    )
    db_session.add(q)
    db_session.commit()
    db_session.refresh(q)
    return q


@pytest.fixture()
def make_supplier(db_session: Session, test_user: User):
    """Factory: make_supplier("Auto Peças A", area_code="11", phone="987654321")."""

    def _make(name: str, **fields) -> Supplier:
        data = {
            "area_code": "11",
            "phone": "987654321",
            "city": "São Paulo",
            "state": "SP",
            "categories": [],
        }
        data.update(fields)
        supplier = Supplier(name=name, user_id=test_user.id, **data)
        db_session.add(supplier)
        db_session.commit()
        db_session.refresh(supplier)
        return supplier

    return _make


@pytest.fixture()
def make_response():
    """Factory: build a supplier response_data dict from (available, unit_price) pairs."""

    def _make(quotation: Quotation, prices: list, supplier_name: str = "Fornecedor") -> dict:
        parts = []
        total = 0.0
        for qp, (available, unit_price) in zip(quotation.parts, prices):
            qty = qp.get("quantity", 1)
            line_total = round(unit_price * qty, 2) if available else 0.0
            total += line_total
            parts.append(
                {
                    "description": qp["description"],
                    "code": qp.get("code", ""),
                    "quantity": qty,
                    "available": available,
                    "condition": "new" if available else None,
                    "unit_price": unit_price if available else 0.0,
                    "total_price": line_total,
                    "notes": "",
                    "negotiated": False,
                }
            )
        return {
            "supplier_name": supplier_name,
            "supplier_phone": "11987654321",
            "parts": parts,
            "total_price": round(total, 2),
            "delivery_time": "2 dias",
            "notes": "",
            "payment_method": "PIX",
            "renegotiated": False,
        }

    return _make


@pytest.fixture()
def make_request(db_session: Session, make_response):
    """Factory: attach a QuotationRequest to a quotation, optionally already responded."""

    def _make(quotation: Quotation, supplier: Supplier, prices: list | None = None, status: str = "sent"):
        req = QuotationRequest(supplier_id=supplier.id, status=status, supplier=supplier)
        if prices is not None:
            req.status = "responded"
            req.response_data = make_response(quotation, prices, supplier.name)
            req.responded_at = datetime.now(timezone.utc)
        quotation.requests.append(req)
        db_session.commit()
        return req

    return _make


@pytest.fixture()
def whatsapp_config(db_session: Session, test_user: User) -> WhatsAppConfig:
    config = WhatsAppConfig(
        user_id=test_user.id,
        evolution_api_url="https://evolution.autoquote.test",
        evolution_api_key="evo-key-123",
        instance_name="oficina",
    )
    db_session.add(config)
    db_session.commit()
    db_session.refresh(config)
    return config


@pytest.fixture()
def test_workshop(db_session: Session, test_user: User) -> Workshop:
    w = Workshop(
        name="Oficina Centro",
        address="Rua das Flores, 100",
        city="São Paulo",
        state="SP",
        phone="1133334444",
        user_id=test_user.id,
    )
    db_session.add(w)
    db_session.commit()
    db_session.refresh(w)
    return w


@pytest.fixture()
def fake_whatsapp():
    """Stand-in for EvolutionClient: every send succeeds and is recorded."""
    client = MagicMock()
    client.send_text = AsyncMock(return_value={"key": {"id": "msg-1"}})
    client.send_media = AsyncMock(return_value={"key": {"id": "msg-2"}})
    client.connection_state = AsyncMock(
        return_value={"state": "open", "connected": True, "qrcode": None}
    )
    return client


@pytest.fixture()
def client(db_session: Session, test_user: User) -> TestClient:
    """FastAPI TestClient with auth overridden to return test_user.

    Overrides get_db to use the test session and require_user to
    skip the session cookie entirely.
    """
    from autoquote.database import get_db
    from autoquote.dependencies import require_user
    from autoquote.main import app
    from autoquote.services.abbreviations import AbbreviationCache

    def _override_db():
        yield db_session

    def _override_user():
        return test_user

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = _override_user

    with TestClient(app) as c:
        app.state.abbreviations = AbbreviationCache()
        yield c

    app.dependency_overrides.clear()
