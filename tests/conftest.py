"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timezone
from typing import Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from biblioteca_gateway.api.main import create_app
from biblioteca_gateway.domain.models import Book, LoanRecord, User
from biblioteca_gateway.domain.policy import PolicyConfig, build_policy
from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.database.models import Base
from biblioteca_gateway.infrastructure.database.repositories import (
    SqlBookCatalog,
    SqlLoanStore,
    SqlUserDirectory,
    seed_directory,
)
from biblioteca_gateway.infrastructure.memory import (
    InMemoryBookCatalog,
    InMemoryLoanStore,
    InMemoryUserDirectory,
    RoleSet,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2024, 1, 16, tzinfo=timezone.utc)


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


class FrozenClock:
    """Clock whose reading the test controls"""

    def __init__(self, now: datetime):
        self.now = now
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def books() -> list[Book]:
    return [
        Book(id="b1", titulo="Cien años de soledad"),
        Book(id="b2", titulo="Don Quijote de la Mancha"),
        Book(id="b3", titulo="Rayuela"),
        Book(id="b4", titulo="Pedro Páramo"),
        Book(id="b5", titulo="La casa de los espíritus"),
    ]


@pytest.fixture
def users() -> list[User]:
    return [
        User(id="u1", nombre="Ana", apellidos="García", email="Ana.Garcia@uni.edu", role="estudiante"),
        User(id="u2", nombre="Luis", apellidos="Pérez", email="luis.perez@uni.edu", role="profesor"),
        User(id="u3", nombre="Marta", apellidos="Ruiz", email="marta@biblio.org", role="bibliotecario"),
        User(id="u4", nombre="Invitado", apellidos="Externo", email="guest@example.com", role="visitante"),
    ]


@pytest.fixture
def loans() -> list[LoanRecord]:
    """
    Evaluated at NOW (2024-01-16):
    - L1 prestado, due 2024-01-15 -> overdue
    - L2 prestado, due 2024-01-25 -> on time
    - L3 devuelto long ago -> never overdue
    - L4 flagged retrasado by the sweep
    """
    return [
        LoanRecord("L1", "b1", "u1", utc(2024, 1, 1), utc(2024, 1, 15), "prestado"),
        LoanRecord("L2", "b2", "u2", utc(2024, 1, 10), utc(2024, 1, 25), "prestado"),
        LoanRecord("L3", "b3", "u1", utc(2023, 12, 1), utc(2023, 12, 8), "devuelto"),
        LoanRecord("L4", "b4", "u2", utc(2023, 12, 20), utc(2024, 1, 3), "retrasado"),
    ]


@pytest.fixture
def policy() -> PolicyConfig:
    return build_policy(
        {"estudiante": 7, "profesor": 15, "bibliotecario": 14, "administrador": 30},
        max_renewals=2,
        max_active_loans=3,
    )


@pytest.fixture
def staff() -> RoleSet:
    return RoleSet(["bibliotecario"])


@pytest.fixture
def reader() -> RoleSet:
    return RoleSet(["estudiante"])


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def registry(loans, books, users, policy, clock, notifier) -> LoanRegistry:
    """Registry over in-memory collaborators"""
    return LoanRegistry(
        store=InMemoryLoanStore(loans),
        catalog=InMemoryBookCatalog(books),
        directory=InMemoryUserDirectory(users),
        policy=policy,
        clock=clock,
        notifier=notifier,
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sql_registry(db, loans, books, users, policy, clock) -> LoanRegistry:
    """Registry over the SQLite test database, seeded with the sample data"""
    seed_directory(db, books, users)
    store = SqlLoanStore(TestingSessionLocal)
    for loan in loans:
        store.add(loan)
    return LoanRegistry(
        store=store,
        catalog=SqlBookCatalog(TestingSessionLocal),
        directory=SqlUserDirectory(TestingSessionLocal),
        policy=policy,
        clock=clock,
    )


@pytest.fixture
def client(sql_registry: LoanRegistry) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app(registry=sql_registry)
    return TestClient(app)


@pytest.fixture
def staff_headers() -> dict:
    return {"X-User-Roles": "bibliotecario"}
