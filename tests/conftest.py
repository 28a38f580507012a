"""Fixtures: in-memory database with a small seeded data set."""

import os
from datetime import datetime
from decimal import Decimal

import pytest

os.environ.setdefault("TRACKER_DATABASE_URL", "sqlite://")
os.environ.setdefault("TRACKER_SEED_DEFAULTS", "false")

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from tracker import models
from tracker.database import Base, make_engine, make_session_factory, unit_of_work
from tracker.main import app, get_db


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    with unit_of_work(session):
        session.add_all([
            models.Account(
                id=1,
                name="Cash",
                type=models.AccountType.CASH,
                icon="💵",
                balance=Decimal("0"),
                is_default=True,
            ),
            models.Account(
                id=2,
                name="Bank Account",
                type=models.AccountType.BANK,
                icon="🏦",
                balance=Decimal("0"),
                is_default=True,
            ),
            models.Category(name="Salary", type=models.TransactionType.INCOME, is_default=True),
            models.Category(name="Food", type=models.TransactionType.EXPENSE, is_default=True),
            models.Category(name="Transport", type=models.TransactionType.EXPENSE, is_default=False),
            models.Category(name="Entertainment", type=models.TransactionType.EXPENSE, is_default=False),
        ])
    yield session
    session.close()


@pytest.fixture
def client(db, session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def jan():
    return datetime(2025, 1, 15, 12, 0)


@pytest.fixture
def ledger_balance(db):
    """Balance recomputed from an account's transactions."""

    def _sum(account_id: int) -> Decimal:
        total = Decimal("0")
        rows = db.query(models.Transaction).filter(models.Transaction.account_id == account_id)
        for tx in rows:
            total += models.signed_amount(tx.amount, tx.type)
        return total

    return _sum
