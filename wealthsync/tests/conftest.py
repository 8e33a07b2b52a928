"""Shared fixtures: in-memory database and settings."""

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wealthsync.core.config import Settings
from wealthsync.core.db import build_engine
from wealthsync.models import Base

TEST_KEY = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="prod",
        DATABASE_URL="sqlite://",
        PUBLIC_BASE_URL="https://api.example.com",
        MORALIS_API_KEY="moralis-key",
        MORALIS_WEBHOOK_SECRET="wallet-secret",
        FMP_API_KEY="fmp-key",
        PLAID_CLIENT_ID="plaid-client",
        PLAID_SECRET="plaid-secret",
        PLAID_WEBHOOK_SECRET="bank-secret",
        ENCRYPTION_KEY=TEST_KEY,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()

