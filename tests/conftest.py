"""
Pytest configuration and fixtures for PrivateKV tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import asyncpg
import pytest
from dotenv import load_dotenv

from privatekv import (
    InMemoryStorage,
    MockTrustAnchor,
    PostgresStorage,
    PrivateKV,
)

ACCOUNT_ID = "alice.near"


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    """Create an in-memory storage instance for testing."""
    return InMemoryStorage()


@pytest.fixture
def mock_trust_anchor() -> MockTrustAnchor:
    """Create a deterministic mock trust anchor."""
    return MockTrustAnchor()


@pytest.fixture
def kv(memory_storage: InMemoryStorage, mock_trust_anchor: MockTrustAnchor) -> PrivateKV:
    """Create a client wired to the in-memory doubles."""
    return PrivateKV(ACCOUNT_ID, storage=memory_storage, trust_anchor=mock_trust_anchor)


@pytest.fixture
async def pg_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a PostgreSQL connection pool for testing."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    pool = await asyncpg.create_pool(database_url)
    if pool is None:
        pytest.skip("Failed to create PostgreSQL connection pool")

    yield pool

    await pool.close()


@pytest.fixture
async def postgres_storage(pg_pool: asyncpg.Pool) -> PostgresStorage:
    """Create a PostgreSQL storage instance with an empty entries table."""
    storage = PostgresStorage(pg_pool)
    await storage.ensure_schema()
    await storage.truncate()
    return storage
