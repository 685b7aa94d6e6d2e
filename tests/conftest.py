"""
tests/conftest.py -- Shared test fixtures for WinkLink tests.

This module provides:
  - hasher / issuer: credential services with cheap argon2 parameters
  - store: an isolated DeviceStore on a temporary SQLite file per test
  - coordinator / authenticator: services wired to that store
  - make_registration(): builds a Registration with overridable fields
  - api_client: TestClient whose lifespan is patched to use test services

Design: stores use real SQLite files under tmp_path rather than :memory:.
An in-memory database is one connection per thread, which would let a
uniqueness check run on the same connection as an open registration unit --
exactly the dirty read the store is designed to prevent. Files give every
pooled connection its own view, like production.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authenticator import LoginAuthenticator
from auth.passwords import CredentialHasher
from auth.tokens import TokenIssuer
from devices.models import Registration
from devices.registration import RegistrationCoordinator
from devices.store import DeviceStore

TEST_SECRET_KEY = "winklink-test-secret-key-0123456789abcdef"

# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    """argon2id with the smallest sane cost so the suite stays fast."""
    return CredentialHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture(scope="session")
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET_KEY, ttl_seconds=3600)


@pytest.fixture
def store(tmp_path) -> Generator[DeviceStore, None, None]:
    s = DeviceStore(f"sqlite:///{tmp_path / 'devices.db'}", transaction_timeout=5.0)
    yield s
    s.close()


@pytest.fixture
def coordinator(store: DeviceStore, hasher: CredentialHasher) -> RegistrationCoordinator:
    return RegistrationCoordinator(store, hasher)


@pytest.fixture
def authenticator(store: DeviceStore, hasher: CredentialHasher, issuer: TokenIssuer) -> LoginAuthenticator:
    return LoginAuthenticator(store, hasher, issuer)


def make_registration(**overrides) -> Registration:
    fields = {
        "serial_number": "SN12345678",
        "email": "a@x.com",
        "username": "alice",
        "password": "pw123",
        "device_name": "phone",
    }
    fields.update(overrides)
    return Registration(**fields)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: DeviceStore, hasher: CredentialHasher, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires test services into app.state so TestClient routes see an isolated
    store and a known signing key instead of the configured ones.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.device_store = store
        app.state.token_issuer = issuer
        app.state.coordinator = RegistrationCoordinator(store, hasher)
        app.state.authenticator = LoginAuthenticator(store, hasher, issuer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(
    tmp_path_factory, hasher: CredentialHasher, issuer: TokenIssuer
) -> Generator[tuple[TestClient, DeviceStore], None, None]:
    """Yield (client, store) for API integration tests.

    One TestClient and one database per test module. Tests inside a module
    share the database, so each one uses its own serial numbers and emails.
    """
    db_path = tmp_path_factory.mktemp("api") / "devices.db"
    store = DeviceStore(f"sqlite:///{db_path}")

    app.router.lifespan_context = _patch_lifespan(store, hasher, issuer)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, store

    store.close()
