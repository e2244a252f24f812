"""Test configuration and fixtures."""

import pytest

from copytrade_orchestrator.domain.models import User
from copytrade_orchestrator.domain.store import DomainStore, EntityKind
from copytrade_orchestrator.service import CopyTradingService


@pytest.fixture
def store() -> DomainStore:
    """Provide an empty domain store."""
    return DomainStore()


@pytest.fixture
def service(store: DomainStore) -> CopyTradingService:
    """Provide a service over the empty store."""
    return CopyTradingService(store)


@pytest.fixture
def trader(store: DomainStore) -> User:
    """Provide a registered trader with no followers."""
    user = User(id="T", username="Trader", balance=10000.0, is_trader=True)
    store.insert(EntityKind.USERS, user)
    return user


@pytest.fixture
def follower(store: DomainStore) -> User:
    """Provide a registered, non-trader user."""
    user = User(id="F", username="Follower", balance=10000.0)
    store.insert(EntityKind.USERS, user)
    return user
