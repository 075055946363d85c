"""
Pytest configuration and shared fixtures for the taste engine tests.
"""
import os
import sys
from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def now() -> datetime:
    """A fixed, timezone-aware clock reading."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def candidate_wire() -> list[float]:
    """64-d candidate embedding with a few strong dims and some noise."""
    values = [0.0] * 64
    values[0] = 0.8
    values[1] = -0.6
    values[2] = 0.4
    values[3] = 0.05    # below the low-signal threshold
    return values


@pytest.fixture
def candidate_embedding(candidate_wire):
    from engines.embedding import StyleEmbedding
    return StyleEmbedding.from_wire(candidate_wire)


@pytest.fixture
def catalog_items():
    """A small mixed-category catalog."""
    from engines.ranking_engine import CatalogItem
    from engines.domains import RarityTier

    categories = ["sofa", "sofa", "sofa", "sofa", "sofa", "sofa", "lamp", "rug", "chair", "lamp"]
    items = []
    for i, category in enumerate(categories):
        items.append(CatalogItem(
            id=f"item-{i:02d}",
            category=category,
            title=f"Item {i}",
            axis_weights={
                "minimal_ornate": -0.8 + 0.15 * i,
                "warm_cool": 0.5 - 0.1 * i,
                "organic_industrial": 0.3 if i % 2 else -0.3,
            },
            clusters=frozenset({"warm_organic"} if i % 3 == 0 else {"industrial_dark"}),
            rarity_tier=[RarityTier.ARCHIVE, RarityTier.CONTEMPORARY, RarityTier.EMERGENT][i % 3],
            year_range=f"{1960 + 7 * i}-{1965 + 7 * i}",
            material="oak" if i % 2 else "steel",
        ))
    return items


# ============================================================================
# Fixtures: Services
# ============================================================================

@pytest.fixture
def coordinator():
    """Coordinator over fresh in-memory stores."""
    from services.reinforcement import ReinforcementCoordinator
    return ReinforcementCoordinator()


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value.data = [{"id": "test"}]
    mock_client.table.return_value.upsert.return_value.execute.return_value.data = [{"id": "test"}]

    return mock_client


@pytest.fixture
def mock_supabase(mock_supabase_client):
    """Patch Supabase client creation."""
    with patch("supabase.create_client", return_value=mock_supabase_client):
        yield mock_supabase_client


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(coordinator):
    """FastAPI application wired to in-memory services."""
    from api.app import create_app
    from services.advisory_signals import AdvisorySignalStore
    from services.providers import get_coordinator, get_signal_store, get_tolerance_store
    from services.tolerance import ToleranceStore

    application = create_app()
    signals = AdvisorySignalStore()
    tolerance = ToleranceStore()
    application.dependency_overrides[get_coordinator] = lambda: coordinator
    application.dependency_overrides[get_signal_store] = lambda: signals
    application.dependency_overrides[get_tolerance_store] = lambda: tolerance
    return application


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests if no credentials are configured."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")
    supabase_url = os.getenv("SUPABASE_URL")

    for item in items:
        if "supabase" in item.keywords and not supabase_url:
            item.add_marker(skip_supabase)
