"""Shared fixtures for the ShopPersona tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.personalization.catalog import Catalog
from src.personalization.storage import InMemoryStore

START_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sample_products():
    return [
        {"id": "P1", "name": "Roasted Almonds", "category": "Nuts",
         "description": "crunchy roasted almonds", "rating": 4.5, "featured": True},
        {"id": "P2", "name": "Salted Cashews", "category": "Nuts",
         "description": "salted cashew nuts", "rating": 3.5, "featured": False},
        {"id": "P3", "name": "Honey Almonds", "category": "Nuts",
         "description": "honey glazed almonds", "rating": 3.0, "featured": False},
        {"id": "P4", "name": "Medjool Dates", "category": "Dry Fruits",
         "description": "soft medjool dates", "rating": 4.8, "featured": False},
        {"id": "P5", "name": "Golden Raisins", "category": "Dry Fruits",
         "description": "sweet golden raisins", "rating": 3.2, "featured": False},
        {"id": "P6", "name": "Chia Seeds", "category": "Seeds",
         "description": "organic chia seeds", "rating": 2.9, "featured": False},
    ]


@pytest.fixture
def catalog(sample_products):
    return Catalog(sample_products)
