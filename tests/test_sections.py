"""Tests for personalized homepage sections."""

import pytest

from src.personalization.models import PersonalizationSettings
from src.personalization.sections import build_personalized_sections, default_sections
from src.personalization.tracker import BrowsingTracker


@pytest.fixture
def tracker(store, clock):
    return BrowsingTracker(store, clock=clock)


class BrokenTracker:
    def get_recent_product_views(self, limit):
        raise RuntimeError("storage unavailable")


def test_new_shopper_gets_default_sections(catalog, tracker):
    """Test a shopper without history sees featured and bestseller sections."""
    sections = build_personalized_sections(catalog, tracker)

    assert [s.id for s in sections] == ["featured", "bestsellers"]
    assert [p["id"] for p in sections[0].products] == ["P1"]
    assert sections[1].products[0]["id"] == "P4"


def test_browsing_builds_personalized_sections(catalog, tracker, clock):
    """Test recently viewed, favorites and category sections are built."""
    tracker.record_event("/products/P2", "product", {"productId": "P2"})
    clock.advance(minutes=1)
    tracker.record_event("/products/P4", "product", {"productId": "P4"})
    tracker.record_event("/products/P2", "product", {"productId": "P2"})
    tracker.record_event("/c/dry-fruits", "category", {"category": "Dry Fruits"})

    sections = build_personalized_sections(
        catalog, tracker, PersonalizationSettings(max_sections=5)
    )

    assert [s.id for s in sections] == [
        "recently-viewed", "most-viewed", "category-dry-fruits"
    ]
    assert [p["id"] for p in sections[0].products] == ["P2", "P4"]
    assert sections[1].title == "Your Favorites"
    assert sections[1].products[0]["id"] == "P2"
    assert sections[2].title == "Dry Fruits Collection"
    assert [p["id"] for p in sections[2].products] == ["P4", "P5"]


def test_sections_respect_layout_limits(catalog, tracker):
    """Test max_sections and max_items_per_section are applied."""
    for pid in ("P1", "P2", "P3"):
        tracker.record_event(f"/products/{pid}", "product", {"productId": pid})

    settings = PersonalizationSettings(max_sections=1, max_items_per_section=2)
    sections = build_personalized_sections(catalog, tracker, settings)

    assert len(sections) == 1
    assert len(sections[0].products) == 2


def test_unknown_products_are_skipped(catalog, tracker):
    """Test views of products missing from the catalog are ignored."""
    tracker.record_event("/products/P99", "product", {"productId": "P99"})

    sections = build_personalized_sections(catalog, tracker)
    assert [s.id for s in sections] == ["featured", "bestsellers"]


def test_errors_fall_back_to_default_sections(catalog):
    """Test a failing tracker yields the default sections."""
    sections = build_personalized_sections(catalog, BrokenTracker())
    assert [s.id for s in sections] == ["featured", "bestsellers"]


def test_default_sections_cap_items(catalog):
    """Test default sections respect the item limit."""
    sections = default_sections(catalog, max_items=3)
    assert len(sections[1].products) == 3
