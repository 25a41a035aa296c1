"""Tests for browsing event recording and aggregate maintenance."""

import json
import threading

import pytest

from src.personalization.models import PageType
from src.personalization.storage import InMemoryStore, JsonFileStore, StorageKeys
from src.personalization.tracker import BrowsingTracker, HistoryLimits


@pytest.fixture
def tracker(store, clock):
    return BrowsingTracker(store, clock=clock)


def view_product(tracker, product_id, times=1):
    for _ in range(times):
        assert tracker.record_event(
            f"/products/{product_id}", "product", {"productId": product_id}
        )


def test_record_product_event_updates_history_and_counts(tracker):
    """Test that a product view lands in the history and the view counts."""
    assert tracker.record_event("/products/P1", "product", {"productId": "P1"})

    history = tracker.get_browsing_history()
    assert len(history) == 1
    assert history[0].path == "/products/P1"
    assert history[0].page_type is PageType.PRODUCT
    assert history[0].timestamp == "2024-06-01T12:00:00.000Z"
    assert history[0].product_id == "P1"
    assert tracker.get_product_view_counts() == {"P1": 1}


def test_record_event_rejects_invalid_input(tracker, store):
    """Test that invalid paths or page types are not recorded."""
    assert tracker.record_event("", "product", {"productId": "P1"}) is False
    assert tracker.record_event("/products/P1", "checkout") is False
    assert tracker.record_event(None, "page") is False

    assert tracker.get_browsing_history() == []
    assert store.get(StorageKeys.PRODUCT_VIEWS) is None


def test_metadata_only_feeds_matching_page_type(tracker):
    """Test that aggregates are only updated for the matching page type."""
    tracker.record_event("/home", "page", {"productId": "P1", "category": "Nuts"})

    assert len(tracker.get_browsing_history()) == 1
    assert tracker.get_product_view_counts() == {}
    assert tracker.get_category_preferences() == {}


def test_history_is_newest_first_and_capped(store, clock):
    """Test that the history keeps only the newest events up to the cap."""
    tracker = BrowsingTracker(store, limits=HistoryLimits(browsing_history=3), clock=clock)
    for i in range(1, 6):
        clock.advance(minutes=1)
        tracker.record_event(f"/page/{i}", "page")

    paths = [event.path for event in tracker.get_browsing_history()]
    assert paths == ["/page/5", "/page/4", "/page/3"]


def test_product_view_eviction_drops_least_viewed(store, clock):
    """Test that exceeding the product cap evicts the least viewed product."""
    tracker = BrowsingTracker(store, limits=HistoryLimits(product_views=3), clock=clock)
    view_product(tracker, "A", times=4)
    view_product(tracker, "B", times=3)
    view_product(tracker, "C", times=2)
    view_product(tracker, "D", times=1)

    counts = tracker.get_product_view_counts()
    assert len(counts) == 3
    assert "D" not in counts
    assert counts == {"A": 4, "B": 3, "C": 2}


def test_category_preferences_are_capped(store, clock):
    """Test that category preferences follow the same eviction rule."""
    tracker = BrowsingTracker(
        store, limits=HistoryLimits(category_preferences=2), clock=clock
    )
    for category, times in (("Nuts", 3), ("Seeds", 2), ("Spices", 1)):
        for _ in range(times):
            tracker.record_event(f"/c/{category}", "category", {"category": category})

    assert tracker.get_category_preferences() == {"Nuts": 3, "Seeds": 2}
    assert tracker.get_preferred_categories() == [
        {"category": "Nuts", "weight": 3},
        {"category": "Seeds", "weight": 2},
    ]


def test_search_terms_are_deduplicated_and_capped(store, clock):
    """Test that repeating a term moves it to the front without duplicating it."""
    tracker = BrowsingTracker(store, limits=HistoryLimits(search_history=3), clock=clock)
    for term in ("nuts", "dates", "nuts", "figs", "saffron"):
        clock.advance(seconds=1)
        tracker.record_event(f"/search?q={term}", "search", {"searchTerm": term})

    terms = [entry.term for entry in tracker.get_search_history()]
    assert terms == ["saffron", "figs", "nuts"]


def test_most_viewed_products_are_ranked(tracker):
    """Test most viewed products come back as productId / viewCount pairs."""
    view_product(tracker, "P2", times=1)
    view_product(tracker, "P1", times=3)

    assert tracker.get_most_viewed_products(limit=1) == [{"productId": "P1", "viewCount": 3}]
    assert [e.product_id for e in tracker.get_recent_product_views()] == [
        "P1", "P1", "P1", "P2"
    ]


def test_profile_is_recomputed_after_each_event(tracker):
    """Test the profile summary reflects the aggregates."""
    assert tracker.get_personalization_profile() is None

    view_product(tracker, "P1", times=2)
    tracker.record_event("/c/nuts", "category", {"category": "Nuts"})
    tracker.record_event("/search?q=dates", "search", {"searchTerm": "dates"})

    profile = tracker.get_personalization_profile()
    assert profile.last_updated == "2024-06-01T12:00:00.000Z"
    assert profile.stats.total_page_views == 4
    assert profile.stats.product_views == 2
    assert profile.stats.category_views == 1
    assert profile.stats.search_count == 1
    assert profile.preferences.top_products == ["P1"]
    assert profile.preferences.top_categories == ["Nuts"]
    assert profile.preferences.recent_searches == ["dates"]


def test_feedback_overwrites_same_section_and_product(tracker, clock):
    """Test that later feedback for the same key replaces earlier feedback."""
    assert tracker.record_feedback("recently-viewed", "P1", True)
    clock.advance(minutes=5)
    assert tracker.record_feedback("recently-viewed", "P1", False)

    feedback = tracker.get_feedback()
    assert list(feedback.keys()) == ["recently-viewed:P1"]
    assert feedback["recently-viewed:P1"].is_relevant is False
    assert tracker.get_feedback_for("recently-viewed", "P1").timestamp == (
        "2024-06-01T12:05:00.000Z"
    )

    metrics = tracker.get_metrics()
    assert metrics.feedback.positive == 1
    assert metrics.feedback.negative == 1


def test_feedback_evicts_oldest_beyond_cap(store, clock):
    """Test that the oldest feedback is evicted when the cap is exceeded."""
    tracker = BrowsingTracker(store, limits=HistoryLimits(feedback=2), clock=clock)
    for product_id in ("P1", "P2", "P3"):
        clock.advance(minutes=1)
        tracker.record_feedback("featured", product_id, True)

    assert sorted(tracker.get_feedback()) == ["featured:P2", "featured:P3"]


def test_feedback_ids_are_stored_as_strings(tracker):
    """Test numeric ids are normalized to strings in the composite key."""
    tracker.record_feedback("featured", 7, True)
    assert tracker.get_feedback_for("featured", "7").product_id == "7"


def test_engagement_counters(tracker):
    """Test impressions, clicks and conversions accumulate."""
    tracker.record_impressions(4)
    tracker.record_impressions(0)
    tracker.record_click()
    tracker.record_conversion()

    metrics = tracker.get_metrics()
    assert metrics.impressions == 4
    assert metrics.clicks == 1
    assert metrics.conversions == 1
    assert metrics.last_updated == "2024-06-01T12:00:00.000Z"


def test_clear_removes_every_personalization_key(tracker, store):
    """Test that clearing purges all eight keys and the schema marker."""
    view_product(tracker, "P1")
    tracker.record_event("/c/nuts", "category", {"category": "Nuts"})
    tracker.record_event("/search?q=x", "search", {"searchTerm": "x"})
    tracker.record_feedback("featured", "P1", True)
    store.write_json(StorageKeys.PERSONALIZATION_SETTINGS, {"enabled": True})

    assert tracker.clear_personalization_data()
    for key in StorageKeys.personalization_keys():
        assert store.get(key) is None
    assert store.get(StorageKeys.SCHEMA_VERSION) is None
    assert tracker.get_browsing_history() == []


def test_legacy_entries_with_spread_metadata_are_read():
    """Test that history written without a metadata object is still understood."""
    legacy = [{
        "path": "/products/P9",
        "pageType": "product",
        "timestamp": "2024-05-31T12:00:00.000Z",
        "productId": "P9",
        "category": "Nuts",
    }]
    store = InMemoryStore({StorageKeys.BROWSING_HISTORY: json.dumps(legacy)})
    history = BrowsingTracker(store).get_browsing_history()

    assert history[0].metadata == {"productId": "P9", "category": "Nuts"}
    assert history[0].product_id == "P9"


def test_corrupted_or_misshapen_values_read_as_empty():
    """Test readers fall back to empty aggregates on bad stored data."""
    store = InMemoryStore({
        StorageKeys.BROWSING_HISTORY: "not json",
        StorageKeys.PRODUCT_VIEWS: "[1, 2, 3]",
    })
    tracker = BrowsingTracker(store)

    assert tracker.get_browsing_history() == []
    assert tracker.get_product_view_counts() == {}
    assert tracker.record_event("/products/P1", "product", {"productId": "P1"})
    assert tracker.get_product_view_counts() == {"P1": 1}


def test_newer_schema_is_neither_read_nor_overwritten():
    """Test that data from a newer schema version is left untouched."""
    history = json.dumps([{"path": "/x", "pageType": "page", "timestamp": "2024-01-01T00:00:00Z"}])
    store = InMemoryStore({
        StorageKeys.SCHEMA_VERSION: "99",
        StorageKeys.BROWSING_HISTORY: history,
    })
    tracker = BrowsingTracker(store)

    assert tracker.get_browsing_history() == []
    assert tracker.record_event("/products/P1", "product", {"productId": "P1"}) is False
    assert store.get(StorageKeys.BROWSING_HISTORY) == history

def test_concurrent_events_do_not_lose_view_counts(tmp_path):
    """Test that view counts stay exact when several threads record at once."""
    tracker = BrowsingTracker(JsonFileStore(str(tmp_path / "store.json")))
    num_threads, events_per_thread = 8, 25

    def record_views():
        for _ in range(events_per_thread):
            tracker.record_event("/products/1", "product", {"productId": "1"})

    threads = [threading.Thread(target=record_views) for _ in range(num_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tracker.get_product_view_counts() == {"1": num_threads * events_per_thread}
