"""Tests for the personalization engine facade."""

import pytest

from src.personalization.catalog import Catalog
from src.personalization.engine import PersonalizationEngine
from src.personalization.related import (
    SIMILARITY_INDEX_FILENAME,
    build_similarity_index,
    load_similarity_index,
    save_similarity_index,
)
from src.personalization.storage import StorageKeys


@pytest.fixture
def engine(store, catalog, clock):
    return PersonalizationEngine(store, catalog=catalog, clock=clock, random_state=3)


def test_recommend_uses_catalog_and_counts_impressions(engine):
    """Test recommendations come from the catalog and are counted."""
    engine.record_event("/products/P5", "product", {"productId": "P5"})

    recommendations = engine.recommend(limit=3, exclude_ids=["P1"])

    assert len(recommendations) == 3
    assert recommendations[0]["id"] == "P5"
    assert recommendations[0]["isPersonalized"] is True
    assert "P1" not in [p["id"] for p in recommendations]
    assert engine.tracker.get_metrics().impressions == 3


def test_recommend_with_explicit_candidates(store, clock):
    """Test an engine without a catalog can rank explicit candidates."""
    engine = PersonalizationEngine(store, clock=clock)
    assert engine.recommend(limit=2) == []

    result = engine.recommend(limit=2, candidates=[{"id": "A"}, {"id": "B"}])
    assert sorted(p["id"] for p in result) == ["A", "B"]


def test_score_and_explain_agree(engine):
    """Test score() returns the score explain() reports."""
    engine.record_event("/products/P2", "product", {"productId": "P2"})
    assert engine.score("P2") == pytest.approx(engine.explain("P2").score)


def test_settings_round_trip(engine):
    """Test settings updates are visible and reset restores defaults."""
    engine.update_settings({"maxSections": 1})
    assert engine.settings.max_sections == 1
    assert len(engine.sections()) == 1

    engine.reset_settings()
    assert engine.settings.max_sections == 3


def test_catalog_required_for_sections_and_related(store):
    """Test catalog-backed helpers raise without a catalog."""
    engine = PersonalizationEngine(store)
    with pytest.raises(RuntimeError):
        engine.sections()
    with pytest.raises(RuntimeError):
        engine.related("P1")


def test_related_builds_index_once(engine):
    """Test the similarity index is built on first use and reused."""
    first = engine.related("P1", limit=2)
    index = engine._similarity_index
    second = engine.related("P1", limit=2)

    assert index is not None
    assert engine._similarity_index is index
    assert [p["id"] for p in first] == [p["id"] for p in second] == ["P3", "P2"]


def test_related_index_is_saved_and_reused(store, catalog, tmp_path):
    """Test a saved index is loaded by the next engine over the same directory."""
    index_dir = str(tmp_path / "index")
    first = PersonalizationEngine(store, catalog=catalog, index_dir=index_dir)
    expected = first.related("P1", limit=2)
    assert (tmp_path / "index" / SIMILARITY_INDEX_FILENAME).exists()

    second = PersonalizationEngine(store, catalog=catalog, index_dir=index_dir)
    assert second.related("P1", limit=2) == expected
    assert second._similarity_index.product_id_to_idx == first._similarity_index.product_id_to_idx


def test_stale_saved_index_is_rebuilt(store, catalog, tmp_path):
    """Test an index saved for a different catalog is not reused."""
    index_dir = str(tmp_path / "index")
    save_similarity_index(build_similarity_index(Catalog([{"id": "X1", "name": "Other"}])), index_dir)

    engine = PersonalizationEngine(store, catalog=catalog, index_dir=index_dir)
    assert [p["id"] for p in engine.related("P1", limit=2)] == ["P3", "P2"]
    assert set(load_similarity_index(index_dir).product_id_to_idx) == set(catalog.ids())


def test_clear_resets_scores_to_neutral(engine, store):
    """Test that after clearing, scores are as if no history existed."""
    for _ in range(3):
        engine.record_event("/products/P1", "product", {"productId": "P1"})
    engine.record_feedback("featured", "P1", True)
    assert engine.score("P1") > 0.5

    assert engine.clear()
    for key in StorageKeys.personalization_keys():
        assert store.get(key) is None
    assert engine.score("P1") == pytest.approx(0.2)
