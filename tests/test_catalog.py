"""Tests for product catalog loading."""

import json

import pandas as pd
import pytest

from src.personalization.catalog import Catalog, load_catalog


def test_catalog_lookups(catalog):
    """Test id lookup, category filtering and popularity helpers."""
    assert len(catalog) == 6
    assert catalog.get("P4")["name"] == "Medjool Dates"
    assert catalog.get("missing") is None
    assert catalog.ids() == ["P1", "P2", "P3", "P4", "P5", "P6"]
    assert [p["id"] for p in catalog.by_category("Dry Fruits")] == ["P4", "P5"]
    assert [p["id"] for p in catalog.featured()] == ["P1"]
    assert [p["id"] for p in catalog.popular()] == ["P1", "P4"]
    assert [p["id"] for p in catalog.bestsellers()][:2] == ["P4", "P1"]


def test_numeric_ids_are_looked_up_as_strings():
    """Test that int ids can be found by their string form and vice versa."""
    catalog = Catalog([{"id": 7, "category": "Nuts"}])
    assert catalog.get("7")["id"] == 7
    assert catalog.get(7)["id"] == 7


def test_load_catalog_from_csv(tmp_path, sample_products):
    """Test loading a CSV catalog converts values to plain Python types."""
    path = tmp_path / "catalog.csv"
    pd.DataFrame(sample_products).drop(columns=["description"]).assign(
        description=[None, "salted", None, None, None, None]
    ).to_csv(path, index=False)

    catalog = load_catalog(str(path))

    assert len(catalog) == 6
    product = catalog.get("P1")
    assert product["rating"] == 4.5
    assert isinstance(product["rating"], float)
    assert product["description"] is None
    assert catalog.get("P2")["description"] == "salted"
    json.dumps(list(catalog))


def test_load_catalog_from_json(tmp_path, sample_products):
    """Test loading a JSON list of products."""
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(sample_products), encoding="utf-8")

    catalog = load_catalog(str(path))
    assert catalog.ids() == ["P1", "P2", "P3", "P4", "P5", "P6"]
    assert catalog.get("P1")["featured"] is True


def test_load_catalog_missing_file(tmp_path):
    """Test that a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_catalog(str(tmp_path / "nope.csv"))


def test_load_catalog_rejects_bad_input(tmp_path):
    """Test format, column and duplicate id validation."""
    unsupported = tmp_path / "catalog.txt"
    unsupported.write_text("id,category\n1,Nuts\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported"):
        load_catalog(str(unsupported))

    no_category = tmp_path / "no_category.csv"
    no_category.write_text("id,name\n1,Almonds\n", encoding="utf-8")
    with pytest.raises(ValueError, match="missing required columns"):
        load_catalog(str(no_category))

    duplicated = tmp_path / "duplicated.csv"
    duplicated.write_text("id,category\n1,Nuts\n1,Seeds\n", encoding="utf-8")
    with pytest.raises(ValueError, match="duplicate"):
        load_catalog(str(duplicated))

    empty = tmp_path / "empty.csv"
    empty.write_text("id,category\n", encoding="utf-8")
    with pytest.raises(ValueError, match="empty"):
        load_catalog(str(empty))
