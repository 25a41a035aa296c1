"""Generate a fake product catalog and browsing sessions.

This module creates a synthetic storefront catalog (CSV) and a log of
simulated shopper page views (CSV) that can be replayed into a
personalization store for development and demos.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_catalog
        catalog_df = generate_fake_catalog(num_products=40)
"""

import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_PRODUCTS = 40
DEFAULT_NUM_EVENTS = 200
DEFAULT_HOURS_BACK = 72
DEFAULT_CATEGORIES = ["Dry Fruits", "Nuts", "Seeds", "Spices", "Gift Boxes"]
DEFAULT_ADJECTIVES = [
    "Premium", "Organic", "Roasted", "Salted", "Raw",
    "Honey Glazed", "Smoked", "Classic", "Jumbo", "Mixed",
]
SEARCH_TERMS = ["almonds", "dates", "gift", "cashew", "organic", "saffron", "mix"]


def generate_fake_catalog(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    categories: Optional[List[str]] = None,
    random_seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate a synthetic product catalog.

    Args:
        num_products: Number of products to create. Must be positive.
        categories: Category names to spread products over.
        random_seed: Seed for reproducible output.

    Returns:
        A DataFrame with columns id, name, category, description, price,
        rating and featured.

    Raises:
        ValueError: If num_products is not positive.
    """
    if num_products <= 0:
        raise ValueError("num_products must be positive")

    rng = random.Random(random_seed)
    categories = categories or DEFAULT_CATEGORIES

    products = []
    for product_id in range(1, num_products + 1):
        category = categories[(product_id - 1) % len(categories)]
        adjective = rng.choice(DEFAULT_ADJECTIVES)
        products.append({
            "id": product_id,
            "name": f"{adjective} {category} Selection {product_id}",
            "category": category,
            "description": f"{adjective.lower()} {category.lower()} sourced from trusted farms",
            "price": round(rng.uniform(4.99, 49.99), 2),
            "rating": round(rng.uniform(3.0, 5.0), 1),
            "featured": rng.random() < 0.2,
        })

    return pd.DataFrame(products)


def generate_fake_events(
    catalog: pd.DataFrame,
    num_events: int = DEFAULT_NUM_EVENTS,
    end_time: Optional[datetime] = None,
    hours_back: int = DEFAULT_HOURS_BACK,
    random_seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate simulated page views over a catalog.

    Product views dominate; category and search views are mixed in so that
    every aggregate receives data.

    Returns:
        A DataFrame with columns timestamp, path, page_type, product_id,
        category and search_term, sorted oldest first.
    """
    if num_events <= 0:
        raise ValueError("num_events must be positive")
    if catalog.empty:
        raise ValueError("catalog must not be empty")

    rng = random.Random(random_seed)
    end_time = end_time or datetime.now()
    start_time = end_time - timedelta(hours=hours_back)
    span_seconds = int((end_time - start_time).total_seconds())

    records = catalog.to_dict(orient="records")
    events = []
    for _ in range(num_events):
        timestamp = start_time + timedelta(seconds=rng.randrange(span_seconds))
        roll = rng.random()
        product = rng.choice(records)
        if roll < 0.7:
            events.append({
                "timestamp": timestamp,
                "path": f"/products/{product['id']}",
                "page_type": "product",
                "product_id": str(product["id"]),
                "category": product["category"],
                "search_term": None,
            })
        elif roll < 0.9:
            events.append({
                "timestamp": timestamp,
                "path": f"/categories/{product['category'].lower().replace(' ', '-')}",
                "page_type": "category",
                "product_id": None,
                "category": product["category"],
                "search_term": None,
            })
        else:
            term = rng.choice(SEARCH_TERMS)
            events.append({
                "timestamp": timestamp,
                "path": f"/search?q={term}",
                "page_type": "search",
                "product_id": None,
                "category": None,
                "search_term": term,
            })

    df = pd.DataFrame(events)
    return df.sort_values("timestamp").reset_index(drop=True)


def main() -> None:
    """Generate default data into data/catalog.csv and data/fake_events.csv."""
    print(f"Generating {DEFAULT_NUM_PRODUCTS} products and {DEFAULT_NUM_EVENTS} page views...")

    try:
        catalog_df = generate_fake_catalog()
        events_df = generate_fake_events(catalog_df)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    catalog_path = data_dir / "catalog.csv"
    events_path = data_dir / "fake_events.csv"
    catalog_df.to_csv(catalog_path, index=False)
    events_df.to_csv(events_path, index=False)

    print("\nData generated successfully!")
    print(f"Catalog saved to: {catalog_path}")
    print(f"Events saved to: {events_path}")
    print("\nEvent summary:")
    print(events_df["page_type"].value_counts().to_string())
    print(f"  Date range: {events_df['timestamp'].min()} to {events_df['timestamp'].max()}")


if __name__ == "__main__":
    main()
