"""CLI script for working with a personalization store.

Useful for testing and demos. Records page views into a JSON store file,
replays generated browsing sessions, and prints scores and recommendations
to the console.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import config
from src.personalization.catalog import Catalog, load_catalog
from src.personalization.engine import PersonalizationEngine
from src.personalization.models import PageType
from src.personalization.storage import JsonFileStore

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def open_engine(store_path: str, catalog_path: Optional[str]) -> PersonalizationEngine:
    """Open an engine over a store file and an optional catalog file."""
    catalog: Optional[Catalog] = None
    if catalog_path:
        try:
            catalog = load_catalog(catalog_path)
        except FileNotFoundError as e:
            logger.warning(f"Catalog not found, continuing without it: {e}")
    return PersonalizationEngine(
        JsonFileStore(store_path),
        catalog=catalog,
        random_state=config.random_seed,
        index_dir=config.index_dir,
    )


def _event_metadata(row: Dict[str, Any]) -> Dict[str, Any]:
    metadata = {}
    for column, field in (
        ("product_id", "productId"),
        ("category", "category"),
        ("search_term", "searchTerm"),
    ):
        value = row.get(column)
        if value is not None and not pd.isna(value):
            metadata[field] = str(value)
    return metadata


def replay_events(engine: PersonalizationEngine, events_path: str) -> int:
    """Record every row of an events CSV in file order.

    Returns:
        Number of events recorded successfully.
    """
    events_df = pd.read_csv(events_path, dtype={"product_id": str})
    recorded = 0
    for row in events_df.to_dict(orient="records"):
        if engine.record_event(row["path"], row["page_type"], _event_metadata(row)):
            recorded += 1
    return recorded


def cmd_record(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    metadata = _event_metadata({
        "product_id": args.product_id,
        "category": args.category,
        "search_term": args.search_term,
    })
    if not engine.record_event(args.path, args.page_type, metadata):
        print("Error: event was not recorded", file=sys.stderr)
        return 1
    print(f"Recorded {args.page_type} view of {args.path}")
    return 0


def cmd_replay(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    try:
        recorded = replay_events(engine, args.events_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Replayed {recorded} events into {args.store}")
    return 0


def cmd_score(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    for product_id in args.product_ids:
        try:
            explained = engine.explain(product_id)
        except Exception as e:
            logger.warning(f"Cannot explain score for {product_id}: {e}")
            print(f"  {product_id}: {engine.score(product_id):.3f}")
            continue

        line = f"  {product_id}: {explained.score:.3f}"
        if args.explain:
            line += (
                f" (recency={explained.recency:.3f}, frequency={explained.frequency:.3f},"
                f" feedback={explained.feedback:.3f})"
            )
        print(line)
    return 0


def cmd_recommend(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    if engine.catalog is None:
        print("Error: a catalog is required for recommendations", file=sys.stderr)
        return 1

    recommendations = engine.recommend(limit=args.limit, exclude_ids=args.exclude)
    print(f"\nTop {len(recommendations)} products:")
    for product in recommendations:
        marker = "*" if product["isPersonalized"] else " "
        print(
            f" {marker} {product['id']:>6}  {product['relevanceScore']:.3f}  "
            f"{product.get('name', '')}"
        )
    print("\n(* = personalized)")
    return 0


def cmd_profile(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    profile = engine.tracker.get_personalization_profile()
    if profile is None:
        print("No browsing data recorded yet")
        return 0
    preferences = profile.preferences
    print(f"Last updated: {profile.last_updated}")
    print(f"  Top categories: {preferences.top_categories}")
    print(f"  Top products: {preferences.top_products}")
    print(f"  Recent searches: {preferences.recent_searches}")
    return 0


def cmd_clear(engine: PersonalizationEngine, args: argparse.Namespace) -> int:
    if not engine.clear():
        print("Error: could not clear personalization data", file=sys.stderr)
        return 1
    print("Personalization data cleared")
    return 0


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Record browsing and get personalized recommendations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py record /products/7 product --product-id 7 --category Nuts
  python scripts/recommend_cli.py replay data/fake_events.csv
  python scripts/recommend_cli.py score 7 12 --explain
  python scripts/recommend_cli.py recommend --limit 5
        """
    )
    parser.add_argument(
        "--store",
        type=str,
        default=config.store_path,
        help=f"JSON store file (default: {config.store_path})"
    )
    parser.add_argument(
        "--catalog",
        type=str,
        default=config.catalog_path,
        help=f"Catalog CSV or JSON file (default: {config.catalog_path})"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    record = subparsers.add_parser("record", help="Record one page view")
    record.add_argument("path", help="Path of the viewed page")
    record.add_argument(
        "page_type",
        choices=[t.value for t in PageType],
        help="Kind of page viewed"
    )
    record.add_argument("--product-id", default=None)
    record.add_argument("--category", default=None)
    record.add_argument("--search-term", default=None)
    record.set_defaults(handler=cmd_record)

    replay = subparsers.add_parser("replay", help="Record every event in a CSV file")
    replay.add_argument("events_path", help="CSV written by generate_fake_data.py")
    replay.set_defaults(handler=cmd_replay)

    score = subparsers.add_parser("score", help="Print relevance scores")
    score.add_argument("product_ids", nargs="+")
    score.add_argument("--explain", action="store_true", help="Show score components")
    score.set_defaults(handler=cmd_score)

    recommend = subparsers.add_parser("recommend", help="Select recommendations from the catalog")
    recommend.add_argument("--limit", type=int, default=8)
    recommend.add_argument("--exclude", nargs="*", default=[], help="Product ids to leave out")
    recommend.set_defaults(handler=cmd_recommend)

    profile = subparsers.add_parser("profile", help="Print the stored profile summary")
    profile.set_defaults(handler=cmd_profile)

    clear = subparsers.add_parser("clear", help="Remove all personalization data")
    clear.set_defaults(handler=cmd_clear)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    engine = open_engine(args.store, args.catalog)
    sys.exit(args.handler(engine, args))


if __name__ == "__main__":
    main()
