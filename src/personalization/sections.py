"""Personalized homepage sections.

Groups catalog products into titled sections from the shopper's browsing
aggregates: recently viewed products, most viewed products and one section
per preferred category. Featured and bestseller sections fill in when fewer
than two personalized sections can be built.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.personalization.catalog import Catalog
from src.personalization.models import PersonalizationSettings
from src.personalization.tracker import BrowsingTracker

# Configure module logger
logger = logging.getLogger(__name__)

MIN_PERSONALIZED_SECTIONS = 2
PREFERRED_CATEGORY_SECTIONS = 3


class Section(BaseModel):
    """A titled group of products on the personalized homepage."""

    id: str
    title: str
    description: str
    products: List[Dict[str, Any]] = Field(default_factory=list)


def _slug(text: str) -> str:
    return re.sub(r"\s+", "-", text.strip().lower())


def _resolve(catalog: Catalog, product_ids: List[str]) -> List[Dict[str, Any]]:
    products = []
    seen = set()
    for pid in product_ids:
        product = catalog.get(pid)
        if product is not None and pid not in seen:
            seen.add(pid)
            products.append(product)
    return products


def default_sections(catalog: Catalog, max_items: int) -> List[Section]:
    """Sections shown to shoppers without usable browsing history."""
    sections = []
    featured = catalog.featured()[:max_items]
    if featured:
        sections.append(Section(
            id="featured",
            title="Featured Products",
            description="Our handpicked selection of premium products",
            products=featured,
        ))
    bestsellers = catalog.bestsellers()[:max_items]
    if bestsellers:
        sections.append(Section(
            id="bestsellers",
            title="Bestsellers",
            description="Our most popular products",
            products=bestsellers,
        ))
    return sections


def build_personalized_sections(
    catalog: Catalog,
    tracker: BrowsingTracker,
    settings: Optional[PersonalizationSettings] = None,
) -> List[Section]:
    """Build the homepage sections for the current shopper.

    Args:
        catalog: Products available for display.
        tracker: Tracker over the shopper's browsing state.
        settings: Layout limits; defaults apply if omitted.

    Returns:
        At most ``settings.max_sections`` sections of at most
        ``settings.max_items_per_section`` products each. Falls back to the
        default sections if building fails.
    """
    settings = settings or PersonalizationSettings()
    max_items = settings.max_items_per_section

    try:
        sections: List[Section] = []

        recent_ids = [e.product_id for e in tracker.get_recent_product_views(max_items)]
        recent = _resolve(catalog, [pid for pid in recent_ids if pid])
        if recent:
            sections.append(Section(
                id="recently-viewed",
                title="Recently Viewed",
                description="Products you've viewed recently",
                products=recent[:max_items],
            ))

        most_viewed = _resolve(
            catalog,
            [item["productId"] for item in tracker.get_most_viewed_products(max_items)],
        )
        if most_viewed:
            sections.append(Section(
                id="most-viewed",
                title="Your Favorites",
                description="Products you've shown interest in",
                products=most_viewed[:max_items],
            ))

        for item in tracker.get_preferred_categories(PREFERRED_CATEGORY_SECTIONS):
            category = item["category"]
            products = catalog.by_category(category)[:max_items]
            if products:
                sections.append(Section(
                    id=f"category-{_slug(category)}",
                    title=f"{category} Collection",
                    description=f"Our best {category.lower()} products",
                    products=products,
                ))

        if len(sections) < MIN_PERSONALIZED_SECTIONS:
            sections.extend(default_sections(catalog, max_items))

        return sections[: settings.max_sections]

    except Exception as e:
        logger.error(f"Error generating personalized sections: {e}", exc_info=True)
        return default_sections(catalog, max_items)[: settings.max_sections]
