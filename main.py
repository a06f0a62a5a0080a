import argparse
import asyncio

import pandas as pd

from stockview import settings
from stockview.logger import setup_logger
from stockview.schemas import Projection
from stockview.store import build_store
from stockview.view import InventoryView

logger = setup_logger("stockview")

# Seeds the in-memory backend so the view has something to group.
SAMPLE_DOCUMENTS = {
    "A1": {"name": "Oil Filter", "brand": "Acme", "count": 12, "boughtPrice": 3.5, "soldPrice": 6},
    "A2": {"name": "Air Filter", "brand": "Acme", "count": 4, "boughtPrice": 5, "soldPrice": 9.5},
    "B2": {"name": "Check Valve", "brand": "Bolt & Co", "count": 7, "boughtPrice": 11, "soldPrice": 18},
    "C7": {"name": "Drive Belt", "brand": "Conveyo", "count": 0, "boughtPrice": 20, "soldPrice": 32},
}


def render(projection: Projection) -> str:
    """Formats the grouped projection as one table per brand."""
    if not projection.groups:
        return "No items match the current filters."
    blocks = []
    for group in projection.groups:
        df = pd.DataFrame(
            [item.model_dump(by_alias=True) for item in group.items],
            columns=["id", "name", "count", "boughtPrice", "soldPrice"],
        )
        blocks.append(f"== {group.brand} ({len(group.items)}) ==\n{df.to_string(index=False)}")
    return "\n\n".join(blocks)


async def run_view(args: argparse.Namespace) -> None:
    store = build_store(seed={settings.COLLECTION_NAME: SAMPLE_DOCUMENTS})

    async with InventoryView(store, settings.COLLECTION_NAME) as view:
        logger.info(f"Loading '{settings.COLLECTION_NAME}'...")
        await view.mirror.wait_for_snapshot(timeout=args.timeout)

        view.set_search_text(args.search)
        view.set_brand_filter(args.brand)
        view.set_sort_mode(args.sort)
        view.set_max_count(args.max_count)

        projection = view.projection
        logger.info(f"Brands: {', '.join(projection.distinct_brands) or '-'}")
        logger.info(
            f"Max count: {projection.effective_max_count} (highest in stock: {projection.observed_max_count})"
        )
        logger.info("-" * 30)
        logger.info(render(projection))


def main() -> None:
    parser = argparse.ArgumentParser(description="Show the grouped equipment inventory.")
    parser.add_argument("--search", default="", help="match against id or name")
    parser.add_argument("--brand", default=None, help="only show this brand")
    parser.add_argument(
        "--sort",
        default="none",
        choices=["none", "sold_asc", "sold_desc", "count_asc", "count_desc"],
    )
    parser.add_argument("--max-count", type=int, default=None)
    parser.add_argument("--timeout", type=float, default=settings.REQUEST_TIMEOUT_SECONDS)
    args = parser.parse_args()

    try:
        asyncio.run(run_view(args))
    except asyncio.TimeoutError:
        logger.error("❌ Timed out waiting for the first snapshot.")


if __name__ == "__main__":
    main()
