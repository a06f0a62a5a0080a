import logging
from typing import Any, Iterable, Optional

import pandas as pd

from .schemas import BrandGroup, Projection, Record, SortMode, ViewParameters

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["id", "name", "brand", "count", "sold_price"]

# sort mode -> (column, ascending)
SORT_KEYS = {
    SortMode.SOLD_PRICE_ASC: ("sold_price", True),
    SortMode.SOLD_PRICE_DESC: ("sold_price", False),
    SortMode.COUNT_ASC: ("count", True),
    SortMode.COUNT_DESC: ("count", False),
}


def records_to_frame(records: Iterable[Record]) -> pd.DataFrame:
    """
    One row per record; the frame index is the record's position in the input,
    so rows can be mapped back to the original Record objects.
    """
    rows = [
        {
            "id": r.id,
            "name": r.name,
            "brand": r.brand,
            "count": r.count,
            "sold_price": r.sold_price,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def project(records: tuple[Record, ...], params: ViewParameters) -> Projection:
    """
    Pure transform from (mirror, parameters) to the grouped view:
    facets -> filter -> sort -> group by brand in order of first sighting.
    """
    records = tuple(records)
    if not records:
        return Projection(effective_max_count=params.max_count or 0)

    frame = records_to_frame(records)

    # --- 1. Facets for the filter controls ---
    distinct_brands = tuple(sorted(str(b) for b in frame["brand"].unique()))
    observed_max_count = int(frame["count"].max())
    effective_max_count = (
        params.max_count if params.max_count is not None else observed_max_count
    )

    # --- 2. Filter ---
    needle = params.search_text.lower()
    mask = frame["id"].str.lower().str.contains(needle, regex=False) | frame[
        "name"
    ].str.lower().str.contains(needle, regex=False)
    if params.brand_filter:
        mask &= frame["brand"] == params.brand_filter
    mask &= frame["count"] <= effective_max_count
    filtered = frame[mask]

    # --- 3. Sort ---
    # A stable sort keeps input order among equal keys; "none" keeps input order.
    if params.sort_mode in SORT_KEYS:
        column, ascending = SORT_KEYS[params.sort_mode]
        filtered = filtered.sort_values(column, ascending=ascending, kind="stable")

    # --- 4. Group ---
    # sort=False emits groups in the order their first member appears.
    groups = tuple(
        BrandGroup(brand=str(brand), items=tuple(records[i] for i in rows.index))
        for brand, rows in filtered.groupby("brand", sort=False)
    )

    logger.debug(
        f"Projected {len(filtered)}/{len(records)} records into {len(groups)} groups"
    )
    return Projection(
        groups=groups,
        distinct_brands=distinct_brands,
        observed_max_count=observed_max_count,
        effective_max_count=effective_max_count,
    )


class ProjectionCache:
    """Memoizes the last projection, keyed on the mirror version and the parameters."""

    def __init__(self):
        self._key: Optional[tuple[Any, ViewParameters]] = None
        self._value: Optional[Projection] = None
        self.computations = 0

    def get(self, version: Any, records: tuple[Record, ...], params: ViewParameters) -> Projection:
        key = (version, params)
        if self._value is None or key != self._key:
            self._value = project(records, params)
            self._key = key
            self.computations += 1
        return self._value
