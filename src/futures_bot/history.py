"""
History merging helpers.

Bars and auxiliary points arrive in pages that may overlap or come out of
order. These helpers deduplicate by time (later copy wins), sort ascending and
optionally keep only the newest `window` entries.
"""

from typing import Iterable, List, Optional

import pandas as pd

from .models import Bar, HistoryPoint

BAR_COLUMNS = ["time", "open", "high", "low", "close", "volume"]
POINT_COLUMNS = ["time", "value"]


def _merge_frame(records: List[dict], columns: List[str], window: Optional[int]) -> pd.DataFrame:
    frame = pd.DataFrame.from_records(records, columns=columns)
    if frame.empty:
        return frame
    frame = frame.drop_duplicates(subset="time", keep="last").sort_values("time", kind="stable")
    if window is not None:
        frame = frame.tail(window)
    return frame


def merge_bars(existing: Iterable[Bar], new: Iterable[Bar], window: Optional[int] = None) -> List[Bar]:
    """
    Merge two bar sequences into one ascending, time-unique list.

    Args:
        existing: Bars already held
        new: Freshly fetched bars; they replace existing bars with the same time
        window: Keep only the newest `window` bars if given

    Returns:
        Merged bars, oldest first
    """
    records = [bar.model_dump() for bar in list(existing) + list(new)]
    frame = _merge_frame(records, BAR_COLUMNS, window)
    return [
        Bar(time=int(row.time), open=float(row.open), high=float(row.high),
            low=float(row.low), close=float(row.close), volume=float(row.volume))
        for row in frame.itertuples(index=False)
    ]


def merge_points(
    existing: Iterable[HistoryPoint], new: Iterable[HistoryPoint], window: Optional[int] = None
) -> List[HistoryPoint]:
    """Same as merge_bars for auxiliary price or index points."""
    records = [point.model_dump() for point in list(existing) + list(new)]
    frame = _merge_frame(records, POINT_COLUMNS, window)
    return [HistoryPoint(time=int(row.time), value=float(row.value)) for row in frame.itertuples(index=False)]
