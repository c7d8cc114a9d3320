"""Volume profile — POC, value area and low-volume nodes."""

import numpy as np

from scanner.analysis.models import CandleData
from scanner.structure.models import EMPTY_VOLUME_PROFILE, VolumeProfile

_VALUE_AREA_SHARE = 0.70
_LVN_RATIO = 0.5


def calculate_volume_profile(candles: list[CandleData], atr: float) -> VolumeProfile:
    """Bucket volume by price with a bin width of ATR / 2.

    Each candle's volume is spread over the bins its high-low range
    overlaps, proportionally to the overlap.  The value area grows out of
    the POC one bin at a time toward whichever neighbour holds more
    volume until 70 % of the total is covered.

    Returns the zeroed profile when there is nothing to bucket.
    """
    if not candles or atr <= 0:
        return EMPTY_VOLUME_PROFILE

    lows = np.array([c.low for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    closes = np.array([c.close for c in candles], dtype=float)
    volumes = np.array([c.volume for c in candles], dtype=float)

    total = float(volumes.sum())
    price_min = float(lows.min())
    price_max = float(highs.max())
    if total <= 0 or price_max <= price_min:
        return EMPTY_VOLUME_PROFILE

    bin_size = atr / 2
    n_bins = int(np.floor((price_max - price_min) / bin_size)) + 1
    edges = price_min + bin_size * np.arange(n_bins + 1)
    bins = np.zeros(n_bins)

    for low, high, close, volume in zip(lows, highs, closes, volumes):
        if volume <= 0:
            continue
        span = high - low
        if span <= 0:
            idx = min(int((close - price_min) // bin_size), n_bins - 1)
            bins[idx] += volume
            continue
        overlap = np.clip(np.minimum(edges[1:], high) - np.maximum(edges[:-1], low), 0.0, None)
        bins += volume * overlap / span

    poc_idx = int(np.argmax(bins))
    lo_idx = hi_idx = poc_idx
    covered = float(bins[poc_idx])
    target = float(bins.sum()) * _VALUE_AREA_SHARE

    while covered < target and (lo_idx > 0 or hi_idx < n_bins - 1):
        below = bins[lo_idx - 1] if lo_idx > 0 else -1.0
        above = bins[hi_idx + 1] if hi_idx < n_bins - 1 else -1.0
        if above >= below:
            hi_idx += 1
            covered += float(bins[hi_idx])
        else:
            lo_idx -= 1
            covered += float(bins[lo_idx])

    centers = edges[:-1] + bin_size / 2
    avg_bin = float(bins.mean())
    lvns = tuple(
        float(centers[i])
        for i in range(1, n_bins - 1)
        if bins[i] < bins[i - 1] and bins[i] < bins[i + 1] and bins[i] < avg_bin * _LVN_RATIO
    )

    return VolumeProfile(
        poc=float(centers[poc_idx]),
        value_area_high=float(edges[hi_idx + 1]),
        value_area_low=float(edges[lo_idx]),
        total_volume=total,
        low_volume_nodes=lvns,
    )
