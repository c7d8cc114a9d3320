"""Technical indicators — ATR, EMA, RSI, ADX, Bollinger, MACD, pivots, fibs. Pure functions, no I/O."""

import math

import numpy as np

from scanner.analysis.models import (
    CandleData,
    FibonacciLevels,
    IchimokuCloud,
    Pivots,
    StochRSI,
)


def _true_ranges(candles: list[CandleData]) -> list[float]:
    """True range for every bar after the first."""
    true_ranges: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        true_ranges.append(
            max(high - low, abs(high - prev_close), abs(low - prev_close))
        )
    return true_ranges


def calculate_atr(candles: list[CandleData], period: int = 14) -> float:
    """Calculate the Average True Range over *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Seeded with the SMA of the first *period* true ranges, then
    Wilder-smoothed: ``ATR = (prev × (period-1) + TR) / period``.

    Requires at least ``period + 1`` candles (need a previous close for TR).

    Raises ``ValueError`` if insufficient data.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )

    true_ranges = _true_ranges(candles)
    atr = sum(true_ranges[:period]) / period
    for tr in true_ranges[period:]:
        atr = (atr * (period - 1) + tr) / period
    return atr


# ── Moving averages ──────────────────────────────────────────────────────


def ema_series(values: list[float], period: int) -> list[float]:
    """EMA of an arbitrary value series, SMA-seeded.

    Leading ``nan`` values (e.g. from another indicator's warm-up) are
    skipped; the seed is the SMA of the first *period* finite values.
    Output has the same length as *values* with ``nan`` before the seed.
    """
    out: list[float] = [float("nan")] * len(values)
    start = 0
    while start < len(values) and math.isnan(values[start]):
        start += 1
    if len(values) - start < period:
        return out

    k = 2.0 / (period + 1)
    seed_idx = start + period - 1
    out[seed_idx] = sum(values[start : seed_idx + 1]) / period
    for i in range(seed_idx + 1, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1 - k)
    return out


def calculate_ema(candles: list[CandleData], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series of closes.

    Uses the standard EMA formula:
        ``EMA_today = close × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    closes.  Entries before the seed period are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* candles are provided.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for EMA({period}), "
            f"got {len(candles)}"
        )
    return ema_series([c.close for c in candles], period)


def calculate_sma(values: list[float], period: int) -> list[float]:
    """Simple moving average; ``nan`` until *period* values are available."""
    out: list[float] = [float("nan")] * len(values)
    if len(values) < period:
        return out
    window_sum = sum(values[:period])
    out[period - 1] = window_sum / period
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        out[i] = window_sum / period
    return out


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(candles: list[CandleData], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RS = avg_gain / avg_loss
        6. RSI = 100 - 100 / (1 + RS)

    Requires at least ``period + 1`` candles.

    Returns a list the same length as *candles*.  Entries before the
    seed period are ``float('nan')``.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for RSI({period}), "
            f"got {len(candles)}"
        )

    closes = [c.close for c in candles]
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]

    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    rsi: list[float] = [float("nan")] * len(candles)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0
        rs = ag / al
        return 100.0 - 100.0 / (1.0 + rs)

    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # deltas are offset by one bar
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


def calculate_stoch_rsi(
    rsi: list[float],
    period: int = 14,
    smooth_d: int = 3,
) -> StochRSI:
    """Stochastic RSI of the latest bar.

    K = (RSI - min(RSI, period)) / (max - min) × 100, 0 when the window
    is flat.  D is the SMA of the last *smooth_d* K values.
    """
    values = [r for r in rsi if not math.isnan(r)]
    needed = period + smooth_d - 1
    if len(values) < needed:
        raise ValueError(
            f"Need at least {needed} RSI values for StochRSI({period}), "
            f"got {len(values)}"
        )

    ks: list[float] = []
    for end in range(len(values) - smooth_d, len(values)):
        window = values[end - period + 1 : end + 1]
        lo, hi = min(window), max(window)
        ks.append((values[end] - lo) / (hi - lo) * 100.0 if hi != lo else 0.0)
    return StochRSI(k=ks[-1], d=sum(ks) / len(ks))


# ── ADX ──────────────────────────────────────────────────────────────────


def calculate_adx(candles: list[CandleData], period: int = 14) -> list[float]:
    """Calculate the Average Directional Index (ADX).

    Algorithm:
        1. +DM / -DM directional movement per bar.
        2. Wilder-smooth +DM, -DM, and TR over *period*.
        3. +DI = 100 × smoothed_+DM / smoothed_TR
        4. -DI = 100 × smoothed_-DM / smoothed_TR
        5. DX = 100 × |+DI − −DI| / (+DI + −DI)
        6. ADX = Wilder-smoothed DX over *period*.

    Requires at least ``2 × period + 1`` candles.

    Returns a list the same length as *candles*.  Entries before
    the ADX is ready are ``float('nan')``.
    """
    min_candles = 2 * period + 1
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for ADX({period}), "
            f"got {len(candles)}"
        )

    n = len(candles)

    plus_dm_raw: list[float] = [0.0]
    minus_dm_raw: list[float] = [0.0]
    tr_raw: list[float] = [0.0] + _true_ranges(candles)

    for i in range(1, n):
        up_move = candles[i].high - candles[i - 1].high
        down_move = candles[i - 1].low - candles[i].low
        plus_dm_raw.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dm_raw.append(down_move if (down_move > up_move and down_move > 0) else 0.0)

    smoothed_plus_dm = sum(plus_dm_raw[1 : period + 1])
    smoothed_minus_dm = sum(minus_dm_raw[1 : period + 1])
    smoothed_tr = sum(tr_raw[1 : period + 1])

    def _compute_dx(s_pdm: float, s_mdm: float, s_tr: float) -> float:
        if s_tr == 0:
            return 0.0
        plus_di = 100.0 * s_pdm / s_tr
        minus_di = 100.0 * s_mdm / s_tr
        di_sum = plus_di + minus_di
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(plus_di - minus_di) / di_sum

    dx_values: list[float] = [
        _compute_dx(smoothed_plus_dm, smoothed_minus_dm, smoothed_tr)
    ]
    for i in range(period + 1, n):
        smoothed_plus_dm = smoothed_plus_dm - smoothed_plus_dm / period + plus_dm_raw[i]
        smoothed_minus_dm = smoothed_minus_dm - smoothed_minus_dm / period + minus_dm_raw[i]
        smoothed_tr = smoothed_tr - smoothed_tr / period + tr_raw[i]
        dx_values.append(
            _compute_dx(smoothed_plus_dm, smoothed_minus_dm, smoothed_tr)
        )

    # dx_values[0] belongs to candle index *period*
    adx_result: list[float] = [float("nan")] * n
    adx_prev = sum(dx_values[:period]) / period
    adx_result[2 * period - 1] = adx_prev
    for j in range(period, len(dx_values)):
        adx_prev = (adx_prev * (period - 1) + dx_values[j]) / period
        adx_result[period + j] = adx_prev

    return adx_result


# ── Bollinger Bands / MACD ───────────────────────────────────────────────


def calculate_bollinger(
    candles: list[CandleData],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    Returns ``(upper, middle, lower)`` — each list has the same length
    as *candles*.  Entries before the seed period are ``float('nan')``.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for Bollinger({period}), "
            f"got {len(candles)}"
        )

    closes = [c.close for c in candles]
    n = len(closes)

    upper: list[float] = [float("nan")] * n
    middle: list[float] = [float("nan")] * n
    lower: list[float] = [float("nan")] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)

        middle[i] = sma
        upper[i] = sma + std_dev * sigma
        lower[i] = sma - std_dev * sigma

    return upper, middle, lower


def calculate_bandwidth(
    upper: list[float],
    middle: list[float],
    lower: list[float],
) -> list[float]:
    """Bollinger bandwidth in percent of the middle band."""
    out: list[float] = []
    for u, m, lo in zip(upper, middle, lower):
        if math.isnan(m):
            out.append(float("nan"))
        elif m == 0:
            out.append(0.0)
        else:
            out.append((u - lo) / m * 100.0)
    return out


def calculate_macd(
    candles: list[CandleData],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[list[float], list[float], list[float]]:
    """MACD line, signal line and histogram series.

    line = EMA(fast) − EMA(slow); signal = EMA(line, *signal*);
    histogram = line − signal.  ``nan`` until each component is ready.
    """
    min_candles = slow + signal - 1
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for MACD({fast},{slow},{signal}), "
            f"got {len(candles)}"
        )

    closes = [c.close for c in candles]
    fast_ema = ema_series(closes, fast)
    slow_ema = ema_series(closes, slow)
    line = [f - s for f, s in zip(fast_ema, slow_ema)]
    signal_line = ema_series(line, signal)
    histogram = [ln - sg for ln, sg in zip(line, signal_line)]
    return line, signal_line, histogram


# ── Volume-weighted / volume-derived ─────────────────────────────────────


def calculate_vwap(candles: list[CandleData]) -> float:
    """Cumulative VWAP over the loaded window (session approximation)."""
    cum_tpv = 0.0
    cum_vol = 0.0
    for c in candles:
        typical = (c.high + c.low + c.close) / 3
        cum_tpv += typical * c.volume
        cum_vol += c.volume
    if cum_vol <= 0:
        return candles[-1].close
    return cum_tpv / cum_vol


def calculate_rvol(volumes: list[float], period: int = 20) -> float:
    """Relative volume: current bar over the SMA of the *period* bars before it.

    Returns 1.0 when there is not enough history for a baseline.
    """
    if len(volumes) < period + 1:
        return 1.0
    baseline = sum(volumes[-period - 1 : -1]) / period
    return volumes[-1] / baseline if baseline > 0 else 0.0


def calculate_cvd(candles: list[CandleData]) -> list[float]:
    """Cumulative volume delta from taker-buy volume.

    delta = taker_buy − (volume − taker_buy) = 2 × taker_buy − volume.
    Bars without taker data contribute zero delta.
    """
    cvd = 0.0
    out: list[float] = []
    for c in candles:
        buy = c.taker_buy_volume if c.taker_buy_volume is not None else c.volume * 0.5
        cvd += 2 * buy - c.volume
        out.append(cvd)
    return out


# ── Statistical ──────────────────────────────────────────────────────────


def calculate_z_score(closes: list[float], ema200: float, period: int = 20) -> float:
    """Distance of price from EMA200 in standard deviations of recent closes."""
    if len(closes) < period:
        return 0.0
    window = closes[-period:]
    mean = sum(window) / period
    sigma = math.sqrt(sum((p - mean) ** 2 for p in window) / period)
    if sigma == 0:
        return 0.0
    return (closes[-1] - ema200) / sigma


def calculate_slope(
    series: list[float],
    period: int = 10,
    normalize: bool = True,
) -> float:
    """Linear-regression slope of the last *period* finite values.

    With *normalize* the slope is expressed in percent of the window
    mean per bar so assets at different price scales compare directly;
    otherwise it is returned in the series' own units per bar.
    """
    window = [v for v in series[-period:] if not math.isnan(v)]
    if len(window) < 2:
        return 0.0
    y = np.asarray(window, dtype=float)
    x = np.arange(len(y), dtype=float)
    slope = float(np.polyfit(x, y, 1)[0])
    if not normalize:
        return slope
    mean = float(y.mean())
    return slope / mean * 100.0 if mean != 0 else 0.0


def calculate_ema_slope(ema: list[float], window: int = 10) -> float:
    """EMA slope as a signed angle in degrees (atan of the % slope per bar)."""
    return math.degrees(math.atan(calculate_slope(ema, window)))


# ── Pivots / fractals / Fibonacci ────────────────────────────────────────


def calculate_pivots(candles: list[CandleData]) -> Pivots:
    """Standard floor pivots from the previous completed candle."""
    if len(candles) < 2:
        raise ValueError(f"Need at least 2 candles for pivots, got {len(candles)}")
    prev = candles[-2]
    h, l, c = prev.high, prev.low, prev.close
    p = (h + l + c) / 3
    return Pivots(
        p=p,
        r1=2 * p - l,
        s1=2 * p - h,
        r2=p + (h - l),
        s2=p - (h - l),
    )


def find_fractals(
    highs: list[float],
    lows: list[float],
) -> tuple[list[tuple[int, float]], list[tuple[int, float]]]:
    """Bill Williams 5-bar fractals.

    A fractal high is strictly above the two highs on each side; a
    fractal low strictly below the two lows on each side.

    Returns ``(fractal_highs, fractal_lows)`` as ``(index, price)`` lists
    in chronological order.
    """
    fractal_highs: list[tuple[int, float]] = []
    fractal_lows: list[tuple[int, float]] = []
    for i in range(2, len(highs) - 2):
        h = highs[i]
        if h > highs[i - 1] and h > highs[i - 2] and h > highs[i + 1] and h > highs[i + 2]:
            fractal_highs.append((i, h))
        lo = lows[i]
        if lo < lows[i - 1] and lo < lows[i - 2] and lo < lows[i + 1] and lo < lows[i + 2]:
            fractal_lows.append((i, lo))
    return fractal_highs, fractal_lows


_RETRACEMENTS = (0.236, 0.382, 0.5, 0.618, 0.65, 0.786, 0.886)
_EXTENSIONS = (0.272, 0.618, 1.0, 1.618, 2.618)


def _fib_levels(trend: str, swing_high: float, swing_low: float) -> FibonacciLevels:
    diff = swing_high - swing_low
    if trend == "UP":
        origin, end, sign = swing_high, swing_low, -1.0
    else:
        origin, end, sign = swing_low, swing_high, 1.0
    r = [origin + sign * diff * ratio for ratio in _RETRACEMENTS]
    t = [origin - sign * diff * ratio for ratio in _EXTENSIONS]
    return FibonacciLevels(
        trend=trend,
        level0=origin,
        level0_236=r[0],
        level0_382=r[1],
        level0_5=r[2],
        level0_618=r[3],
        level0_65=r[4],
        level0_786=r[5],
        level0_886=r[6],
        level1=end,
        tp1=t[0],
        tp2=t[1],
        tp3=t[2],
        tp4=t[3],
        tp5=t[4],
    )


def calculate_auto_fibs(
    candles: list[CandleData],
    ema200: float,
    lookback: int = 300,
) -> FibonacciLevels:
    """Auto-anchored Fibonacci retracements from fractal swings.

    Uptrend (close > EMA200): anchor on the highest fractal high within
    *lookback* bars and the lowest fractal low before it.  Downtrend is
    mirrored.  Without fractals, falls back to the window's max/min.
    """
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    n = len(candles)
    trend = "UP" if candles[-1].close > ema200 else "DOWN"

    fractal_highs, fractal_lows = find_fractals(highs, lows)

    if not fractal_highs or not fractal_lows:
        window = max(0, n - lookback)
        return _fib_levels(trend, max(highs[window:]), min(lows[window:]))

    swing_high = max(highs)
    swing_low = min(lows)

    if trend == "UP":
        recent = [f for f in fractal_highs if f[0] > n - lookback]
        if recent:
            idx, swing_high = max(recent, key=lambda f: f[1])
            before = [f for f in fractal_lows if idx - lookback < f[0] < idx]
            if before:
                swing_low = min(before, key=lambda f: f[1])[1]
            elif idx > 0:
                swing_low = min(lows[max(0, idx - 100) : idx])
    else:
        recent = [f for f in fractal_lows if f[0] > n - lookback]
        if recent:
            idx, swing_low = min(recent, key=lambda f: f[1])
            before = [f for f in fractal_highs if idx - lookback < f[0] < idx]
            if before:
                swing_high = max(before, key=lambda f: f[1])[1]
            elif idx > 0:
                swing_high = max(highs[max(0, idx - 100) : idx])

    return _fib_levels(trend, swing_high, swing_low)


# ── Ichimoku ─────────────────────────────────────────────────────────────


def _midpoint(candles: list[CandleData], end: int, length: int) -> float:
    window = candles[end - length + 1 : end + 1]
    return (max(c.high for c in window) + min(c.low for c in window)) / 2


def calculate_ichimoku(
    candles: list[CandleData],
    tenkan_period: int = 9,
    kijun_period: int = 26,
    senkou_period: int = 52,
) -> IchimokuCloud:
    """Ichimoku Kinko Hyo at the latest bar.

    The current cloud is the Senkou A/B computed *kijun_period* bars ago.
    The chikou span (current close plotted *kijun_period* bars back) is
    "free" when it sits outside both that bar's range and the cloud that
    was in force at that time.

    Requires ``senkou_period + 2 × kijun_period`` candles.
    """
    min_candles = senkou_period + 2 * kijun_period
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for Ichimoku, got {len(candles)}"
        )

    def _cloud(at: int) -> tuple[float, float]:
        a = (_midpoint(candles, at, tenkan_period) + _midpoint(candles, at, kijun_period)) / 2
        b = _midpoint(candles, at, senkou_period)
        return a, b

    now = len(candles) - 1
    tenkan = _midpoint(candles, now, tenkan_period)
    kijun = _midpoint(candles, now, kijun_period)
    senkou_a, senkou_b = _cloud(now - kijun_period)
    future_a, future_b = _cloud(now)

    close = candles[now].close
    past_bar = candles[now - kijun_period]
    past_a, past_b = _cloud(now - 2 * kijun_period)
    in_price = past_bar.low <= close <= past_bar.high
    in_cloud = min(past_a, past_b) <= close <= max(past_a, past_b)

    if close > past_bar.high:
        chikou_direction = "BULLISH"
    elif close < past_bar.low:
        chikou_direction = "BEARISH"
    else:
        chikou_direction = "NEUTRAL"

    mid = (senkou_a + senkou_b) / 2
    return IchimokuCloud(
        tenkan=tenkan,
        kijun=kijun,
        senkou_a=senkou_a,
        senkou_b=senkou_b,
        future_senkou_a=future_a,
        future_senkou_b=future_b,
        chikou_free=not (in_price or in_cloud),
        chikou_direction=chikou_direction,
        cloud_thickness=abs(senkou_a - senkou_b) / mid if mid else 0.0,
        tk_separation=abs(tenkan - kijun) / kijun if kijun else 0.0,
    )
