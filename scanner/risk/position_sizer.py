"""Position sizing — pure math, no I/O.

Half-Kelly fraction of equity and volatility-targeted leverage.
"""

_KELLY_MIN = 0.005
_KELLY_MAX = 0.05
_LEVERAGE_MIN = 1.0
_LEVERAGE_MAX = 20.0
_ATR_SENSITIVITY = 1.5


def calculate_kelly_size(win_rate: float = 0.55, rr: float = 2.0) -> float:
    """Half-Kelly fraction of equity to risk.

    Formula::

        kelly = (p × b − q) / b        p = win rate, q = 1 − p, b = reward:risk
        size  = kelly / 2

    Clamped to 0.5 %–5 % of equity.

    Raises:
        ValueError: If *rr* is non-positive or *win_rate* is outside [0, 1].
    """
    if rr <= 0:
        raise ValueError(f"rr must be positive, got {rr}")
    if not 0.0 <= win_rate <= 1.0:
        raise ValueError(f"win_rate must be within [0, 1], got {win_rate}")

    kelly = (win_rate * rr - (1 - win_rate)) / rr
    return max(_KELLY_MIN, min(_KELLY_MAX, kelly * 0.5))


def volatility_adjusted_leverage(
    atr: float,
    price: float,
    risk_per_trade: float = 0.01,
) -> float:
    """Leverage that normalises risk per unit of volatility.

    ``leverage = risk_per_trade / (ATR% × 1.5)``, clamped to 1–20×.
    Returns 1.0 when ATR or price is non-positive.
    """
    if atr <= 0 or price <= 0:
        return _LEVERAGE_MIN
    leverage = risk_per_trade / (atr / price * _ATR_SENSITIVITY)
    return max(_LEVERAGE_MIN, min(_LEVERAGE_MAX, leverage))
