"""Read-only API routers — /status and /opportunities.

No business logic.  Serves whatever the scan engine last published.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from scanner.models.opportunity import opportunity_to_dict

logger = logging.getLogger("scanner.api")
router = APIRouter()

_engine = None  # Set via configure_routers()


def configure_routers(engine=None) -> None:
    """Inject the ``ScanEngine`` (or a duck-type for tests)."""
    global _engine  # noqa: PLW0603
    _engine = engine


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Engine state and a summary of the last completed cycle."""
    if _engine is None:
        return {"running": False, "scanning": False, "cycle_count": 0, "last_cycle_id": None}
    return _engine.status()


@router.get("/opportunities")
async def get_opportunities(
    limit: int = Query(default=10, ge=1, le=50),
    side: Optional[str] = Query(default=None, pattern="^(LONG|SHORT)$"),
):
    """Ranked opportunities from the latest cycle, best first."""
    latest = _engine.latest if _engine is not None else None
    if latest is None:
        return {"cycle_id": None, "opportunities": [], "total": 0}

    opportunities = [o for o in latest.opportunities if side is None or o.side == side]
    return {
        "cycle_id": latest.cycle_id,
        "finished_at": latest.finished_at,
        "market_risk": {
            "level": latest.market_risk.level,
            "risk_type": latest.market_risk.risk_type,
            "note": latest.market_risk.note,
        },
        "opportunities": [opportunity_to_dict(o) for o in opportunities[:limit]],
        "total": len(opportunities),
    }
