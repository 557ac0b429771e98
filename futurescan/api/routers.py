"""Internal API routers — /status, /trades and /scan endpoints.

No business logic.  Handlers read the monitor, scanner and scan task that
``create_app`` stores on ``app.state``.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request

logger = logging.getLogger("futurescan.api")
router = APIRouter()

_STARTED_AT = datetime.now(timezone.utc)


def _monitor(request: Request):
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Trade monitoring is disabled")
    return monitor


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/status")
async def get_status(request: Request):
    """Scanner and monitor statistics plus scheduler state."""
    state = request.app.state
    scan_task = getattr(state, "scan_task", None)
    monitor = getattr(state, "monitor", None)
    return {
        "started_at": _STARTED_AT.isoformat(),
        "uptime_seconds": int((datetime.now(timezone.utc) - _STARTED_AT).total_seconds()),
        "scanning": bool(scan_task and scan_task.busy),
        "scanner": state.scanner.get_statistics(),
        "monitor": monitor.get_statistics() if monitor is not None else None,
    }


@router.get("/trades")
async def get_active_trades(request: Request):
    trades = _monitor(request).get_active_trades()
    return {"trades": [t.to_dict() for t in trades], "total": len(trades)}


@router.get("/trades/history")
async def get_trade_history(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
):
    """Archived trades, newest first."""
    trades = _monitor(request).get_archived_trades(limit)
    return {"trades": [t.to_dict() for t in trades], "total": len(trades)}


@router.post("/trades/{trade_id}/check")
async def force_check_trade(trade_id: str, request: Request):
    trade = await _monitor(request).force_check(trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail=f"Unknown trade: {trade_id}")
    return trade.to_dict()


@router.delete("/trades/{trade_id}")
async def remove_trade(trade_id: str, request: Request):
    """Close an active trade as MANUAL_REMOVAL."""
    if not _monitor(request).remove_trade(trade_id):
        raise HTTPException(status_code=404, detail=f"Unknown trade: {trade_id}")
    logger.info("Trade %s removed via API", trade_id)
    return {"status": "removed", "trade_id": trade_id}


@router.post("/scan")
async def trigger_scan(request: Request, background_tasks: BackgroundTasks):
    """Queue one scan tick.  Skipped if a scan is already running."""
    scan_task = getattr(request.app.state, "scan_task", None)
    if scan_task is None:
        raise HTTPException(status_code=503, detail="Scanner is not scheduled")
    if scan_task.busy:
        return {"status": "skipped", "reason": "scan already in progress"}
    background_tasks.add_task(scan_task.tick)
    logger.info("Manual scan triggered")
    return {"status": "started"}
