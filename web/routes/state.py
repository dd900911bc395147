"""Public read-only battle totals."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from battle.engine import BattleEngine
from web.deps import get_engine, limiter
from web.schemas import BattleStateResponse

router = APIRouter(tags=["state"])

STATE_RATE_LIMIT = "120/minute"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, max-age=0",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}


@router.get("/battle-state", response_model=BattleStateResponse)
@limiter.limit(STATE_RATE_LIMIT)
async def battle_state(request: Request, engine: BattleEngine = Depends(get_engine)):
    """Current sweet/savoury totals; zeros when nothing has been recorded yet."""
    totals = await engine.totals.read()
    return JSONResponse(content=totals.to_response(), headers=NO_CACHE_HEADERS)
