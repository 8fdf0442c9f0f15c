from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(request: Request):
    ticker = getattr(request.app.state, "rate_ticker", None)
    return {
        "status": "ok",
        "rate_ticker": "running" if ticker is not None and ticker.running else "off",
    }
