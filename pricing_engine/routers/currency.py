from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from pricing_engine.models import CurrencyConfig, MultiCurrencySettings, RateHistoryPoint
from pricing_engine.services.currency_service import CurrencyService

"""Currency router: settings, rate history, simulated ticks and price lookup.

Endpoints:
    - GET  /currency/settings              -> current settings (default created on first read)
    - PUT  /currency/settings              -> replace settings wholesale
    - GET  /currency/active                -> currencies offered to shoppers
    - GET  /currency/history               -> rate samples, oldest first
    - GET  /currency/history/{code}/trend  -> sparkline window (empty below 2 samples)
    - POST /currency/tick                  -> one simulated rate step
    - GET  /currency/price                 -> customer price breakdown

Domain errors propagate as PricingError and are rendered by the app-level
handler, so routes stay free of try/except. Routes are plain ``def`` so the
blocking SQLite work and the writer lock run in the threadpool.
"""

router = APIRouter(prefix="/currency", tags=["currency"])


def get_currency_service(request: Request) -> CurrencyService:
    return request.app.state.currency_service


class PriceOut(BaseModel):
    currency: str
    base_amount: float
    exchange_rate: float
    amount: float
    tax: float
    total: float
    formatted: str


@router.get("/settings", response_model=MultiCurrencySettings, summary="Current currency settings")
def get_settings(svc: CurrencyService = Depends(get_currency_service)):
    return svc.get_settings()


@router.put("/settings", response_model=MultiCurrencySettings, summary="Replace currency settings")
def update_settings(
    payload: MultiCurrencySettings,
    svc: CurrencyService = Depends(get_currency_service),
):
    return svc.update_settings(payload)


@router.get("/active", response_model=List[CurrencyConfig], summary="Active currencies")
def list_active(svc: CurrencyService = Depends(get_currency_service)):
    return svc.active_currencies()


@router.get("/history", response_model=List[RateHistoryPoint], summary="Rate history")
def get_history(
    code: Optional[str] = Query(None, min_length=3, max_length=3, description="Currency code filter"),
    limit: Optional[int] = Query(None, gt=0, le=5000, description="Newest N samples"),
    svc: CurrencyService = Depends(get_currency_service),
):
    return svc.get_history(code=code, limit=limit)


@router.get(
    "/history/{code}/trend",
    response_model=List[RateHistoryPoint],
    summary="Recent samples for a sparkline",
)
def get_trend(code: str, svc: CurrencyService = Depends(get_currency_service)):
    return svc.trend(code)


@router.post("/tick", response_model=MultiCurrencySettings, summary="Run one simulated rate step")
def simulate_tick(svc: CurrencyService = Depends(get_currency_service)):
    return svc.simulate_tick()


@router.get("/price", response_model=PriceOut, summary="Customer price for a base amount")
def get_price(
    amount: float = Query(..., description="Amount in the base currency"),
    currency: str = Query(..., description="Target currency code"),
    include_tax: bool = Query(False, description="Format the tax inclusive total"),
    svc: CurrencyService = Depends(get_currency_service),
):
    return svc.format_price(amount, currency, include_tax=include_tax)
