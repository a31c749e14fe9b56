from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.chat import Services, get_services
from ..core.classification import ALL_TIERS, find_tier
from ..core.resolver import HolderQueryKind
from ..types import HolderQueryResponse

router = APIRouter(prefix="/holders")


async def _resolve(services: Services, kind: HolderQueryKind, params: Optional[Dict[str, Any]] = None):
    resolved = await services.resolver.resolve_holder_query(kind, params)
    if "error" in resolved:
        raise HTTPException(status_code=503, detail=resolved["error"])
    return resolved


def _check_category(category: Optional[str]) -> None:
    if category and find_tier(category) is None:
        raise HTTPException(status_code=400, detail=f"Unknown category '{category}'")


@router.get("/count", response_model=HolderQueryResponse)
async def holder_count(services: Services = Depends(get_services)):
    return await _resolve(services, HolderQueryKind.COUNT)


@router.get("/top", response_model=HolderQueryResponse)
async def top_holders(
    limit: int = Query(10, ge=1, le=500, description="Number of holders"),
    category: Optional[str] = Query(None, description="Tier filter, e.g. Kraken"),
    services: Services = Depends(get_services),
):
    _check_category(category)
    return await _resolve(services, HolderQueryKind.TOP_N, {"limit": limit, "category": category})


@router.get("/distribution", response_model=HolderQueryResponse)
async def holder_distribution(
    include_percentages: bool = Query(True, alias="includePercentages"),
    services: Services = Depends(get_services),
):
    return await _resolve(services, HolderQueryKind.DISTRIBUTION, {"includePercentages": include_percentages})


@router.get("/categories", response_model=HolderQueryResponse)
async def category_stats(
    category: Optional[str] = Query(None, description="Single tier; all tiers when omitted"),
    services: Services = Depends(get_services),
):
    _check_category(category)
    return await _resolve(services, HolderQueryKind.CATEGORY_STATS, {"category": category})


tiers_router = APIRouter()


@tiers_router.get("/tiers")
async def tier_table():
    """Tier bands, highest first, override tiers included."""
    return {"tiers": [tier.to_dict() for tier in ALL_TIERS]}
