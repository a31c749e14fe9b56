from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..core.chat import Services, get_services

router = APIRouter()


@router.get("/healthz")
async def health_check(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Endpoint selector and store status."""
    details = await services.health()
    healthy = details["rpc"]["status"] == "healthy"
    return {"status": "healthy" if healthy else "degraded", **details}
