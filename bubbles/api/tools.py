import logging
from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException

from ..core.chat import Services, get_services
from ..types import ToolRunRequest

router = APIRouter(prefix="/tools")
_logger = logging.getLogger(__name__)


@router.get("")
async def list_tools(services: Services = Depends(get_services)):
    return {"tools": [d.model_dump() for d in services.executor.registry.get_definitions()]}


@router.post("/{name}")
async def run_tool(name: str, request: ToolRunRequest, services: Services = Depends(get_services)):
    """Run one tool through the same executor the model uses."""
    if not services.executor.registry.has_tool(name):
        raise HTTPException(status_code=404, detail=f"Unknown tool '{name}'")

    start = perf_counter()
    result = await services.executor.execute(name, request.arguments)
    _logger.info("Tool %s ran in %.1fms", name, (perf_counter() - start) * 1000)
    return {"tool": name, "result": result}
