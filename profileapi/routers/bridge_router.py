from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from profileapi.containers import Container
from profileapi.services.storage_bridge import StorageBridge

router = APIRouter(tags=["bridge"])


@router.get("/storage.html", response_class=HTMLResponse, include_in_schema=False)
@inject
async def storage_document(
    storage_bridge: StorageBridge = Depends(Provide[Container.services.storage_bridge]),
) -> HTMLResponse:
    """Iframe document brokering cross-domain access to the anonymous id."""
    return HTMLResponse(
        content=storage_bridge.render_document(),
        headers={"Cache-Control": "public, max-age=3600"},
    )
