"""
Config router — read and update the active LLM provider configuration.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from codechat.core.errors import ConfigValidationError
from codechat.models.config import ProviderConfigUpdate
from codechat.services.ai_config import ProviderConfigStore

router = APIRouter(prefix="/config", tags=["config"])


def get_config_store(request: Request) -> ProviderConfigStore:
    return request.app.state.config_store


@router.get("/ai")
async def get_ai_config(store: ProviderConfigStore = Depends(get_config_store)):
    """Return the active provider configuration."""
    return {"success": True, "config": store.get().model_dump(by_alias=True)}


@router.put("/ai")
async def update_ai_config(
    update: ProviderConfigUpdate,
    store: ProviderConfigStore = Depends(get_config_store),
):
    """Merge a partial update into the active configuration."""
    try:
        config = store.update(update)
    except ConfigValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(exc)},
        )
    return {"success": True, "config": config.model_dump(by_alias=True)}


@router.get("/ai/providers")
async def list_providers(store: ProviderConfigStore = Depends(get_config_store)):
    """List the supported providers and their defaults."""
    return {
        "success": True,
        "providers": [p.model_dump(by_alias=True) for p in store.supported_providers()],
    }
