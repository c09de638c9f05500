"""Health check endpoint."""

from fastapi import APIRouter

from aitutor.config.app_config import get_default_model, load_app_config
from aitutor.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report API status and the configured provider."""
    provider = load_app_config().tutor.default_provider
    return HealthResponse(status="ok", provider=provider, model=get_default_model(provider))
