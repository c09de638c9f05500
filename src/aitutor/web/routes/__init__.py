"""Route handlers for the Web API."""

from aitutor.web.routes.ai import router as ai_router
from aitutor.web.routes.chats import router as chats_router
from aitutor.web.routes.health import router as health_router
from aitutor.web.routes.library import router as library_router
from aitutor.web.routes.users import router as users_router

__all__ = [
    "ai_router",
    "chats_router",
    "health_router",
    "library_router",
    "users_router",
]
