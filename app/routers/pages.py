# =============================================================================
# app/routers/pages.py - Page Shell
# =============================================================================
# Serves the page context for every guarded page path. By the time a
# request gets here RouteGuardMiddleware has allowed it and annotated
# request.state with the viewer's identity; the frontend renders the page
# from this context.
#
# Mounted last: the catch-all path must not shadow API routes.
# =============================================================================

from typing import Any

from fastapi import APIRouter, Request

from app.exceptions import NotFoundError
from app.middleware import is_excluded
from core.guard import classify

router = APIRouter()


@router.get("/{page_path:path}")
async def page_context(page_path: str, request: Request) -> dict[str, Any]:
    """
    Context for rendering the page at `page_path`.

    Example response:
        {
            "path": "/gallery/upload",
            "route_class": "family",
            "user": {"id": "...", "role": "family", "display_name": "May"}
        }
    """
    path = "/" + page_path
    if is_excluded(path):
        raise NotFoundError(f"No such endpoint: {path}", code="ENDPOINT_NOT_FOUND")

    user_id = getattr(request.state, "user_id", None)
    role = getattr(request.state, "role", None)
    user = None
    if user_id:
        user = {
            "id": user_id,
            "role": role.value if role else None,
            "display_name": getattr(request.state, "display_name", None),
        }

    return {
        "path": path,
        "route_class": classify(path).value,
        "user": user,
    }
