"""Health check, settings, and debug log endpoints."""

from fastapi import APIRouter, Request

from rpg_companion.debug import recent_logs

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get the extension settings."""
    return request.app.state.sessions.state.settings.model_dump(by_alias=True)


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update extension settings (shallow merge, camelCase or snake_case keys)."""
    settings = request.app.state.sessions.update_settings(body)
    return settings.model_dump(by_alias=True)


@router.get("/debug/logs")
async def debug_logs(limit: int | None = None):
    """Recent log records captured while debug mode is on."""
    return recent_logs(limit)
