from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from recruit_chat.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Postgres and Redis must answer; the presence registry reports who is online."""
    errors: list[str] = []
    body: dict[str, Any] = {}

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        errors.append(f"postgres: {exc}")

    state = request.app.state
    redis = getattr(state, "redis", None)
    if redis is None:
        errors.append("redis: not configured")
    else:
        try:
            await redis.ping()
        except Exception as exc:  # noqa: BLE001
            errors.append(f"redis: {exc}")

    presence = getattr(state, "presence", None)
    if presence is not None:
        try:
            body["online_accounts"] = len(await presence.online())
        except Exception as exc:  # noqa: BLE001
            errors.append(f"presence: {exc}")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors, **body},
        )
    return JSONResponse(content={"status": "ready", **body})
