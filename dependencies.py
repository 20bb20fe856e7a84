import asyncio
import os
from collections.abc import Generator
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from db import SessionLocal

SIMULATED_DELAY_MS = int(os.getenv("APP_SIMULATED_DELAY_MS", "300"))
AUTH_SESSION_KEY = "is_authenticated"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def simulated_latency() -> None:
    # keeps the loading-state contract of the API for clients
    if SIMULATED_DELAY_MS > 0:
        await asyncio.sleep(SIMULATED_DELAY_MS / 1000)


def is_authenticated(request: Request) -> bool:
    return bool(request.session.get(AUTH_SESSION_KEY))


def require_admin(request: Request) -> None:
    if not is_authenticated(request):
        raise HTTPException(status_code=401, detail="login required")


def ui_login_redirect(request: Request) -> Optional[RedirectResponse]:
    if is_authenticated(request):
        return None
    return RedirectResponse(url="/ui/login", status_code=303)
