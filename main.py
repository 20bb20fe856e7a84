from contextlib import asynccontextmanager
import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from controller import AppController
from db import Base, ROOT_DIR, SessionLocal, engine
from routers import ALL_ROUTERS

import orm  # noqa: F401  (registers tables on Base)

Base.metadata.create_all(bind=engine)

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

SECRET_KEY = os.getenv("APP_SECRET_KEY")
if not SECRET_KEY:
    logger.warning("APP_SECRET_KEY is not set; using an insecure development key")
    SECRET_KEY = "dev-only-secret"


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state.controller.startup()
    logger.info(
        "loaded assets=%s customers=%s product_types=%s",
        len(state.assets),
        len(state.customers),
        len(state.product_types),
    )
    yield


app = FastAPI(title="Asset Rental Tracker", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=SECRET_KEY)

templates = Jinja2Templates(directory=str(ROOT_DIR / "templates"))
app.state.templates = templates
app.state.controller = AppController(SessionLocal)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


for router in ALL_ROUTERS:
    app.include_router(router)


@app.get("/")
def root():
    return {"message": "Asset Rental Tracker", "docs": "/docs", "ui": "/ui/dashboard"}
