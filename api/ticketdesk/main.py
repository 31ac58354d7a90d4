from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
import logging
import os
from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
import pathlib
from fastapi.middleware.cors import CORSMiddleware
from .errors import FilterError, NotFoundError, PermissionDeniedError, StoreError, ValidationError
from .routes_auth import router as auth_router
from .routes_filters import router as filters_router
from .routes_tickets import router as tickets_router
from .deps import get_current_user
from .models import User
from .version import get_version

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ticketdesk API", version=get_version())

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(filters_router)
app.include_router(tickets_router)

ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    StoreError: 503,
}


@app.exception_handler(FilterError)
async def _filter_error_handler(request: Request, exc: FilterError):
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/health")
def health():
    return {"status": "ok", "service": "api", "version": get_version()}

@app.get("/version")
def version():
    return {"version": get_version()}

@app.get("/me")
def me(current: User = Depends(get_current_user)):
    return {"id": current.id, "email": current.email, "role": current.role, "is_admin": current.is_admin}


@app.on_event("startup")
def _auto_migrate_dev():
    if os.environ.get("ENV") == "dev":
        try:
            here = pathlib.Path(__file__).resolve().parent
            cfg_path = here.parent / "alembic.ini"
            cfg = AlembicConfig(str(cfg_path))
            # DATABASE_URL is read by env.py; nothing to set if env is present
            alembic_command.upgrade(cfg, "head")
            logger.info("alembic upgrade head executed on startup (dev)")
        except Exception:
            # Don't crash app on migration error in dev; just log
            logger.exception("alembic startup migration skipped/failed")
