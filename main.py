import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import get_db, get_settings
from blob_store import BlobStore, LocalBlobStore
from config import Settings
from database import connect, ensure_indexes
from helpers import api_response
from routers import dashboard, comments, likes, playlists, subscriptions, tweets, users, videos

logger = logging.getLogger(__name__)

SERVICE_NAME = "VideoTube API"


def error_response(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "errors": errors or [],
            "success": False,
            "data": None,
        },
    )


def _validation_errors(errors) -> list:
    return [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in errors
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        response = error_response(exc.status_code, str(exc.detail), getattr(exc, "errors", None))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc.errors())
        message = errors[0]["message"] if errors else "Invalid request"
        return error_response(400, message, errors)

    @app.exception_handler(ValidationError)
    async def model_validation_error(request: Request, exc: ValidationError):
        errors = _validation_errors(exc.errors())
        message = errors[0]["message"] if errors else "Invalid request"
        return error_response(400, message, errors)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Internal Server Error")


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if db is None:
        db = connect(settings.database_url, settings.database_name)
    if blob_store is None:
        blob_store = LocalBlobStore(settings.upload_dir, settings.media_base_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            ensure_indexes(app.state.db)
        except Exception:
            logger.exception("Could not ensure database indexes")
            raise
        yield

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.blob_store = blob_store
    app.state.started_at = time.monotonic()

    origins = [o.strip() for o in settings.client_url.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/static", StaticFiles(directory=settings.upload_dir), name="static")

    register_exception_handlers(app)

    @app.get("/")
    def read_root():
        return {"message": f"{SERVICE_NAME} is running"}

    @app.get(f"{settings.api_prefix}/health")
    def health(request: Request, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
        database = "connected"
        try:
            db.command("ping")
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            database = "unavailable"
        return api_response(
            {
                "status": "OK",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - request.app.state.started_at, 3),
                "service": SERVICE_NAME,
                "environment": settings.app_env,
                "database": database,
            },
            "Health check successful",
        )

    for module in (users, videos, subscriptions, comments, tweets, likes, playlists, dashboard):
        app.include_router(module.router, prefix=settings.api_prefix)

    return app


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
    )


if __name__ == "__main__":
    import uvicorn

    app_settings = Settings.from_env()
    configure_logging(app_settings.log_level)
    uvicorn.run(create_app(app_settings), host="0.0.0.0", port=app_settings.port)
