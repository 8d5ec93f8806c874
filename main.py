import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from controllers.image_controller import health as health_check
from dal.blob_store import BlobStore
from dal.image_dal import ImageDAL
from models.errors import UploadError
from routes.image_route import router as image_router
from services.image_store import ImageStore
from utils.database_init import AsyncDatabaseInitializer
from utils.logging_config import configure_logging
from utils.settings import Settings

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - logging and the upload directory
      - the SQLite database and its connection pool (at DATABASE_DIR/app.db)
      - the record store and the upload coordinator
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    db_initializer = AsyncDatabaseInitializer(settings.database_dir, pool_size=settings.db_pool_size)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    image_dal = ImageDAL(db_initializer)
    app.state.image_dal = image_dal
    app.state.image_store = ImageStore(app.state.blob_store, image_dal, max_upload_bytes=settings.max_upload_bytes)

    app.state.blob_store.ensure_directory()
    LOGGER.info("Upload directory: %s", app.state.blob_store.base_dir)
    try:
        yield
    finally:
        await db_initializer.close()


async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "File upload error", "error": str(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Server error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Something went wrong", "error": str(exc)})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        settings: Runtime settings; read from the environment when omitted.
    """
    settings = settings or Settings()

    app = FastAPI(title="Image Upload API", lifespan=lifespan)
    app.state.settings = settings

    # The upload directory is created at startup, not on import.
    blob_store = BlobStore(settings.upload_dir)
    app.state.blob_store = blob_store

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(UploadError, upload_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.mount(f"/{blob_store.url_prefix}", StaticFiles(directory=blob_store.base_dir, check_dir=False), name="uploads")

    @app.get("/", include_in_schema=False)
    async def root():
        return {"message": "Image Upload API"}

    @app.get("/api/health")
    async def health(request: Request):
        """Liveness check; database probe failures only change the `database` field."""
        return await health_check(request)

    app.include_router(image_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings: Settings = app.state.settings
    uvicorn.run("main:app", host=_settings.host, port=_settings.port)
