"""Application entry point for the food log API.

`create_app` wires the storage handles, the ingestion pipeline, middleware,
exception handlers and routers. The `lifespan` handler creates the schema and
uploads directory on startup and disposes of the database engine on shutdown.
"""

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from contextlib import asynccontextmanager
from typing import Optional

from core.config import Settings
from core.error_handlers import register_exception_handlers
from core.exceptions import AppException
from core.logger import get_logger, set_level
from database import Database
from database.deps import get_db
from services.blob_store import BlobStore
from services.image_normalizer import ImageNormalizer
from services.ingestion import MealIngestor
from services.nutrition_estimator import NutritionEstimator, build_estimator
from api.images import router as images_router
from api.meals import router as meals_router

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize storage before serving requests and release it afterwards."""
    app.state.database.init()
    app.state.blob_store.ensure_root()
    logger.info("Serving images from %s", app.state.blob_store.root)
    yield
    app.state.database.dispose()


def create_app(
    settings: Optional[Settings] = None,
    estimator: Optional[NutritionEstimator] = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Configuration; read from the environment when omitted.
        estimator: Nutrition estimator; built from `settings` when omitted.
    """
    settings = settings or Settings.from_env()
    set_level(settings.log_level)

    app = FastAPI(title="Food Log API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = Database(settings.database_url)
    app.state.blob_store = BlobStore(settings.uploads_dir)
    app.state.ingestor = MealIngestor(
        blob_store=app.state.blob_store,
        estimator=estimator or build_estimator(settings),
        normalizer=ImageNormalizer(
            max_dimension=settings.image_max_dimension,
            quality=settings.image_jpeg_quality,
            heic_quality=settings.heic_jpeg_quality,
        ),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log incoming requests and their responses."""
        logger.info("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Request error: %s %s", request.method, request.url.path)
            raise
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    register_exception_handlers(app)

    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        """Return basic health status and database connectivity."""
        try:
            db.execute(text("SELECT 1"))
        except Exception as exc:
            logger.exception("Health check failed")
            raise AppException("Database health check failed", details={"error": str(exc)})
        return {"status": "healthy", "database": "connected"}

    app.include_router(meals_router)
    app.include_router(images_router)
    return app


app = create_app()


if __name__ == "__main__":
    # Allow starting the app via `python ./main.py`
    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the app. Install with `pip install uvicorn[standard]`. Error: %s" % exc)

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
