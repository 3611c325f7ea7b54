"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizengine import __version__
from quizengine.core.config import settings
from quizengine.core.errors import QuizEngineError
from quizengine.api.admin import router as admin_router
from quizengine.api.attempts import router as attempts_router
from quizengine.api.auth import router as auth_router
from quizengine.api.author import router as author_router
from quizengine.api.reports import router as reports_router
from quizengine.services.attempts import TickerFactory
from quizengine.services.sessions import SessionRegistry, live_ticker_factory
from quizengine.services.store import QuizStore, get_store

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=settings.LOG_FILE,
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await app.state.registry.drain()
    # Cancel the countdown of every open attempt
    app.state.registry.close_all()
    logger.info("Shutdown complete")

def _error(status_code: int, message, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "type": error_type, "status_code": status_code, **extra}},
    )

def create_app(store: Optional[QuizStore] = None, ticker_factory: Optional[TickerFactory] = live_ticker_factory) -> FastAPI:
    """Build the API around `store`; pass ``ticker_factory=None`` to drive countdowns by hand."""
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=__version__,
        docs_url=None if settings.is_production() else "/docs",
        redoc_url=None if settings.is_production() else "/redoc",
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else get_store()
    app.state.registry = SessionRegistry(app.state.store, ticker_factory=ticker_factory)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = settings.API_V1_PREFIX
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(attempts_router, prefix=f"{prefix}/attempts", tags=["attempts"])
    app.include_router(author_router, prefix=f"{prefix}/author", tags=["authoring"])
    app.include_router(reports_router, prefix=f"{prefix}/reports", tags=["reports"])
    app.include_router(admin_router, prefix=f"{prefix}/admin", tags=["admin"])

    # Exception handlers
    @app.exception_handler(QuizEngineError)
    async def engine_exception_handler(request: Request, exc: QuizEngineError):
        """Handle domain errors raised by the engine."""
        if exc.status_code >= 500:
            logger.error(f"Engine error: {exc.message}", exc_info=True)
        return _error(exc.status_code, exc.message, exc.error_type)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error(exc.status_code, exc.detail, "http_error")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", "validation_error",
            details=jsonable_errors(exc),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        if settings.is_production():
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal error occurred", "internal_error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), "internal_error", debug=True)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": __version__,
            "store": settings.STORE_BACKEND,
            "open_attempts": len(app.state.registry),
        }

    return app

def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised exception object
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("quizengine.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
