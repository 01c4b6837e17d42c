from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from app.config import settings
from app.database import create_engine, create_session_factory, init_db, close_db
from app.api.v1.wallets import router as wallet_router, plans_router, transactions_router
from app.api.v1.interviews import router as interview_router
from app.api.v1.rooms import router as room_router
from app.services.ai_client import AIServiceClient
from app.services.channel_tokens import ChannelTokenIssuer
from app.services.cost_catalog import CostCatalog
from app.services.identity import IdentityClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and outbound clients for the life of the process"""
    db_host = settings.DATABASE_URL.split('@')[-1] if '@' in settings.DATABASE_URL else 'local'
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} (database: {db_host})")

    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.identity_client = IdentityClient(
        settings.IDENTITY_PROVIDER_URL,
        settings.IDENTITY_PROVIDER_API_KEY,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )
    app.state.ai_client = AIServiceClient(
        settings.AI_SERVICE_URL,
        timeout=settings.AI_SERVICE_TIMEOUT_SECONDS,
    )
    app.state.channel_issuer = ChannelTokenIssuer(
        settings.CHANNEL_APP_ID,
        settings.CHANNEL_APP_SECRET,
        ttl_seconds=settings.CHANNEL_TOKEN_TTL_SECONDS,
    )

    if settings.AUTO_CREATE_DB_SCHEMA:
        await init_db(engine)
    if settings.SEED_CATALOG_ON_STARTUP:
        async with app.state.session_factory() as session:
            await CostCatalog(session).seed_defaults()

    try:
        yield
    finally:
        logger.info(f"Shutting down {settings.APP_NAME}")
        await app.state.ai_client.aclose()
        await app.state.identity_client.aclose()
        await close_db(engine)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Flatten pydantic errors into field/message pairs"""
        errors = [
            {
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Validation Error",
                "message": "The request contains invalid data",
                "details": errors,
                "request_path": request.url.path,
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_exception_handler(request: Request, exc: SQLAlchemyError):
        """Store failures that escaped a route surface as unavailability"""
        logger.error(f"Store error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "Service Unavailable",
                "message": "Service temporarily unavailable. Please try again later.",
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An internal server error occurred",
                "error": str(exc) if settings.DEBUG else "Internal Server Error",
            },
        )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    # Wallet and catalog
    app.include_router(wallet_router, prefix="/api/v1")
    app.include_router(plans_router, prefix="/api/v1")
    app.include_router(transactions_router, prefix="/api/v1")
    # Token-gated AI workflows and rooms
    app.include_router(interview_router, prefix="/api/v1")
    app.include_router(room_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
