import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lostmap.config import Settings, load_settings
from lostmap.core.client import MapClient
from lostmap.core.errors import MapStateError
from lostmap.core.interfaces import BlobStore, DocumentStore, GeocodeService, IdentityProvider
from lostmap.db.db import create_db_and_tables, make_engine
from lostmap.routers import auth, feed, reports, search
from lostmap.utils.auth_helper import MapSessions
from lostmap.utils.document_store import SQLDocumentStore
from lostmap.utils.geocode_service import NominatimGeocodeService
from lostmap.utils.identity import AccountIdentityProvider
from lostmap.utils.logging import setup_logging
from lostmap.utils.s3_service import S3BlobStore

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MapStateError)
    async def map_state_error_handler(request: Request, exc: MapStateError):
        logger.info("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )


def create_app(
    settings: Optional[Settings] = None,
    documents: Optional[DocumentStore] = None,
    blobs: Optional[BlobStore] = None,
    geocoder: Optional[GeocodeService] = None,
    identity_factory: Optional[Callable[[], IdentityProvider]] = None,
) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(settings.database_url)
        create_db_and_tables(engine)

        document_store = documents if documents is not None else SQLDocumentStore(engine)
        blob_store = blobs if blobs is not None else S3BlobStore(
            bucket=settings.r2_bucket,
            endpoint_url=settings.r2_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            public_base_url=settings.r2_public_url or None,
        )
        geocode_service = geocoder if geocoder is not None else NominatimGeocodeService(
            url=settings.nominatim_url,
            user_agent=settings.geocode_user_agent,
            timeout=settings.geocode_timeout,
        )
        make_identity = identity_factory or (
            lambda: AccountIdentityProvider(engine, settings.google_client_id)
        )

        def make_client() -> MapClient:
            return MapClient(
                identity=make_identity(),
                documents=document_store,
                blobs=blob_store,
                geocoder=geocode_service,
                allow_edit_unowned=settings.allow_edit_unowned,
            )

        app.state.sessions = MapSessions(
            make_client,
            settings.jwt_secret,
            idle_timeout=settings.session_idle_minutes * 60,
            max_sessions=settings.max_sessions,
        )
        logger.info("Lost & found map service started")

        yield

        app.state.sessions.close_all()
        engine.dispose()
        logger.info("Lost & found map service stopped")

    app = FastAPI(title="Campus Lost & Found", lifespan=lifespan)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(reports.router, prefix="/reports", tags=["Reports"])
    app.include_router(search.router, prefix="/search", tags=["Search"])
    app.include_router(feed.router, tags=["Feed"])

    @app.get("/")
    def root():
        return {"status": "ok"}

    return app


load_dotenv()
setup_logging()

app = create_app()
