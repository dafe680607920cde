import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.alerts.router import router as alerts_router
from apps.alerts.service import AlertNotifier
from apps.invoices.router import router as invoices_router
from apps.pos.router import router as pos_router
from apps.shopify.client import ShopifyAdminClient
from apps.storage.router import router as storage_router
from apps.storage.service import ObjectStore, S3ObjectStore
from apps.travel_bills.router import router as travel_bills_router
from common.exceptions import AppError
from common.forms import describe_errors
from common.responses import error_response
from email_services.email_client import EmailClient
from models import alert, invoice, organization, purchase_order, travel_bill  # noqa: F401
from models.base import Base, get_engine
from settings.config import Settings, get_settings
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(error_response(exc.message, exc.details)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        return JSONResponse(status_code=400, content=error_response(describe_errors(errors), errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_response("Internal server error."))


def create_app(
    settings: Optional[Settings] = None,
    *,
    po_store: Optional[ObjectStore] = None,
    invoice_store: Optional[ObjectStore] = None,
    travel_bill_store: Optional[ObjectStore] = None,
    email_client: Optional[EmailClient] = None,
    shopify_client: Optional[ShopifyAdminClient] = None,
) -> FastAPI:
    """
    Application factory to build a FastAPI app with all middlewares and routers.

    Collaborators default to the S3/SMTP/Shopify implementations and can be replaced by passing them in.
    """
    if settings is None:
        settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version="1.0.0",
    )
    app.dependency_overrides[get_settings] = lambda: settings

    app.state.po_store = po_store or S3ObjectStore(settings.PO_BUCKET, settings=settings)
    app.state.invoice_store = invoice_store or S3ObjectStore(settings.INVOICE_BUCKET, settings=settings)
    app.state.travel_bill_store = travel_bill_store or S3ObjectStore(settings.TRAVEL_BILL_BUCKET, settings=settings)
    app.state.email_client = email_client or EmailClient(settings)
    app.state.shopify_client = shopify_client or ShopifyAdminClient(settings)
    app.state.alert_notifier = AlertNotifier(app.state.email_client, settings)

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
        expose_headers=["Authorization"],
    )

    # Security headers middleware (helmet-like)
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response

    if settings.ENABLE_RATE_LIMITER:
        # Build a default limit string from settings, using common time units
        req = settings.RATE_LIMIT_REQUESTS
        win = settings.RATE_LIMIT_WINDOW_SECONDS
        units = {1: "second", 60: "minute", 3600: "hour", 86400: "day"}
        default_limit = f"{req}/{units[win]}" if win in units else f"{req} per {win} seconds"

        limiter = Limiter(
            key_func=get_remote_address,
            default_limits=[default_limit],
            storage_uri=settings.RATE_LIMIT_STORAGE_URI or None,
        )
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
        app.add_middleware(SlowAPIMiddleware)

    _register_exception_handlers(app)

    # Routers
    app.include_router(pos_router)
    app.include_router(alerts_router)
    app.include_router(invoices_router)
    app.include_router(travel_bills_router)
    app.include_router(storage_router)

    if settings.CREATE_TABLES_ON_STARTUP:
        # Local/dev only. Deployed databases are managed by Alembic migrations.
        @app.on_event("startup")
        async def on_startup():
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
