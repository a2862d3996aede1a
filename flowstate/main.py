"""
FastAPI application: lifespan-owned services, middleware and routers.
"""

from contextlib import asynccontextmanager
from time import perf_counter

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from ulid import ULID

from flowstate.api.heal import router as heal_router
from flowstate.api.usage import router as usage_router
from flowstate.core.config import settings
from flowstate.core.errors import BudgetExceededError
from flowstate.core.log import logger
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.local import LocalAnalyzer
from flowstate.diagnosis.visual import InspectionService
from flowstate.fixes.assets import AssetService
from flowstate.fixes.code import PatchService
from flowstate.orchestration import HealOrchestrator
from flowstate.schema.asset import ErrorType
from flowstate.schema.status import HealthCheckResponse, IndexResponse, ModelNames

exec_id = ULID()
start_time = perf_counter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the usage ledger and the services that share it."""
    logger.info(
        f"{settings.PROJECT_NAME} v{settings.PROJECT_VERSION} starting (exec {exec_id}, debug={settings.DEBUG}) "
        f"on {settings.APP_HOST}:{settings.APP_PORT}"
    )
    logger.info(
        f"Models: inspector={settings.INSPECTOR_MODEL} surgeon={settings.SURGEON_MODEL} artist={settings.ARTIST_MODEL}"
    )
    if not settings.GOOGLE_API_KEY:
        logger.warning("FLOWSTATE_GOOGLE_API_KEY is not set; model calls will fail")
    if not settings.APP_AUTH_KEY:
        logger.warning("FLOWSTATE_APP_AUTH_KEY is not set; the API is open")

    ledger = UsageLedger(settings.USAGE_FILE)
    app.state.ledger = ledger
    app.state.ai_client = None
    app.state.analyzer = LocalAnalyzer()
    app.state.inspector = InspectionService(ledger=ledger)
    app.state.surgeon = PatchService(ledger=ledger)
    app.state.artist = AssetService(ledger=ledger)
    app.state.orchestrator = HealOrchestrator(
        app.state.inspector,
        app.state.surgeon,
        analyzer=app.state.analyzer,
    )
    logger.info(f"Usage ledger: {ledger.path} (budget ${ledger.summary().session.budget:.2f})")

    try:
        yield
    finally:
        logger.info(f"Shutdown: {ledger.summary().totals.api_calls} model call(s) this session")


app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    docs_url="/docs",
    redoc_url=None,
)

app.add_middleware(
    CorrelationIdMiddleware,
    generator=lambda: str(ULID()),
    validator=None,
)


QUIET_PATHS = frozenset({"/favicon.ico", "/health"})


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log one line per request with its status and latency."""
    started = perf_counter()
    response = await call_next(request)
    elapsed_ms = (perf_counter() - started) * 1000
    response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"
    if request.url.path not in QUIET_PATHS:
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.1f}ms")
    return response


@app.exception_handler(BudgetExceededError)
async def budget_exceeded_handler(request: Request, exc: BudgetExceededError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={
            "success": False,
            "error": str(exc),
            "error_type": ErrorType.budget,
            "budget_remaining": exc.remaining,
        },
    )


app.include_router(heal_router)
app.include_router(usage_router)


@app.get("/health", include_in_schema=False)
async def health(request: Request) -> HealthCheckResponse:
    return HealthCheckResponse(
        version=settings.PROJECT_VERSION,
        uptime=perf_counter() - start_time,
        exec_id=exec_id,
        ai_configured=bool(settings.GOOGLE_API_KEY),
        budget_remaining=request.app.state.ledger.check_budget(0).remaining,
        models=ModelNames(
            inspector=settings.INSPECTOR_MODEL,
            surgeon=settings.SURGEON_MODEL,
            artist=settings.ARTIST_MODEL,
            stylist=settings.STYLIST_MODEL,
        ),
    )


@app.get("/", include_in_schema=False)
async def index() -> IndexResponse:
    return IndexResponse()
