from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from genspecs.api import credentials, generate, generation, websocket
from genspecs.core.credentials import CredentialStore
from genspecs.core.event_bus import EventBus
from genspecs.core.pipeline import GenerationPipeline
from genspecs.llm.adapter import get_client_factory
from genspecs.llm.key_validator import MockKeyValidator, OpenRouterKeyValidator
from genspecs.llm.retry import RetryPolicy
from genspecs.memory.db import close_db, init_db
from genspecs.memory.kv_store import KeyValueStore
from genspecs.settings import get_settings
from genspecs.utils.encryption import SecretCipher
from genspecs.utils.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)
configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings = get_settings()
    await init_db()

    storage = KeyValueStore()
    cipher = SecretCipher(settings.encryption_passphrase, iterations=settings.encryption_iterations)
    if settings.llm_mode == "mock":
        validator = MockKeyValidator()
    else:
        validator = OpenRouterKeyValidator(
            settings.openrouter_base_url, timeout=settings.validation_timeout_seconds
        )

    creds = CredentialStore(storage, cipher, validator)
    try:
        await creds.initialize()
    except Exception as e:
        LOGGER.error("Failed to restore API key: %s", e)

    event_bus = EventBus()
    pipeline = GenerationPipeline(
        storage,
        creds,
        get_client_factory(settings),
        policy=RetryPolicy.from_settings(settings),
        auto_accept=settings.auto_accept,
        event_bus=event_bus,
    )
    try:
        await pipeline.load()
    except Exception as e:
        LOGGER.error("Failed to recover generation state: %s", e)

    app.state.credentials = creds
    app.state.event_bus = event_bus
    app.state.pipeline = pipeline
    LOGGER.info("GenSpecs ready (llm_mode=%s, model=%s)", settings.llm_mode, settings.openrouter_model)

    yield

    await pipeline.shutdown()
    await close_db()


app = FastAPI(
    title="GenSpecs Backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def check_api_key(request: Request, call_next):
    settings = get_settings()
    # Only enforce if key is set and path starts with /api (exclude docs/websocket)
    if settings.admin_api_key and request.url.path.startswith("/api"):
        api_key = request.headers.get("X-API-Key")
        if api_key != settings.admin_api_key:
            # Allow OPTIONS for CORS
            if request.method == "OPTIONS":
                return await call_next(request)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API Key"},
            )
    return await call_next(request)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    LOGGER.error("Global exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(generate.router)
app.include_router(generation.router)
app.include_router(credentials.router)
app.include_router(websocket.router)


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("genspecs.main:app", host=settings.host, port=settings.port)
