"""Primary FastAPI application for the Piper backend.

Exposes the model and character records the Piper IA app manages plus the
``/api/chat`` relay that forwards a message to the model's LLM provider.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .errors import GatewayError
from .routers import chat, models, personajes
from .storage import public_dir
from .store import get_store

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Respect test overrides so startup never touches the real backend there
    store_factory = app.dependency_overrides.get(get_store, get_store)
    store = store_factory()
    logger.info("[Piper] Store ready: %s", type(store).__name__)
    yield


app = FastAPI(title="Piper Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > settings.max_body_bytes:
        return JSONResponse(
            status_code=413,
            content={"success": False, "error": "Cuerpo de la petición demasiado grande"},
        )
    return await call_next(request)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Petición inválida")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


# Locally stored avatars (only used when Supabase is not configured)
_public_dir = public_dir()
_public_dir.mkdir(parents=True, exist_ok=True)
app.mount("/public", StaticFiles(directory=str(_public_dir)), name="public")

app.include_router(models.router)
app.include_router(personajes.router)
app.include_router(chat.router)


@app.get("/")
async def root():
    """Basic sanity check endpoint for the API root."""
    return {"status": "ok", "message": "Piper Backend funcionando correctamente"}


@app.get("/health")
async def health_check():
    """Simple endpoint to confirm the service is running."""
    return {"status": "ok"}
