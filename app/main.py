"""FastAPI-Einstiegspunkt für den AI Agent Chatbot (Relay + Test-Frontend)."""
import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.errors import MissingFieldError, RelayError
from app.core.logging_setup import setup_logging
from app.routers import proxy as proxy_router

STATIC_DIR = Path(__file__).parent / "static"

logger = logging.getLogger(__name__)

# Initialisierung der App
app = FastAPI(
    title="AI Agent Chatbot",
    version="1.0.0",
    description="Relay between the chat frontend and the hosted prediction API.",
)

# Setup Logging (File + Console)
setup_logging(settings.log_level, settings.log_file or None)

# Mount static files for the chat frontend
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request body on {request.url.path}: {exc.errors()}")
    error = MissingFieldError()
    return JSONResponse(status_code=error.status_code, content={"error": error.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Error in API route {request.url.path}")
    return JSONResponse(status_code=500, content={"error": RelayError.message})


@app.get("/", include_in_schema=False)
async def get_chat():
    return FileResponse(STATIC_DIR / "chat.html")


@app.get("/test-chat", include_in_schema=False)
async def get_test_chat():
    return FileResponse(STATIC_DIR / "chat.html")


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


@app.on_event("startup")
def startup_event() -> None:
    """Prüft beim Start, ob die Prediction-API konfiguriert ist.

    Fehlende Werte sind kein Startabbruch: der Relay meldet sie pro Request
    als Konfigurationsfehler.
    """
    if settings.prediction_configured:
        logger.info("🚀 AI Agent Chatbot relay is initialised.")
    else:
        logger.warning("⚠️ Prediction API endpoint or token missing, /api/proxy will answer 500.")


# Router registrieren
app.include_router(proxy_router.router)


def run() -> None:
    """Startet den Relay mit uvicorn auf ``SERVICE_PORT``."""
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)


if __name__ == "__main__":
    run()
