"""Proxy-Router stellt den Relay-Endpunkt zwischen Chat-Client und
Prediction-API bereit."""
import logging

from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.core.errors import MissingFieldError
from app.core.models import ClientConfig, ErrorResponse, RelayRequest, RelayResponse
from app.core.prediction import PredictionClient

router = APIRouter(prefix="/api", tags=["Proxy"])
logger = logging.getLogger(__name__)


def get_prediction_client(settings: Settings = Depends(get_settings)) -> PredictionClient:
    return PredictionClient(settings)


@router.post(
    "/proxy",
    response_model=RelayResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def proxy(body: RelayRequest, client: PredictionClient = Depends(get_prediction_client)):
    """Haupt-Endpunkt: leitet einen Chat-Turn an die Prediction-API weiter.

    Pipeline:
    1) Konfiguration prüfen (Endpunkt + Token), sonst 500.
    2) Pflichtfelder prüfen (question, overrideConfig.sessionId), sonst 400.
    3) Genau ein ausgehender POST, Antwort auf ``{"reply": ...}`` normalisiert.
    """
    client.ensure_configured()

    if not body.question or not body.question.strip():
        raise MissingFieldError("Question is required")

    override = body.override_config
    if override is None or not override.session_id:
        raise MissingFieldError("Session ID is required")

    reply = await client.predict(
        question=body.question,
        history=body.history,
        session_id=override.session_id,
        return_source_documents=override.return_source_documents,
    )
    return RelayResponse(reply=reply)


@router.get("/client-config", response_model=ClientConfig)
def client_config(settings: Settings = Depends(get_settings)):
    """Liefert die öffentlichen Werte für das Browser-Frontend (ohne Prediction-Token)."""
    return ClientConfig(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
        providers=settings.auth_providers,
    )
