"""Leitet Chat-Turns an die externe Prediction-API weiter (Bearer-Token,
JSON) und normalisiert deren Antwort auf ein einzelnes Antwortfeld."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import Settings
from app.core.errors import ConfigurationError, InvalidResponseError, UpstreamError
from app.core.models import HistoryTurn

logger = logging.getLogger(__name__)

# Reihenfolge ist relevant: neuere Upstream-Versionen liefern "text",
# ältere "reply".
REPLY_FIELDS = ("text", "reply")


def extract_reply(data: Any) -> str:
    """Gibt den ersten nicht-leeren String aus ``REPLY_FIELDS`` zurück."""
    if not isinstance(data, dict):
        raise InvalidResponseError()
    for field in REPLY_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and value:
            return value
    raise InvalidResponseError()


def build_payload(
    question: str,
    history: List[HistoryTurn],
    session_id: str,
    return_source_documents: bool = False,
) -> Dict[str, Any]:
    return {
        "question": question,
        "history": [turn.model_dump() for turn in history],
        "overrideConfig": {
            "sessionId": session_id,
            "returnSourceDocuments": return_source_documents,
        },
    }


class PredictionClient:
    """Kapselt den einen ausgehenden POST pro Chat-Turn.

    Kein geteilter Zustand: jeder Aufruf öffnet einen eigenen
    ``httpx.AsyncClient``. ``transport`` erlaubt Tests, die
    Upstream-API über ``httpx.MockTransport`` zu ersetzen.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.endpoint = settings.prediction_api_endpoint
        self.token = settings.prediction_api_token
        self.timeout = settings.prediction_api_timeout
        self.transport = transport

    def ensure_configured(self) -> None:
        if not self.endpoint or not self.token:
            logger.error(
                "Missing API configuration: endpoint=%s token=%s",
                bool(self.endpoint),
                bool(self.token),
            )
            raise ConfigurationError()

    async def predict(
        self,
        question: str,
        history: List[HistoryTurn],
        session_id: str,
        return_source_documents: bool = False,
    ) -> str:
        """Sendet den Turn an die Prediction-API und liefert die Antwort als Text.

        Ablauf:
        - POST mit ``{question, history, overrideConfig}`` und Bearer-Header.
        - Transportfehler -> ``UpstreamError`` (502).
        - Fehlerstatus 4xx/5xx -> ``UpstreamError`` mit durchgereichtem Status,
          der Upstream-Body wird nur geloggt.
        - Antwort ohne ``text``/``reply`` -> ``InvalidResponseError``.
        """
        self.ensure_configured()
        payload = build_payload(question, history, session_id, return_source_documents)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

        logger.info(f"Prediction request [Session {session_id}]: {len(history)} history turns")
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout, follow_redirects=True
            ) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(f"Prediction API unreachable [Session {session_id}]: {exc!r}")
            raise UpstreamError() from exc

        if not response.is_success:
            logger.error(
                "API error response: status=%s reason=%s body=%s",
                response.status_code,
                response.reason_phrase,
                response.text,
            )
            status_code = response.status_code if response.status_code >= 400 else 502
            raise UpstreamError(status_code=status_code)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error(f"Prediction API returned non-JSON body: {response.text[:500]}")
            raise InvalidResponseError() from exc

        try:
            reply = extract_reply(data)
        except InvalidResponseError:
            logger.error(f"Invalid API response format: {data}")
            raise

        logger.info(f"Prediction response [Session {session_id}]: {len(reply)} chars")
        return reply
