"""Fehlerklassen des Relays. Jede Klasse trägt die generische Meldung für den
Browser und den HTTP-Status; Details landen nur im Server-Log."""
from typing import Optional


class RelayError(Exception):
    """Basisklasse für alle Fehler, die als ``{"error": ...}`` beim Client ankommen."""

    status_code = 500
    message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(RelayError):
    """Endpunkt oder Token der Prediction-API fehlen."""

    message = "Server configuration error"


class MissingFieldError(RelayError):
    """Pflichtfeld im Request fehlt (question, overrideConfig.sessionId)."""

    status_code = 400
    message = "Invalid request body"


class UpstreamError(RelayError):
    """Prediction-API nicht erreichbar oder mit Fehlerstatus."""

    status_code = 502
    message = "Error from prediction API"


class InvalidResponseError(RelayError):
    """Antwort der Prediction-API enthält kein Antwortfeld."""

    message = "Invalid response format from API"
