"""API-Modelle für den Relay: eingehende Chat-Turns mit Verlauf und die
normalisierte Antwort an den Browser."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HistoryTurn(BaseModel):
    """Ein Eintrag des Verlaufs, z.B. ``{"role": "userMessage", "content": "Hi"}``."""

    role: str
    content: str


class OverrideConfig(BaseModel):
    """Sitzungsbezogene Overrides, die unverändert an die Prediction-API gehen."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    return_source_documents: bool = Field(False, alias="returnSourceDocuments")


class RelayRequest(BaseModel):
    """Eingehende Anfrage des Chat-Clients. Pflichtfelder werden im Router
    geprüft, damit fehlende Werte als 400 statt 422 gemeldet werden."""

    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = None
    history: List[HistoryTurn] = Field(default_factory=list)
    override_config: Optional[OverrideConfig] = Field(None, alias="overrideConfig")


class RelayResponse(BaseModel):
    reply: str


class ErrorResponse(BaseModel):
    error: str


class ClientConfig(BaseModel):
    """Öffentliche Konfiguration für das Browser-Frontend (keine Secrets)."""

    supabase_url: str = Field(alias="supabaseUrl")
    supabase_anon_key: str = Field(alias="supabaseAnonKey")
    providers: List[str]

    model_config = ConfigDict(populate_by_name=True)
