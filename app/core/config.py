"""Konfigurationsmodul für den AI Agent Chatbot: lädt Prediction-API,
Supabase-Zugang und Logging-Optionen via Pydantic-Settings."""
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Hält alle konfigurierbaren Werte, die der Relay zur Laufzeit
    benötigt (Prediction-Endpunkt, Token, Identity Provider, Ports)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Ältere Deployments nutzen noch die ZEP_*-Variablen.
    prediction_api_endpoint: str = Field(
        "", validation_alias=AliasChoices("PREDICTION_API_ENDPOINT", "ZEP_API_ENDPOINT")
    )
    prediction_api_token: str = Field(
        "", validation_alias=AliasChoices("PREDICTION_API_TOKEN", "ZEP_API_TOKEN")
    )  # Muss per Env gesetzt werden.
    prediction_api_timeout: float = Field(60.0, alias="PREDICTION_API_TIMEOUT")

    supabase_url: str = Field("", alias="SUPABASE_URL")
    supabase_anon_key: str = Field("", alias="SUPABASE_ANON_KEY")
    auth_providers: List[str] = ["google", "github"]

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str = Field("chat_debug.log", alias="LOG_FILE")
    service_port: int = Field(1985, alias="SERVICE_PORT")

    @property
    def prediction_configured(self) -> bool:
        return bool(self.prediction_api_endpoint and self.prediction_api_token)


def get_settings() -> Settings:
    """FastAPI-Dependency: liest die Umgebung pro Request neu, damit fehlende
    Werte erst beim Aufruf als Konfigurationsfehler auffallen."""
    return Settings()


settings = Settings()
