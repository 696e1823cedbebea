"""Identity-Provider-Schnittstelle für den Chat-Client: Anmeldung, Abmeldung,
aktueller Nutzer und Auth-Statusänderungen. Der Client kennt nur die
abstrakte Klasse, nicht den konkreten Anbieter."""
import abc
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None


AuthCallback = Callable[[AuthEvent, Optional[User]], None]


class AuthError(Exception):
    """Anmeldung beim Identity Provider fehlgeschlagen."""


class IdentityProvider(abc.ABC):
    """Minimale Fähigkeiten, die der Chat-Client vom Identity Provider braucht."""

    def __init__(self) -> None:
        self._listeners: List[AuthCallback] = []

    @abc.abstractmethod
    async def get_user(self) -> Optional[User]:
        """Liefert den aktuell angemeldeten Nutzer oder ``None``."""

    @abc.abstractmethod
    async def sign_in(self, provider: str, **credentials) -> User:
        """Meldet einen Nutzer an und benachrichtigt alle Listener."""

    @abc.abstractmethod
    async def sign_out(self) -> None:
        """Meldet den Nutzer ab und benachrichtigt alle Listener."""

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Registriert einen Listener; der Rückgabewert hebt das Abo wieder auf."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: AuthEvent, user: Optional[User]) -> None:
        for listener in list(self._listeners):
            listener(event, user)


class InMemoryIdentityProvider(IdentityProvider):
    """Identity Provider ohne externen Dienst, für lokale Entwicklung und Tests.

    ``users`` mappt Anbieter-Kennungen (z.B. ``"github"``) oder E-Mail-Adressen
    auf bekannte Nutzer.
    """

    def __init__(self, users: Optional[Dict[str, User]] = None, current: Optional[User] = None) -> None:
        super().__init__()
        self.users = dict(users or {})
        self._current = current

    async def get_user(self) -> Optional[User]:
        return self._current

    async def sign_in(self, provider: str, **credentials) -> User:
        key = credentials.get("email") or provider
        user = self.users.get(key)
        if user is None:
            raise AuthError(f"Unknown user for provider '{provider}'")
        self._current = user
        self._notify(AuthEvent.SIGNED_IN, user)
        return user

    async def sign_out(self) -> None:
        self._current = None
        self._notify(AuthEvent.SIGNED_OUT, None)


class SupabaseIdentityProvider(IdentityProvider):
    """Spricht die GoTrue-REST-API eines Supabase-Projekts über httpx an.

    Passwort-Login läuft direkt über ``/auth/v1/token``; OAuth-Anbieter
    (Google, GitHub) brauchen einen Browser-Redirect, die URL dafür liefert
    ``authorize_url``.
    """

    def __init__(self, url: str, anon_key: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__()
        self.base_url = url.rstrip("/") + "/auth/v1"
        self.anon_key = anon_key
        self.transport = transport
        self.access_token: Optional[str] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"apikey": self.anon_key}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def authorize_url(self, provider: str, redirect_to: Optional[str] = None) -> str:
        params = {"provider": provider}
        if redirect_to:
            params["redirect_to"] = redirect_to
        return f"{self.base_url}/authorize?{urlencode(params)}"

    async def get_user(self) -> Optional[User]:
        if not self.access_token:
            return None
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/user", headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Supabase user lookup failed: {e!r}")
            return None
        if response.status_code == 401:
            # Abgelaufener Token zählt als abgemeldet.
            self.access_token = None
            return None
        if response.status_code >= 400:
            # Token bleibt erhalten, der nächste Aufruf kann es erneut versuchen.
            logger.error(f"Supabase user lookup failed: status={response.status_code}")
            return None
        return _user_from_payload(response.json())

    async def sign_in(self, provider: str, **credentials) -> User:
        """Passwort-Login (``provider="email"``) oder Übernahme eines Access-Tokens
        aus dem OAuth-Callback (``access_token=...``)."""
        if "access_token" in credentials:
            self.access_token = credentials["access_token"]
            user = await self.get_user()
            if user is None:
                raise AuthError("Access token rejected")
        elif provider == "email":
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/token",
                    params={"grant_type": "password"},
                    json={"email": credentials.get("email"), "password": credentials.get("password")},
                    headers=self._headers(),
                )
            if response.status_code >= 400:
                logger.warning(f"Supabase sign-in failed: {response.status_code}")
                raise AuthError("Invalid login credentials")
            data = response.json()
            self.access_token = data.get("access_token")
            user = _user_from_payload(data.get("user") or {})
        else:
            raise AuthError(f"Provider '{provider}' needs a browser redirect: {self.authorize_url(provider)}")

        self._notify(AuthEvent.SIGNED_IN, user)
        return user

    async def sign_out(self) -> None:
        if self.access_token:
            try:
                async with httpx.AsyncClient(transport=self.transport) as client:
                    await client.post(f"{self.base_url}/logout", headers=self._headers())
            except httpx.HTTPError as e:
                logger.error(f"Supabase logout failed: {e}")
        self.access_token = None
        self._notify(AuthEvent.SIGNED_OUT, None)


def _user_from_payload(payload: dict) -> User:
    if not payload.get("id"):
        raise AuthError("Identity provider returned no user id")
    return User(id=payload["id"], email=payload.get("email"))
