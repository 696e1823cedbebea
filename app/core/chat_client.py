"""Chat-Client: hält das Transcript im Speicher, verwaltet die Session-ID pro
Anmeldung und ruft für jede Nutzernachricht den Relay-Endpunkt auf."""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.identity import AuthEvent, IdentityProvider, User

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error. Please try again."

# Rollennamen, die die Prediction-API im Verlauf erwartet.
ROLE_BY_SENDER = {"user": "userMessage", "bot": "apiMessage"}


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class ChatState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class ChatView(str, Enum):
    SIGN_IN = "sign_in"
    CHAT = "chat"


@dataclass(frozen=True)
class ChatMessage:
    text: str
    sender: Sender


def new_session_id(user: User, token_factory: Callable[[], uuid.UUID] = uuid.uuid4) -> str:
    """Session-ID aus Nutzer-ID und frischem Token, z.B. ``u1-0b6f...``."""
    return f"{user.id}-{token_factory()}"


class ChatClient:
    """Zustandsautomat des Chat-Frontends (Unauthenticated/Authenticated).

    Der Client hängt nur von ``IdentityProvider`` ab. ``http_client`` wird
    für eingebettete Nutzung übergeben; sonst legt der Client einen eigenen
    an, der relativ zu ``base_url`` (Standard: lokaler Relay auf
    ``SERVICE_PORT``) sendet. ``transport`` ersetzt dabei den Netzwerkweg,
    z.B. durch ``httpx.ASGITransport``.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        relay_url: str = "/api/proxy",
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        return_source_documents: bool = True,
        token_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ) -> None:
        self.identity = identity
        self.relay_url = relay_url
        self.base_url = base_url or f"http://localhost:{settings.service_port}"
        self.transport = transport
        self.return_source_documents = return_source_documents
        self.token_factory = token_factory
        self._http = http_client
        self._owns_http = http_client is None

        self.user: Optional[User] = None
        self.session_id: Optional[str] = None
        self.input_text = ""
        self.is_typing = False
        self._messages: List[ChatMessage] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> ChatState:
        return ChatState.AUTHENTICATED if self.user is not None else ChatState.UNAUTHENTICATED

    @property
    def view(self) -> ChatView:
        return ChatView.CHAT if self.state is ChatState.AUTHENTICATED else ChatView.SIGN_IN

    @property
    def transcript(self) -> List[ChatMessage]:
        """Kopie des Transcripts; ohne Anmeldung immer leer."""
        if self.state is ChatState.UNAUTHENTICATED:
            return []
        return list(self._messages)

    async def start(self) -> None:
        """Prüft den aktuellen Nutzer und abonniert Auth-Statusänderungen."""
        user = await self.identity.get_user()
        self._handle_auth_change(AuthEvent.INITIAL_SESSION, user)
        self._unsubscribe = self.identity.on_auth_state_change(self._handle_auth_change)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def sign_in(self, provider: str, **credentials) -> User:
        return await self.identity.sign_in(provider, **credentials)

    async def sign_out(self) -> None:
        await self.identity.sign_out()

    def _handle_auth_change(self, event: AuthEvent, user: Optional[User]) -> None:
        self.user = user
        if user is not None:
            self.session_id = new_session_id(user, self.token_factory)
            logger.info(f"Auth state {event.value}: new session for user {user.id}")
        else:
            if self.session_id is not None:
                logger.info(f"Auth state {event.value}: session cleared")
            self.session_id = None
            self._messages = []
            self.input_text = ""

    def history(self) -> List[Dict[str, str]]:
        """Projiziert das Transcript auf rollenbasierte Turns für die Prediction-API."""
        return [
            {"role": ROLE_BY_SENDER[message.sender.value], "content": message.text}
            for message in self._messages
        ]

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, transport=self.transport)
        return self._http

    async def send_message(self, text: Optional[str] = None) -> Optional[ChatMessage]:
        """Sendet die aktuelle Eingabe (oder ``text``) an den Relay.

        Gibt die angehängte Bot-Nachricht zurück, bzw. ``None`` wenn nichts
        gesendet wurde (leere Eingabe, keine Session, Anfrage läuft noch).
        """
        if text is not None:
            self.input_text = text
        question = self.input_text
        if question.strip() == "":
            return None
        if not self.session_id:
            logger.error("Session ID is missing")
            return None
        if self.is_typing:
            logger.info("Send ignored, previous message still in flight")
            return None

        self._messages.append(ChatMessage(text=question, sender=Sender.USER))
        self.input_text = ""
        self.is_typing = True
        session_id = self.session_id

        try:
            response = await self._client().post(
                self.relay_url,
                json={
                    "question": question,
                    "history": self.history(),
                    "overrideConfig": {
                        "sessionId": session_id,
                        "returnSourceDocuments": self.return_source_documents,
                    },
                },
            )
            response.raise_for_status()
            reply = response.json()["reply"]
            bot_message = ChatMessage(text=reply, sender=Sender.BOT)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error: {e!r}")
            bot_message = ChatMessage(text=ERROR_REPLY, sender=Sender.BOT)
        finally:
            self.is_typing = False

        # Nach einer Abmeldung während der Anfrage gehört die Antwort zu keiner Session mehr.
        if self.session_id != session_id:
            return None
        self._messages.append(bot_message)
        return bot_message
