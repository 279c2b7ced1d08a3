"""Per-request session records and the registry that owns them.

Everything that belongs to one request (keys, negotiated secret, credential
constraints, relay connection, callbacks and lifecycle state) lives on a single
:class:`Session`, and the :class:`SessionRegistry` is the only index of live
sessions.  Tearing a session down therefore removes all of its state at once.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .config import ClientConfig, ConfigurationError
from .constants import TOPIC_BYTES
from .credentials import CredentialConfig
from .encryption import EncryptionGateway, KeyPair
from .errors import ZkPassportError
from .events import EventDispatcher
from .states import ProtocolError, SessionEvent, SessionState, next_state
from .transport import Transport, TransportFactory, TransportHandlers, open_websocket_transport

logger = logging.getLogger(__name__)


class SessionNotFound(ZkPassportError, KeyError):
    """Raised when a caller refers to a request that is not (or no longer) live."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_topic() -> str:
    return secrets.token_hex(TOPIC_BYTES)


@dataclass
class Session:
    """State for one outstanding credential request."""

    topic: str
    key_pair: Optional[KeyPair]
    dispatcher: EventDispatcher
    config: Dict[str, CredentialConfig] = field(default_factory=dict)
    state: SessionState = SessionState.CREATED
    shared_secret: Optional[bytes] = field(default=None, repr=False)
    transport: Optional[Transport] = field(default=None, repr=False)
    aml_check: bool = False
    aml_country: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_cancelled(self) -> bool:
        return self.state is SessionState.CANCELLED

    def set_shared_secret(self, shared_secret: bytes) -> None:
        if self.shared_secret is not None:
            raise ProtocolError(f"Shared secret for topic {self.topic} is already set")
        self.shared_secret = shared_secret

    def advance(self, event: SessionEvent) -> SessionState:
        previous = self.state
        self.state = next_state(self.state, event)
        logger.debug(
            "Session %s moved %s -> %s on %s",
            self.topic,
            previous.name,
            self.state.name,
            event.name,
        )
        return self.state

    def purge(self) -> None:
        """Drop key material, constraints and callbacks."""

        self.advance(SessionEvent.CANCEL)
        self.key_pair = None
        self.shared_secret = None
        self.config = {}
        self.aml_check = False
        self.aml_country = None
        self.dispatcher.clear()


class SessionRegistry:
    """Arena of live sessions keyed by topic."""

    def __init__(
        self,
        gateway: EncryptionGateway,
        config: ClientConfig,
        transport_factory: TransportFactory = open_websocket_transport,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self.transport_factory = transport_factory
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(
        self,
        topic_override: Optional[str] = None,
        key_pair_override: Optional[KeyPair] = None,
        *,
        handlers_for: Callable[[Session], TransportHandlers],
    ) -> Session:
        """Register a new session and open its relay connection.

        ``handlers_for`` receives the new session and returns the callbacks the
        transport should feed; normally :meth:`ProtocolHandler.handlers_for`.
        """

        key_pair = key_pair_override or self.gateway.generate_key_pair()
        with self._lock:
            if topic_override is not None:
                if not topic_override:
                    raise ConfigurationError("Topic override must not be empty")
                if topic_override in self._sessions:
                    raise ConfigurationError(f"Topic {topic_override!r} is already in use")
                topic = topic_override
            else:
                topic = generate_topic()
                while topic in self._sessions:
                    topic = generate_topic()
            session = Session(topic=topic, key_pair=key_pair, dispatcher=EventDispatcher(topic))
            self._sessions[topic] = session

        try:
            session.transport = self.transport_factory(
                self.config.bridge_url_for(topic),
                self.config.domain,
                handlers_for(session),
            )
        except Exception:
            with self._lock:
                self._sessions.pop(topic, None)
            raise
        logger.info("Created request session", extra={"topic": topic})
        return session

    def get(self, topic: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(topic)

    def topics(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def destroy(self, topic: str) -> bool:
        """Close and forget *topic*; returns ``False`` when it was not live."""

        with self._lock:
            session = self._sessions.pop(topic, None)
        if session is None:
            return False

        transport, session.transport = session.transport, None
        session.purge()
        if transport is not None:
            try:
                transport.close()
            except Exception:
                logger.warning("Error closing transport", exc_info=True, extra={"topic": topic})
        logger.info("Destroyed request session", extra={"topic": topic})
        return True

    def close_all(self) -> None:
        for topic in self.topics():
            self.destroy(topic)

    def __contains__(self, topic: object) -> bool:
        with self._lock:
            return topic in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
