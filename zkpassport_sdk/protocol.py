"""Inbound bridge message handling.

The handler turns each message the relay delivers for a topic into a state
transition on that topic's :class:`~zkpassport_sdk.session.Session`, performing
the side effects that go with it: deriving the shared secret, replying with the
encrypted ``hello`` and notifying subscribers.

Message handling never raises back into the transport.  Malformed envelopes and
messages that do not fit the current state are logged as protocol errors,
undecryptable payloads as crypto errors, and messages for topics that are no
longer registered are dropped quietly.  In all of these cases the session is
left exactly as it was.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .encryption import CryptoError, EncryptionGateway, parse_public_key_hex
from .events import EventKind
from .json_rpc import (
    ENCRYPTED_MESSAGE_METHOD,
    HANDSHAKE_METHOD,
    JsonRpcRequest,
    create_encrypted_json_rpc_request,
    decrypt_json_rpc_request,
    parse_json_rpc_request,
)
from .session import Session, SessionRegistry
from .states import ProtocolError, SessionEvent, SessionState, next_state
from .transport import TransportError, TransportHandlers

logger = logging.getLogger(__name__)

HELLO_METHOD = "hello"

# inner method -> (state machine event, subscriber notification)
_INNER_METHODS: Dict[str, tuple[SessionEvent, EventKind]] = {
    "accept": (SessionEvent.ACCEPT, EventKind.GENERATING_PROOF),
    "reject": (SessionEvent.REJECT, EventKind.REJECT),
    "done": (SessionEvent.DONE, EventKind.PROOF_GENERATED),
    "error": (SessionEvent.ERROR, EventKind.ERROR),
}


class ProtocolHandler:
    """Drive sessions from the messages their relay connections deliver."""

    def __init__(self, registry: SessionRegistry, gateway: EncryptionGateway) -> None:
        self.registry = registry
        self.gateway = gateway

    def handlers_for(self, session: Session) -> TransportHandlers:
        """Transport callbacks routing everything for *session* into this handler.

        The callbacks stay bound to that session object, so a connection that
        outlives its session never feeds a later session registered under the
        same topic.
        """

        topic = session.topic
        return TransportHandlers(
            on_message=lambda raw: self.handle_message(topic, raw, owner=session),
            on_open=lambda: self.handle_open(topic, owner=session),
            on_error=lambda exc: self.handle_transport_error(topic, exc, owner=session),
        )

    def _session(self, topic: str, owner: Optional[Session] = None) -> Optional[Session]:
        session = self.registry.get(topic)
        if session is None or session.is_cancelled:
            logger.debug("Dropping message for unknown topic %s", topic)
            return None
        if owner is not None and session is not owner:
            logger.debug("Dropping message from a stale connection for topic %s", topic)
            return None
        return session

    def handle_open(self, topic: str, *, owner: Optional[Session] = None) -> None:
        session = self._session(topic, owner)
        if session is None:
            return
        if session.state is SessionState.CREATED:
            session.advance(SessionEvent.TRANSPORT_OPEN)

    def handle_transport_error(self, topic: str, exc: Exception, *, owner: Optional[Session] = None) -> None:
        session = self._session(topic, owner)
        if session is None:
            return
        if not session.dispatcher.has_callbacks(EventKind.ERROR):
            logger.error("Bridge transport error: %s", exc, extra={"topic": topic})
            return
        logger.warning("Bridge transport error: %s", exc, extra={"topic": topic})
        if not session.state.is_terminal:
            session.advance(SessionEvent.ERROR)
        session.dispatcher.fire(EventKind.ERROR, str(exc))

    def handle_message(
        self,
        topic: str,
        raw: str | bytes,
        *,
        owner: Optional[Session] = None,
    ) -> Optional[SessionState]:
        """Process one inbound frame; return the session state afterwards.

        ``None`` means the frame was dropped because the topic is not live, or
        because *owner* is given and is no longer the session registered for it.
        """

        session = self._session(topic, owner)
        if session is None:
            return None
        logger.debug("Received message", extra={"topic": topic})
        try:
            request = parse_json_rpc_request(raw)
            if request.method == HANDSHAKE_METHOD:
                self._handle_handshake(session, request)
            elif request.method == ENCRYPTED_MESSAGE_METHOD:
                self._handle_encrypted_message(session, request)
            else:
                raise ProtocolError(f"Unexpected method {request.method!r}")
        except CryptoError as exc:
            logger.error("Cryptographic failure handling message: %s", exc, extra={"topic": topic})
        except ProtocolError as exc:
            logger.warning("Ignoring message: %s", exc, extra={"topic": topic})
        except TransportError as exc:
            logger.error("Failed to reply over the bridge: %s", exc, extra={"topic": topic})
        except Exception:
            logger.exception("Unexpected failure handling message", extra={"topic": topic})
        return session.state

    def _handle_handshake(self, session: Session, request: JsonRpcRequest) -> None:
        if session.shared_secret is not None:
            raise ProtocolError("Repeated handshake ignored; shared secret is already set")
        next_state(session.state, SessionEvent.HANDSHAKE)

        pubkey = request.param("pubkey")
        if not isinstance(pubkey, str):
            raise ProtocolError("handshake is missing its pubkey")
        if session.key_pair is None:
            raise ProtocolError("Session has no key pair")
        peer_public_key = parse_public_key_hex(pubkey)
        shared_secret = self.gateway.derive_shared_secret(session.key_pair.private_key, peer_public_key)
        if session.is_cancelled:
            return
        transport = session.transport
        if transport is None:
            raise TransportError("Handshake arrived before the bridge connection was registered")

        session.set_shared_secret(shared_secret)
        session.advance(SessionEvent.HANDSHAKE)
        logger.info("Handshake completed", extra={"topic": session.topic})

        hello = create_encrypted_json_rpc_request(HELLO_METHOD, None, shared_secret, session.topic, self.gateway)
        transport.send(hello.to_json())
        session.dispatcher.fire(EventKind.QR_CODE_SCANNED)

    def _handle_encrypted_message(self, session: Session, outer: JsonRpcRequest) -> None:
        inner = decrypt_json_rpc_request(outer, session.shared_secret, session.topic, self.gateway)
        if session.is_cancelled:
            return
        logger.debug("Received encrypted message %s", inner.method, extra={"topic": session.topic})

        mapped = _INNER_METHODS.get(inner.method)
        if mapped is None:
            logger.debug("Ignoring unknown inner method %s", inner.method, extra={"topic": session.topic})
            return
        event, kind = mapped
        session.advance(event)
        session.dispatcher.fire(kind, *self._callback_args(session, inner))

    @staticmethod
    def _callback_args(session: Session, inner: JsonRpcRequest) -> tuple[Any, ...]:
        if inner.method == "accept":
            return (session.topic,)
        if inner.method == "done":
            return (inner.param("proof"),)
        if inner.method == "error":
            return (inner.param("error"),)
        return ()
