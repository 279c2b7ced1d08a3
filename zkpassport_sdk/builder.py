"""Fluent construction of a credential request and the descriptor it produces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar
from urllib.parse import urlencode

from .config import ClientConfig, ConfigurationError
from .credentials import (
    CredentialConfig,
    check_range,
    check_value,
    check_values,
    credential_kind,
    encode_config,
    require_ordered,
)
from .events import EventDispatcher, EventKind
from .session import Session, SessionNotFound

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def build_request_url(config: ClientConfig, topic: str, encoded_config: str, public_key_hex: str) -> str:
    query = urlencode({"d": config.domain, "t": topic, "c": encoded_config, "p": public_key_hex})
    return f"{config.request_url}?{query}"


def request_url_for(config: ClientConfig, session: Session) -> str:
    """URL for the session's current constraints."""

    if session.key_pair is None:
        raise SessionNotFound(f"Request {session.topic} has been cancelled")
    return build_request_url(config, session.topic, encode_config(session.config), session.key_pair.public_key_hex)


@dataclass(frozen=True)
class RequestDescriptor:
    """Shareable result of :meth:`CredentialConfigBuilder.done`.

    ``url`` is what the wallet opens (typically rendered as a QR code).  The
    ``on_*`` methods register callbacks for this request only and return the
    callback, so they also work as decorators.
    """

    url: str
    request_id: str
    dispatcher: EventDispatcher = field(repr=False, compare=False)
    aml_check: bool = False
    aml_country: Optional[str] = None

    def _subscribe(self, kind: EventKind, callback: F) -> F:
        self.dispatcher.register(kind, callback)
        return callback

    def on_qr_code_scanned(self, callback: F) -> F:
        return self._subscribe(EventKind.QR_CODE_SCANNED, callback)

    def on_generating_proof(self, callback: F) -> F:
        return self._subscribe(EventKind.GENERATING_PROOF, callback)

    def on_proof_generated(self, callback: F) -> F:
        return self._subscribe(EventKind.PROOF_GENERATED, callback)

    def on_reject(self, callback: F) -> F:
        return self._subscribe(EventKind.REJECT, callback)

    def on_error(self, callback: F) -> F:
        return self._subscribe(EventKind.ERROR, callback)


class CredentialConfigBuilder:
    """Chainable accumulator of credential constraints for one session.

    Every predicate call validates the credential and value kinds, merges the
    predicate into the session's entry for that credential (replacing an earlier
    predicate of the same kind) and returns the builder.
    """

    def __init__(self, session: Session, client_config: ClientConfig) -> None:
        self.session = session
        self.client_config = client_config

    @property
    def topic(self) -> str:
        return self.session.topic

    def _live_session(self) -> Session:
        if self.session.is_cancelled:
            raise SessionNotFound(f"Request {self.session.topic} has been cancelled")
        return self.session

    def _merge(self, key: str, predicate: str, value: Any) -> "CredentialConfigBuilder":
        session = self._live_session()
        current = session.config.get(key, CredentialConfig())
        session.config[key] = current.with_predicate(predicate, value)
        return self

    def eq(self, key: str, value: Any) -> "CredentialConfigBuilder":
        kind = credential_kind(key)
        return self._merge(key, "eq", check_value(key, kind, value))

    def in_(self, key: str, values: Sequence[Any]) -> "CredentialConfigBuilder":
        kind = credential_kind(key)
        return self._merge(key, "in", check_values(key, kind, values))

    def out(self, key: str, values: Sequence[Any]) -> "CredentialConfigBuilder":
        kind = credential_kind(key)
        return self._merge(key, "out", check_values(key, kind, values))

    def _ordered(self, predicate: str, key: str, value: Any) -> "CredentialConfigBuilder":
        kind = require_ordered(key, predicate)
        return self._merge(key, predicate, check_value(key, kind, value))

    def gte(self, key: str, value: Any) -> "CredentialConfigBuilder":
        return self._ordered("gte", key, value)

    def gt(self, key: str, value: Any) -> "CredentialConfigBuilder":
        return self._ordered("gt", key, value)

    def lte(self, key: str, value: Any) -> "CredentialConfigBuilder":
        return self._ordered("lte", key, value)

    def lt(self, key: str, value: Any) -> "CredentialConfigBuilder":
        return self._ordered("lt", key, value)

    def range(self, key: str, start: Any, end: Any) -> "CredentialConfigBuilder":
        kind = require_ordered(key, "range")
        start = check_value(key, kind, start)
        end = check_value(key, kind, end)
        check_range(key, start, end)
        return self._merge(key, "range", (start, end))

    def check_aml(self, country: Optional[str] = None) -> "CredentialConfigBuilder":
        """Ask for a sanctions screening, optionally scoped to *country*.

        The flag travels with the descriptor; it is not part of the encoded
        credential constraints.
        """

        if country is not None and (not isinstance(country, str) or not country.strip()):
            raise ConfigurationError("AML country scope must be a non-empty string")
        session = self._live_session()
        session.aml_check = True
        session.aml_country = country
        return self

    def done(self) -> RequestDescriptor:
        """Snapshot the constraints into a :class:`RequestDescriptor`."""

        session = self._live_session()
        url = request_url_for(self.client_config, session)
        logger.debug("Finalized request descriptor", extra={"topic": session.topic})
        return RequestDescriptor(
            url=url,
            request_id=session.topic,
            aml_check=session.aml_check,
            aml_country=session.aml_country,
            dispatcher=session.dispatcher,
        )

    def snapshot(self) -> Dict[str, CredentialConfig]:
        return dict(self._live_session().config)
