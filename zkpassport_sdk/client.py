"""Entry point used by web applications to request credentials from a wallet."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from .builder import CredentialConfigBuilder, request_url_for
from .config import ClientConfig, ConfigurationError, load_client_config
from .encryption import EncryptionGateway, KeyPair, Secp256k1Gateway
from .protocol import ProtocolHandler
from .session import SessionNotFound, SessionRegistry
from .transport import TransportFactory, open_websocket_transport
from .verifier import Proof, ProofBackend, verify_proof

logger = logging.getLogger(__name__)


class ZkPassport:
    """Client for issuing selective-disclosure requests to ZKPassport wallets.

    Each call to :meth:`request` opens an independent session on the bridge and
    returns a :class:`~zkpassport_sdk.builder.CredentialConfigBuilder`::

        zk = ZkPassport("demo.example.com")
        descriptor = zk.request().gte("age", 18).out("nationality", SANCTIONED_COUNTRIES).done()
        descriptor.on_proof_generated(handle_proof)
        show_qr_code(descriptor.url)
    """

    def __init__(
        self,
        domain: Optional[str] = None,
        *,
        config: Optional[ClientConfig] = None,
        gateway: Optional[EncryptionGateway] = None,
        transport_factory: TransportFactory = open_websocket_transport,
        verifier_backend: Optional[ProofBackend] = None,
    ) -> None:
        if config is None:
            config = ClientConfig(domain=domain) if domain else load_client_config()
        elif domain and domain != config.domain:
            raise ConfigurationError("Pass either a domain or a config, not conflicting values")
        self.config = config
        self.gateway: EncryptionGateway = gateway or Secp256k1Gateway()
        self.registry = SessionRegistry(self.gateway, config, transport_factory)
        self.handler = ProtocolHandler(self.registry, self.gateway)
        self.verifier_backend = verifier_backend

    @classmethod
    def from_env(cls, **kwargs: Any) -> "ZkPassport":
        """Instantiate a client using environment variables or the config file."""

        return cls(config=load_client_config(), **kwargs)

    def request(
        self,
        topic_override: Optional[str] = None,
        key_pair_override: Optional[KeyPair] = None,
    ) -> CredentialConfigBuilder:
        """Open a new request session and return its constraint builder."""

        session = self.registry.create(
            topic_override,
            key_pair_override,
            handlers_for=self.handler.handlers_for,
        )
        return CredentialConfigBuilder(session, self.config)

    def get_url(self, request_id: str) -> str:
        """Current request URL for *request_id*, reflecting its live constraints."""

        session = self.registry.get(request_id)
        if session is None:
            raise SessionNotFound(f"No live request with id {request_id}")
        return request_url_for(self.config, session)

    def cancel_request(self, request_id: str) -> None:
        """Close the relay connection and forget everything about *request_id*."""

        if not self.registry.destroy(request_id):
            logger.debug("Cancel requested for unknown request %s", request_id)

    def verify(self, proof: Union[Proof, Mapping[str, Any]]) -> bool:
        if self.verifier_backend is None:
            raise ConfigurationError("No proof verifier backend configured")
        if not isinstance(proof, Proof):
            proof = Proof.from_dict(proof)
        return verify_proof(proof, self.verifier_backend)

    def close(self) -> None:
        self.registry.close_all()

    def __enter__(self) -> "ZkPassport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
