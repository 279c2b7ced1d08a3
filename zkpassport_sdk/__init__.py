"""ZKPassport client SDK."""

from .builder import CredentialConfigBuilder, RequestDescriptor
from .client import ZkPassport
from .config import ClientConfig, ConfigurationError, load_client_config
from .constants import SANCTIONED_COUNTRIES
from .credentials import CredentialConfig, CredentialKind, CredentialTypeError
from .encryption import CryptoError, EncryptionGateway, KeyPair, Secp256k1Gateway
from .errors import ZkPassportError
from .events import EventDispatcher, EventKind
from .protocol import ProtocolHandler
from .session import Session, SessionNotFound, SessionRegistry
from .states import ProtocolError, SessionState
from .transport import TransportError
from .verifier import Proof, ProofData, ProofFormatError

__all__ = [
    "ZkPassport",
    "ClientConfig",
    "ConfigurationError",
    "load_client_config",
    "CredentialConfigBuilder",
    "RequestDescriptor",
    "CredentialConfig",
    "CredentialKind",
    "CredentialTypeError",
    "SANCTIONED_COUNTRIES",
    "CryptoError",
    "EncryptionGateway",
    "KeyPair",
    "Secp256k1Gateway",
    "ZkPassportError",
    "EventDispatcher",
    "EventKind",
    "ProtocolHandler",
    "ProtocolError",
    "Session",
    "SessionNotFound",
    "SessionRegistry",
    "SessionState",
    "TransportError",
    "Proof",
    "ProofData",
    "ProofFormatError",
]
