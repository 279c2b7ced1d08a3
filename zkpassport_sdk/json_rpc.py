"""JSON-RPC envelopes exchanged with the wallet through the bridge.

Outer messages travel in the clear through the relay (``handshake`` and
``encryptedMessage``).  Everything else is a complete inner JSON-RPC request,
encrypted and carried base64 encoded in ``encryptedMessage.params.payload``.
"""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .encryption import CryptoError, EncryptionGateway
from .states import ProtocolError

JSONRPC_VERSION = "2.0"
ENCRYPTED_MESSAGE_METHOD = "encryptedMessage"
HANDSHAKE_METHOD = "handshake"


@dataclass
class JsonRpcRequest:
    method: str
    params: Any = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def param(self, name: str, default: Any = None) -> Any:
        if isinstance(self.params, dict):
            return self.params.get(name, default)
        return default


def create_json_rpc_request(method: str, params: Any = None) -> JsonRpcRequest:
    return JsonRpcRequest(method=method, params=params)


def create_encrypted_json_rpc_request(
    method: str,
    params: Any,
    shared_secret: bytes,
    topic: str,
    gateway: EncryptionGateway,
) -> JsonRpcRequest:
    """Encrypt an inner request and wrap it in an ``encryptedMessage`` envelope."""

    inner = create_json_rpc_request(method, params)
    ciphertext = gateway.encrypt(inner.to_json().encode("utf-8"), shared_secret, topic)
    payload = base64.b64encode(ciphertext).decode("ascii")
    return create_json_rpc_request(ENCRYPTED_MESSAGE_METHOD, {"payload": payload})


def parse_json_rpc_request(raw: str | bytes | Dict[str, Any]) -> JsonRpcRequest:
    """Validate a decoded or raw JSON-RPC request."""

    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ProtocolError("Message is not valid JSON") from exc
        except RecursionError as exc:
            raise ProtocolError("Message nests too deeply to decode") from exc
    else:
        data = raw

    if not isinstance(data, dict):
        raise ProtocolError("JSON-RPC message must be an object")
    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise ProtocolError("JSON-RPC message is missing a method")

    request_id: Optional[Any] = data.get("id")
    return JsonRpcRequest(
        method=method,
        params=data.get("params"),
        id=str(request_id) if request_id is not None else "",
        jsonrpc=str(data.get("jsonrpc", JSONRPC_VERSION)),
    )


def decode_encrypted_payload(request: JsonRpcRequest) -> bytes:
    """Return the ciphertext bytes carried by an ``encryptedMessage`` request."""

    payload = request.param("payload")
    if not isinstance(payload, str):
        raise ProtocolError("encryptedMessage is missing its payload")
    try:
        return base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise CryptoError("Encrypted payload is not valid base64") from exc


def decrypt_json_rpc_request(
    request: JsonRpcRequest,
    shared_secret: Optional[bytes],
    topic: str,
    gateway: EncryptionGateway,
) -> JsonRpcRequest:
    ciphertext = decode_encrypted_payload(request)
    if shared_secret is None:
        raise CryptoError("No shared secret has been established for this session")
    plaintext = gateway.decrypt(ciphertext, shared_secret, topic)
    return parse_json_rpc_request(plaintext)
