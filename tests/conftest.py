"""Shared fakes: an in-memory bridge transport and a simulated wallet."""

from __future__ import annotations

import json
from typing import List

import pytest

from zkpassport_sdk.client import ZkPassport
from zkpassport_sdk.encryption import Secp256k1Gateway
from zkpassport_sdk.json_rpc import (
    JsonRpcRequest,
    create_encrypted_json_rpc_request,
    decrypt_json_rpc_request,
    parse_json_rpc_request,
)
from zkpassport_sdk.transport import TransportHandlers

GATEWAY = Secp256k1Gateway()


class FakeTransport:
    def __init__(self, url: str, origin: str, handlers: TransportHandlers) -> None:
        self.url = url
        self.origin = origin
        self.handlers = handlers
        self.sent: List[str] = []
        self.closed = False

    def send(self, message: str) -> None:
        self.sent.append(message)

    def close(self) -> None:
        self.closed = True


class Wallet:
    """The phone side of a session: answers the handshake and encrypts replies."""

    def __init__(self, topic: str, requester_public_key: bytes) -> None:
        self.topic = topic
        self.key_pair = GATEWAY.generate_key_pair()
        self.shared_secret = GATEWAY.derive_shared_secret(self.key_pair.private_key, requester_public_key)

    def handshake(self) -> str:
        return json.dumps(
            {
                "jsonrpc": "2.0",
                "id": "handshake-1",
                "method": "handshake",
                "params": {"pubkey": self.key_pair.public_key_hex},
            }
        )

    def encrypted(self, method: str, params: object = None) -> str:
        return create_encrypted_json_rpc_request(
            method, params, self.shared_secret, self.topic, GATEWAY
        ).to_json()

    def read(self, frame: str) -> JsonRpcRequest:
        return decrypt_json_rpc_request(
            parse_json_rpc_request(frame), self.shared_secret, self.topic, GATEWAY
        )


@pytest.fixture
def transports() -> List[FakeTransport]:
    return []


@pytest.fixture
def client(transports: List[FakeTransport]) -> ZkPassport:
    def factory(url: str, origin: str, handlers: TransportHandlers) -> FakeTransport:
        transport = FakeTransport(url, origin, handlers)
        transports.append(transport)
        return transport

    return ZkPassport("demo.zkpassport.id", gateway=GATEWAY, transport_factory=factory)


@pytest.fixture
def gateway() -> Secp256k1Gateway:
    return GATEWAY


@pytest.fixture
def make_wallet():
    return Wallet
