import pytest

from zkpassport_sdk.client import ZkPassport
from zkpassport_sdk.config import ConfigurationError
from zkpassport_sdk.verifier import Proof, ProofData, ProofFormatError, to_proof_data


class StubBackend:
    def __init__(self, verdict: bool = True) -> None:
        self.verdict = verdict
        self.received: list[ProofData] = []

    def verify_proof(self, proof_data: ProofData) -> bool:
        self.received.append(proof_data)
        return self.verdict


def _client(backend=None) -> ZkPassport:
    return ZkPassport("demo.zkpassport.id", transport_factory=lambda *args: None, verifier_backend=backend)


def test_verify_marshals_hex_proof_and_public_inputs() -> None:
    backend = StubBackend()

    verified = _client(backend).verify({"proof": "deadbeef", "publicInputs": ["0x01", "0x02"]})

    assert verified is True
    assert backend.received == [ProofData(proof=b"\xde\xad\xbe\xef", public_inputs=("0x01", "0x02"))]


def test_verify_returns_backend_verdict() -> None:
    assert _client(StubBackend(verdict=False)).verify(Proof(proof="0xcafe", public_inputs=("1",))) is False


def test_verify_without_backend_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        _client().verify(Proof(proof="cafe"))


@pytest.mark.parametrize(
    "proof",
    [
        Proof(proof="not-hex"),
        Proof(proof=""),
        Proof(proof="cafe", public_inputs=(1, 2)),  # type: ignore[arg-type]
    ],
)
def test_malformed_proofs_are_rejected(proof: Proof) -> None:
    with pytest.raises(ProofFormatError):
        to_proof_data(proof)


def test_proof_from_dict_requires_proof_field() -> None:
    with pytest.raises(ProofFormatError):
        Proof.from_dict({"publicInputs": []})
