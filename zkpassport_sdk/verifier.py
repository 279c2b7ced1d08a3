"""Hand-off of wallet proofs to an external proof-system backend.

Proof verification itself is the backend's job; this module only converts the
hex encoded proof and its public inputs into the shape the backend expects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence, Tuple

from .errors import ZkPassportError

logger = logging.getLogger(__name__)


class ProofFormatError(ZkPassportError, ValueError):
    """Raised when a proof cannot be marshalled for the backend."""


@dataclass(frozen=True)
class Proof:
    """Proof as produced by the wallet: hex bytes plus ordered field elements."""

    proof: str
    public_inputs: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proof":
        inputs = data.get("publicInputs", data.get("public_inputs", ()))
        if "proof" not in data:
            raise ProofFormatError("Proof payload is missing 'proof'")
        return cls(proof=str(data["proof"]), public_inputs=tuple(str(item) for item in inputs))


@dataclass(frozen=True)
class ProofData:
    """Backend input: raw proof bytes and public inputs in circuit order."""

    proof: bytes
    public_inputs: Tuple[str, ...]


class ProofBackend(Protocol):
    def verify_proof(self, proof_data: ProofData) -> bool:
        ...


def to_proof_data(proof: Proof) -> ProofData:
    raw = proof.proof[2:] if proof.proof.startswith(("0x", "0X")) else proof.proof
    try:
        proof_bytes = bytes.fromhex(raw)
    except ValueError as exc:
        raise ProofFormatError("Proof is not valid hex") from exc
    if not proof_bytes:
        raise ProofFormatError("Proof is empty")
    public_inputs: Sequence[Any] = proof.public_inputs
    if isinstance(public_inputs, str) or any(not isinstance(item, str) for item in public_inputs):
        raise ProofFormatError("Public inputs must be a sequence of field element strings")
    return ProofData(proof=proof_bytes, public_inputs=tuple(public_inputs))


def verify_proof(proof: Proof, backend: ProofBackend) -> bool:
    """Marshal *proof* and return the backend's verdict."""

    proof_data = to_proof_data(proof)
    verdict = bool(backend.verify_proof(proof_data))
    logger.info(
        "Proof verification finished",
        extra={"verified": verdict, "public_inputs": len(proof_data.public_inputs)},
    )
    return verdict
