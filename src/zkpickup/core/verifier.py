"""Proof verification gateway.

The pickup circuit exposes six public signals, in this order:

    [package_id, buyer_commitment, store, timestamp, min_age_required, nullifier]

The gateway always builds them from the stored package and the ambient
transaction time. Callers only contribute the proof bytes and the
nullifier, so a proof minted for one package, store or age threshold never
verifies against another.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import astuple, dataclass
from typing import List, Sequence

from zkpickup.exceptions import ProofRejectedError
from zkpickup.utils.encoding import address_to_int, word_to_int

logger = logging.getLogger(__name__)

NUM_PUBLIC_SIGNALS = 6


class ProofVerifier(ABC):
    """Capability that checks a pickup proof against its public signals."""

    @abstractmethod
    def verify(self, proof: bytes, public_signals: Sequence[int]) -> bool:
        """Return True only if the proof is valid for exactly these signals."""


@dataclass(frozen=True)
class PublicSignals:
    """Public inputs of the pickup circuit."""

    package_id: int
    buyer_commitment: int
    store: int
    timestamp: int
    min_age_required: int
    nullifier: int

    @classmethod
    def build(
        cls,
        package_id: bytes,
        buyer_commitment: int,
        store: str,
        timestamp: int,
        min_age_required: int,
        nullifier: int,
    ) -> "PublicSignals":
        return cls(
            package_id=word_to_int(package_id),
            buyer_commitment=buyer_commitment,
            store=address_to_int(store),
            timestamp=timestamp,
            min_age_required=min_age_required,
            nullifier=nullifier,
        )

    @classmethod
    def for_package(cls, package, timestamp: int, nullifier: int) -> "PublicSignals":
        """Build the signals from a stored package record."""
        return cls.build(
            package_id=package.package_id,
            buyer_commitment=package.buyer_commitment,
            store=package.store,
            timestamp=timestamp,
            min_age_required=package.min_age_required,
            nullifier=nullifier,
        )

    def as_list(self) -> List[int]:
        return list(astuple(self))


class ProofVerificationGateway:
    """Turns a verifier's answer into accept or ``ProofRejectedError``."""

    def __init__(self, verifier: ProofVerifier):
        self.verifier = verifier

    def verify_pickup(self, package, proof: bytes, nullifier: int, timestamp: int) -> PublicSignals:
        """
        Verify a pickup proof for a stored package.

        Has no side effects. A False answer and a verifier exception are
        both rejections.

        Raises:
            ProofRejectedError: If the proof does not verify
        """
        signals = PublicSignals.for_package(package, timestamp, nullifier)

        if not isinstance(proof, (bytes, bytearray)) or not proof:
            raise ProofRejectedError("Proof must be non-empty bytes")

        try:
            accepted = self.verifier.verify(bytes(proof), signals.as_list())
        except Exception as e:
            logger.warning(f"Verifier error treated as rejection: {e}")
            raise ProofRejectedError(f"Proof verification failed: {e}")

        if accepted is not True:
            logger.warning(f"Proof rejected for package {package.package_id.hex()[:8]}...")
            raise ProofRejectedError("Proof rejected by verifier")

        return signals
