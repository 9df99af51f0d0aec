"""Development proof system for the pickup circuit.

Stands in for the Groth16 prover/verifier pair when no compiled circuit is
available. The "proof" is a keyed Keccak-256 attestation over the six public
signals, issued only after the prover has checked the witness against the
circuit's constraints:

    1. commitment == H(secret, name_hash, phone_last_three)
    2. nullifier  == H(secret, package_id, nonce, store)
    3. age >= min_age_required  (when min_age_required > 0)

Security Warnings:
    [!] NOT ZERO-KNOWLEDGE and NOT SOUND against anyone holding the key
    [!] The key plays the role of the trusted setup; keep it out of buyers' hands
    [+] Exercises the same public-signal binding as the real circuit
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional, Sequence

from zkpickup.core.commitment import BuyerIdentity
from zkpickup.core.verifier import NUM_PUBLIC_SIGNALS, ProofVerifier, PublicSignals
from zkpickup.exceptions import ProverError
from zkpickup.utils.encoding import hex_to_bytes, int_to_word
from zkpickup.utils.hash import keccak256

logger = logging.getLogger(__name__)

DOMAIN = b"zkpickup/dev-proof/v1"
KEY_SIZE = 32


@dataclass(frozen=True)
class PickupProof:
    """Everything a buyer hands to the store at the counter."""

    proof: bytes
    nullifier: int
    nonce: int
    public_signals: List[int]


class DevelopmentProofSystem(ProofVerifier):
    """Keyed-hash prover and verifier sharing one setup key."""

    def __init__(self, key: Optional[bytes] = None):
        if key is None:
            logger.warning("No development proof key configured; generated one for this process only")
            key = secrets.token_bytes(KEY_SIZE)
        if len(key) < 16:
            raise ValueError("Development proof key must be at least 16 bytes")
        self._key = key

    @classmethod
    def from_hex(cls, key_hex: Optional[str]) -> "DevelopmentProofSystem":
        return cls(hex_to_bytes(key_hex) if key_hex else None)

    def _attest(self, public_signals: Sequence[int]) -> bytes:
        encoded = b"".join(int_to_word(s) for s in public_signals)
        return keccak256(DOMAIN + self._key + encoded)

    def prove(
        self,
        identity: BuyerIdentity,
        age: int,
        package_id: bytes,
        store: str,
        buyer_commitment: int,
        min_age_required: int,
        timestamp: int,
    ) -> PickupProof:
        """
        Produce a pickup proof, consuming the identity's next nonce.

        Raises:
            ProverError: If the witness does not satisfy the circuit
        """
        if identity.commitment != buyer_commitment:
            raise ProverError("Identity does not open the package commitment")
        if min_age_required > 0 and age < min_age_required:
            raise ProverError("Age requirement not met")

        nonce, nullifier = identity.next_nullifier(package_id, store)
        signals = PublicSignals.build(
            package_id=package_id,
            buyer_commitment=buyer_commitment,
            store=store,
            timestamp=timestamp,
            min_age_required=min_age_required,
            nullifier=nullifier,
        ).as_list()

        return PickupProof(
            proof=self._attest(signals),
            nullifier=nullifier,
            nonce=nonce,
            public_signals=signals,
        )

    def verify(self, proof: bytes, public_signals: Sequence[int]) -> bool:
        if len(public_signals) != NUM_PUBLIC_SIGNALS:
            return False
        if len(proof) != 32:
            return False
        return hmac.compare_digest(proof, self._attest(public_signals))
