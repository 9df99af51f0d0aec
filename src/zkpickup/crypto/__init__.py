"""Proof system backends."""

import logging

from zkpickup.config import Settings
from zkpickup.core.verifier import ProofVerifier
from zkpickup.crypto.dev_proof import DevelopmentProofSystem, PickupProof
from zkpickup.crypto.snarkjs_verifier import SnarkjsGroth16Verifier

logger = logging.getLogger(__name__)


def get_proof_verifier(settings: Settings) -> ProofVerifier:
    """Build the verifier selected by ``settings.verifier_backend``."""
    if settings.verifier_backend == "snarkjs":
        logger.info(f"Using snarkjs verifier with key {settings.verification_key_path}")
        return SnarkjsGroth16Verifier(
            settings.verification_key_path,
            binary=settings.snarkjs_binary,
            timeout=settings.snarkjs_timeout,
        )

    logger.warning("Using development proof system (educational implementation, not zero-knowledge)")
    return DevelopmentProofSystem.from_hex(settings.dev_proof_key)


__all__ = [
    "DevelopmentProofSystem",
    "PickupProof",
    "SnarkjsGroth16Verifier",
    "get_proof_verifier",
]
