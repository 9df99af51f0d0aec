"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK Pickup Team"
__description__ = "Anonymous package pickup authorized by zero-knowledge proofs"

from .core.commitment import BuyerIdentity, Commitment
from .core.system import AnonymousPickupSystem, PickupReceipt
from .core.verifier import ProofVerifier, PublicSignals
from .crypto.dev_proof import DevelopmentProofSystem, PickupProof

__all__ = [
    "AnonymousPickupSystem",
    "BuyerIdentity",
    "Commitment",
    "DevelopmentProofSystem",
    "PickupProof",
    "PickupReceipt",
    "ProofVerifier",
    "PublicSignals",
]
