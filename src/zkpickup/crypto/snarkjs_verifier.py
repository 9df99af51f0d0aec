"""Groth16 verification through the snarkjs command line.

The proof handed to ``verify`` is the UTF-8 encoding of the JSON object that
``snarkjs groth16 prove`` writes to ``proof.json``. Public signals are
written as decimal strings, the format snarkjs expects in ``public.json``.
"""

import json
import logging
import os
import subprocess
import tempfile
from typing import Sequence

from zkpickup.core.verifier import NUM_PUBLIC_SIGNALS, ProofVerifier
from zkpickup.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SnarkjsGroth16Verifier(ProofVerifier):
    """Runs ``snarkjs groth16 verify <vkey> <public> <proof>`` per call."""

    def __init__(self, verification_key_path: str, binary: str = "snarkjs", timeout: float = 30.0):
        if not os.path.isfile(verification_key_path):
            raise ConfigurationError(f"Verification key not found: {verification_key_path}")
        self.verification_key_path = verification_key_path
        self.binary = binary
        self.timeout = timeout

    def verify(self, proof: bytes, public_signals: Sequence[int]) -> bool:
        if len(public_signals) != NUM_PUBLIC_SIGNALS:
            return False

        try:
            proof_obj = json.loads(proof.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Proof is not a snarkjs JSON document")
            return False

        with tempfile.TemporaryDirectory(prefix="zkpickup-") as workdir:
            proof_path = os.path.join(workdir, "proof.json")
            public_path = os.path.join(workdir, "public.json")

            with open(proof_path, "w") as f:
                json.dump(proof_obj, f)
            with open(public_path, "w") as f:
                json.dump([str(s) for s in public_signals], f)

            # FileNotFoundError and TimeoutExpired propagate to the gateway
            result = subprocess.run(
                [self.binary, "groth16", "verify", self.verification_key_path, public_path, proof_path],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )

        if result.returncode == 0 and "OK" in result.stdout:
            return True

        logger.warning(f"snarkjs verification failed (exit {result.returncode}): {result.stderr.strip()[:200]}")
        return False
