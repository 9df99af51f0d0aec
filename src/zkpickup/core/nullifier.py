"""Nullifier ledger: the set of consumed pickup nullifiers.

Key properties:
  - A nullifier is recorded at most once and never removed
  - Recording happens inside the pickup transaction, so a failed pickup
    leaves no trace here
  - Nullifiers are independent of commitments; the ledger cannot link a
    consumed nullifier back to a buyer
"""

import logging

from sqlalchemy.exc import IntegrityError

from zkpickup.exceptions import InvalidNullifierError, NullifierAlreadyUsedError
from zkpickup.storage import Nullifier, PickupRepository
from zkpickup.utils.encoding import MAX_U256

logger = logging.getLogger(__name__)


def validate_nullifier(nullifier: int) -> int:
    if not isinstance(nullifier, int) or isinstance(nullifier, bool):
        raise InvalidNullifierError("Nullifier must be an integer")
    if not 0 < nullifier <= MAX_U256:
        raise InvalidNullifierError("Nullifier must be a non-zero 256-bit value")
    return nullifier


class NullifierLedger:
    """Records nullifier consumption through the repository it is handed."""

    def is_consumed(self, repo: PickupRepository, nullifier: int) -> bool:
        """Check if a nullifier has been consumed."""
        return repo.get_nullifier(nullifier) is not None

    def require_unused(self, repo: PickupRepository, nullifier: int) -> None:
        if self.is_consumed(repo, nullifier):
            raise NullifierAlreadyUsedError("Nullifier already used")

    def consume(self, repo: PickupRepository, nullifier: int, package_id: bytes, store: str, now: int) -> Nullifier:
        """
        Record a nullifier as consumed.

        Raises:
            NullifierAlreadyUsedError: If the nullifier is already recorded,
                including when a concurrent writer got there first
        """
        validate_nullifier(nullifier)
        self.require_unused(repo, nullifier)
        try:
            record = repo.add_nullifier(
                Nullifier(nullifier=nullifier, package_id=package_id, store=store, consumed_at=now)
            )
        except IntegrityError:
            raise NullifierAlreadyUsedError("Nullifier already used")

        logger.debug(f"Nullifier consumed for package {package_id.hex()[:8]}...")
        return record

    def count(self, repo: PickupRepository) -> int:
        return repo.count_nullifiers()
