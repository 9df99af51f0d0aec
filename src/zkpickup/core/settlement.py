"""Settlement engine: fee split and payout on successful pickup.

    total            = escrow + shipping collected at pickup
    platform_fee     = total * platform_rate // 10000
    store_commission = total * commission_rate // 10000
    seller_amount    = total - platform_fee - store_commission

All three shares come from the same ``total``; integer-division remainders
land with the seller, so the shares always sum to ``total``.
"""

import logging
from dataclasses import asdict, dataclass

from zkpickup.config import FEE_DENOMINATOR, MAX_COMMISSION_RATE, MAX_PLATFORM_FEE_RATE
from zkpickup.core import events
from zkpickup.exceptions import InvalidAmountError, InvalidFeeRateError
from zkpickup.storage import PickupRepository
from zkpickup.utils.encoding import bytes_to_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentSplit:
    """Exact amounts paid out for one pickup."""

    total: int
    seller_amount: int
    store_commission: int
    platform_fee: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_split(total: int, platform_fee_rate: int, commission_rate: int) -> PaymentSplit:
    """
    Split ``total`` between seller, store and platform.

    Raises:
        InvalidAmountError: If total is negative
        InvalidFeeRateError: If either rate is outside its cap
    """
    if total < 0:
        raise InvalidAmountError("Settlement total must be non-negative")
    if not 0 <= platform_fee_rate <= MAX_PLATFORM_FEE_RATE:
        raise InvalidFeeRateError(f"Platform fee rate {platform_fee_rate} bps exceeds cap")
    if not 0 <= commission_rate <= MAX_COMMISSION_RATE:
        raise InvalidFeeRateError(f"Commission rate {commission_rate} bps exceeds cap")

    platform_fee = total * platform_fee_rate // FEE_DENOMINATOR
    store_commission = total * commission_rate // FEE_DENOMINATOR
    seller_amount = total - platform_fee - store_commission

    return PaymentSplit(
        total=total,
        seller_amount=seller_amount,
        store_commission=store_commission,
        platform_fee=platform_fee,
    )


class SettlementEngine:
    """Credits the seller, store and platform treasury inside the caller's transaction."""

    def __init__(self, treasury: str):
        self.treasury = treasury

    def transfer(self, repo: PickupRepository, recipient: str, amount: int) -> None:
        if amount:
            repo.credit(recipient, amount)

    def settle(
        self,
        repo: PickupRepository,
        package_id: bytes,
        seller: str,
        store: str,
        total: int,
        platform_fee_rate: int,
        commission_rate: int,
        now: int,
    ) -> PaymentSplit:
        """
        Compute the split and credit every party.

        Any exception propagates so the enclosing transaction rolls back,
        including transfers already made.
        """
        split = compute_split(total, platform_fee_rate, commission_rate)

        self.transfer(repo, seller, split.seller_amount)
        self.transfer(repo, store, split.store_commission)
        self.transfer(repo, self.treasury, split.platform_fee)

        repo.add_event(
            events.PAYMENT_PROCESSED,
            now,
            {
                "package_id": bytes_to_hex(package_id),
                "seller": seller,
                "store": store,
                "treasury": self.treasury,
                **split.to_dict(),
            },
            package_id=package_id,
        )
        logger.info(
            f"Payment processed for {bytes_to_hex(package_id)[:10]}...: "
            f"seller={split.seller_amount} store={split.store_commission} platform={split.platform_fee}"
        )
        return split
