#!/usr/bin/env python3
"""
Quick start guide for the anonymous pickup system.

Run this to see a complete register -> prove -> pick up workflow.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkpickup import AnonymousPickupSystem, BuyerIdentity, DevelopmentProofSystem
from zkpickup.exceptions import NullifierAlreadyUsedError, ProverError
from zkpickup.storage import DatabaseManager
from zkpickup.utils.hash import package_id_from_tracking_code

OWNER = "0x" + "0" * 39 + "1"
SELLER = "0x" + "a" * 40
STORE = "0x" + "b" * 40


def main():
    """Run a simple example of the pickup protocol."""

    print("=" * 70)
    print("ZK PICKUP QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Initialize the system
    print("Step 1: Initialize the pickup system")
    print("-" * 70)
    proofs = DevelopmentProofSystem()
    system = AnonymousPickupSystem(DatabaseManager("sqlite://"), proofs, owner=OWNER)
    print(f"✓ System created (owner {OWNER}, platform fee {system.get_platform_fee_rate()} bps)")
    print()

    # Step 2: Roles
    print("Step 2: Seller registers, owner authorizes a store")
    print("-" * 70)
    system.register_seller(SELLER)
    store = system.authorize_store(OWNER, STORE, "Corner Shop", "12 Main St", commission_rate=200)
    print(f"✓ Seller {SELLER} registered")
    print(f"✓ Store '{store.name}' authorized at {store.commission_rate} bps")
    print()

    # Step 3: Buyer commitment (client side)
    print("Step 3: Buyer derives a commitment (never leaves the phone)")
    print("-" * 70)
    buyer = BuyerIdentity.create("Alice Example", "+1 555 0100 123")
    print(f"✓ Commitment: {str(buyer.commitment)[:24]}...")
    print()

    # Step 4: Seller registers the package
    print("Step 4: Seller registers an age-restricted package")
    print("-" * 70)
    package_id = package_id_from_tracking_code("TRACK-0001")
    package = system.register_package(
        SELLER,
        package_id,
        buyer.commitment,
        STORE,
        item_price=10_000,
        shipping_fee=500,
        min_age_required=18,
        seller_pays_shipping=True,
        pickup_days=7,
    )
    print(f"✓ Package {package.package_id[:18]}... escrow={package.escrow_amount}")
    print(f"  Expires at: {package.expires_at}")
    print()

    # Step 5: An under-age witness cannot produce a proof
    print("Step 5: Under-age buyer tries to prove")
    print("-" * 70)
    try:
        proofs.prove(buyer, 16, package_id, STORE, buyer.commitment, 18, system.clock())
    except ProverError as e:
        print(f"✓ Prover refused: {e}")
    print()

    # Step 6: Pickup
    print("Step 6: Buyer proves, store submits the pickup")
    print("-" * 70)
    now = system.clock()
    pickup = proofs.prove(buyer, 30, package_id, STORE, buyer.commitment, 18, now)
    receipt = system.execute_pickup(STORE, package_id, pickup.proof, pickup.nullifier)
    print("✓ Pickup successful!")
    print(f"  Seller:   {receipt.split.seller_amount}")
    print(f"  Store:    {receipt.split.store_commission}")
    print(f"  Platform: {receipt.split.platform_fee}")
    print()

    # Step 7: Replay
    print("Step 7: Replaying the same proof")
    print("-" * 70)
    try:
        system.execute_pickup(STORE, package_id, pickup.proof, pickup.nullifier)
    except Exception as e:
        kind = "nullifier" if isinstance(e, NullifierAlreadyUsedError) else e.__class__.__name__
        print(f"✓ Rejected ({kind}): {e}")
    print()

    print("=" * 70)
    print(f"Balances: seller={system.get_balance(SELLER)} store={system.get_balance(STORE)} "
          f"treasury={system.get_balance(system.treasury)}")
    print("=" * 70)


if __name__ == "__main__":
    main()
