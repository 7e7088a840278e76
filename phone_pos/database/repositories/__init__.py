# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from phone_pos.database.repositories import (
        # Counterparties
        EntitiesRepo, Entity, EntityRole,
        # Inventory
        InventoryRepo,
        # Money accounts
        BalancesRepo,
    )
"""

# ------------- Counterparties --------------
from .entities_repo import EntitiesRepo, Entity, EntityRole

# ---------------- Inventory ----------------
from .inventory_repo import InventoryRepo

# ------------- Money accounts --------------
from .balances_repo import BalancesRepo

__all__ = [
    # entities_repo
    "EntitiesRepo",
    "Entity",
    "EntityRole",
    # inventory_repo
    "InventoryRepo",
    # balances_repo
    "BalancesRepo",
]
