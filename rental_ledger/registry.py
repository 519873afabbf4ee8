"""
registry.py - Property Registry

Stores property records and the property -> active agreement binding index.
Any caller may register a property and becomes its owner. Rent and deposit
terms are fixed at registration; only the `active` flag changes afterwards,
and only at the owner's request.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional
import logging

from .config import RentalConfig
from .core import (
    AgreementId, CallContext, Identity, Property, PropertyId,
    InvalidInput, PropertyNotFound, Unauthorized,
)
from .ids import IdAllocator

logger = logging.getLogger(__name__)


def _validate_text(name: str, value: str, max_length: int) -> None:
    if not isinstance(value, str):
        raise InvalidInput(f"{name} must be text, got {type(value).__name__}")
    if not value.strip():
        raise InvalidInput(f"{name} cannot be empty")
    if len(value) > max_length:
        raise InvalidInput(f"{name} exceeds {max_length} characters ({len(value)})")


def _validate_amount(name: str, value: int, max_amount: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer amount, got {type(value).__name__}")
    if value < 0:
        raise InvalidInput(f"{name} must be non-negative, got {value}")
    if value > max_amount:
        raise InvalidInput(f"{name} exceeds maximum {max_amount}")


def validate_id(name: str, value: int) -> None:
    """Raise InvalidInput unless value is a non-negative int (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer id, got {type(value).__name__}")
    if value < 0:
        raise InvalidInput(f"{name} must be non-negative, got {value}")


def require_ordinary_caller(ctx: CallContext, config: RentalConfig) -> None:
    """
    Refuse calls made under the escrow wallet identity.

    Raises:
        Unauthorized: If ctx.caller is config.escrow_wallet
    """
    if ctx.caller == config.escrow_wallet:
        raise Unauthorized(f"{ctx.caller} is the escrow wallet and cannot act as a party")


class PropertyRegistry:
    """
    Property table plus the one-active-agreement-per-property index.

    The registry is the single writer of Property records. Binding is
    maintained by the agreement engine through bind()/unbind().
    """

    def __init__(self, ids: IdAllocator, config: RentalConfig):
        self.ids = ids
        self.config = config
        self._properties: Dict[PropertyId, Property] = {}
        self._active_agreement: Dict[PropertyId, AgreementId] = {}

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_property(self, property_id: PropertyId) -> Optional[Property]:
        """Return the property or None when absent."""
        return self._properties.get(property_id)

    def exists(self, property_id: PropertyId) -> bool:
        return property_id in self._properties

    def require(self, property_id: PropertyId) -> Property:
        """Return the property or raise InvalidInput / PropertyNotFound."""
        validate_id("property_id", property_id)
        prop = self._properties.get(property_id)
        if prop is None:
            raise PropertyNotFound(f"Property {property_id} not found")
        return prop

    def properties_of(self, owner: Identity) -> List[Property]:
        """All properties registered by `owner`, in id order."""
        return [p for _, p in sorted(self._properties.items()) if p.owner == owner]

    def count(self) -> int:
        return len(self._properties)

    def active_agreement_id(self, property_id: PropertyId) -> Optional[AgreementId]:
        """Id of the Active agreement bound to the property, if any."""
        return self._active_agreement.get(property_id)

    def is_bound(self, property_id: PropertyId) -> bool:
        return property_id in self._active_agreement

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def register_property(
        self,
        ctx: CallContext,
        title: str,
        description: str,
        monthly_rent: int,
        security_deposit: int,
    ) -> Property:
        """
        Register a new property owned by the caller.

        Args:
            ctx: Caller becomes the owner; block height is recorded
            title: Non-empty, at most max_title_length characters
            description: Non-empty, at most max_description_length characters
            monthly_rent: Non-negative integer amount
            security_deposit: Non-negative integer amount

        Returns:
            The stored Property (active=True)

        Raises:
            InvalidInput: If any argument fails validation
            Unauthorized: If the caller is the escrow wallet
        """
        require_ordinary_caller(ctx, self.config)
        _validate_text("title", title, self.config.max_title_length)
        _validate_text("description", description, self.config.max_description_length)
        _validate_amount("monthly_rent", monthly_rent, self.config.max_amount)
        _validate_amount("security_deposit", security_deposit, self.config.max_amount)

        prop = Property(
            id=self.ids.allocate_property_id(),
            owner=ctx.caller,
            title=title,
            description=description,
            monthly_rent=monthly_rent,
            security_deposit=security_deposit,
            active=True,
            registered_at=ctx.block_height,
        )
        self._properties[prop.id] = prop
        logger.info("Property %d registered by %s (rent=%d, deposit=%d)",
                    prop.id, prop.owner, monthly_rent, security_deposit)
        return prop

    def set_active(self, ctx: CallContext, property_id: PropertyId, active: bool) -> Property:
        """
        Activate or deactivate a property. Owner only.

        Deactivation blocks new agreements; an agreement already bound keeps
        running.

        Raises:
            PropertyNotFound: If the property does not exist
            Unauthorized: If the caller is not the owner
        """
        require_ordinary_caller(ctx, self.config)
        prop = self.require(property_id)
        if ctx.caller != prop.owner:
            raise Unauthorized(f"{ctx.caller} is not the owner of property {property_id}")
        updated = replace(prop, active=active)
        self._properties[property_id] = updated
        logger.info("Property %d %s by %s", property_id,
                    "activated" if active else "deactivated", ctx.caller)
        return updated

    def bind(self, property_id: PropertyId, agreement_id: AgreementId) -> None:
        """Record the Active agreement for a property."""
        if property_id in self._active_agreement:
            raise RuntimeError(
                f"Property {property_id} already bound to agreement "
                f"{self._active_agreement[property_id]}"
            )
        self._active_agreement[property_id] = agreement_id

    def unbind(self, property_id: PropertyId) -> None:
        """Release the property once its agreement reaches a terminal state."""
        self._active_agreement.pop(property_id, None)
