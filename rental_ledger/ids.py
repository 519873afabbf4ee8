"""
ids.py - Identifier allocation

Two independent monotonic counters, one for properties and one for
agreements. Both start at 1. Callers allocate only after every check of the
surrounding operation has passed, so a rejected call never consumes an id.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import AgreementId, PropertyId


@dataclass
class IdAllocator:
    """
    Owner of the next_property_id and next_agreement_id counters.

    Not thread-safe; RentalProtocol holds its lock around every allocation.
    """
    next_property_id: PropertyId = 1
    next_agreement_id: AgreementId = 1

    def __post_init__(self):
        if self.next_property_id < 1 or self.next_agreement_id < 1:
            raise ValueError("id counters start at 1")

    def allocate_property_id(self) -> PropertyId:
        allocated = self.next_property_id
        self.next_property_id += 1
        return allocated

    def allocate_agreement_id(self) -> AgreementId:
        allocated = self.next_agreement_id
        self.next_agreement_id += 1
        return allocated

    def peek_property_id(self) -> PropertyId:
        return self.next_property_id

    def peek_agreement_id(self) -> AgreementId:
        return self.next_agreement_id
