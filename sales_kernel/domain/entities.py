"""
Entities -- Opaque references to people and companies.

Entity records are owned by an external directory.  The proposal core only
keeps the resolved name/document/type for display and never interprets
them beyond masking the document number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class EntityType(str, Enum):
    """Natural person (PF) or legal entity (PJ)."""

    PF = "PF"
    PJ = "PJ"


@dataclass(frozen=True)
class EntityRef:
    entity_id: UUID
    name: str
    document: str
    entity_type: EntityType

    @property
    def formatted_document(self) -> str:
        return format_document(self.document, self.entity_type)


_NON_DIGITS = re.compile(r"\D")


def format_document(document: str | None, entity_type: EntityType | str) -> str:
    """
    Mask a CPF (PF, 11 digits) or CNPJ (PJ, 14 digits).

    Documents that do not match the expected length are returned unchanged.
    """
    if not document:
        return ""
    digits = _NON_DIGITS.sub("", document)
    kind = EntityType(entity_type) if not isinstance(entity_type, EntityType) else entity_type
    if kind == EntityType.PF and len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if kind == EntityType.PJ and len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return document
