"""Class table inheritance on top of the persistence Model.

HasSubtypes (parent side) and SubtypeModel (subtype side) are the entry
points; the other modules are the pieces they compose: resolver, morpher,
persistence protocol, batch loader, query router and column validation.
"""

from cti.infrastructure.persistence.subtypes.collection import SubtypedCollection
from cti.infrastructure.persistence.subtypes.descriptor import (
    SubtypeCapable,
    SubtypeDescriptor,
    SubtypeRegistry,
)
from cti.infrastructure.persistence.subtypes.loader import load_subtypes_for
from cti.infrastructure.persistence.subtypes.models import HasSubtypes, SubtypeModel
from cti.infrastructure.persistence.subtypes.morpher import EntityMorpher
from cti.infrastructure.persistence.subtypes.query import SubtypeQueryBuilder
from cti.infrastructure.persistence.subtypes.relations import SubtypeRelations, parent_relation
from cti.infrastructure.persistence.subtypes.resolver import DiscriminatorResolver
from cti.infrastructure.persistence.subtypes.scope import DISCRIMINATOR_SCOPE, DiscriminatorScope
from cti.infrastructure.persistence.subtypes.validation import ColumnOverlapValidator

__all__ = [
    "DISCRIMINATOR_SCOPE",
    "ColumnOverlapValidator",
    "DiscriminatorResolver",
    "DiscriminatorScope",
    "EntityMorpher",
    "HasSubtypes",
    "SubtypeCapable",
    "SubtypeDescriptor",
    "SubtypeModel",
    "SubtypeQueryBuilder",
    "SubtypeRegistry",
    "SubtypeRelations",
    "SubtypedCollection",
    "load_subtypes_for",
    "parent_relation",
]
