"""Entity morpher: hydrate a parent-table row as its concrete subtype class."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from cti.domain.exceptions import InvalidDiscriminator
from cti.shared.telemetry import add_span_event

if TYPE_CHECKING:
    from cti.infrastructure.persistence.model import Model
    from cti.infrastructure.persistence.subtypes.models import HasSubtypes
    from cti.infrastructure.persistence.subtypes.resolver import DiscriminatorResolver

logger = logging.getLogger(__name__)


class EntityMorpher:
    """Turn rows of a parent table into instances of the registered subtype classes.

    Rows whose discriminator is empty, unknown to the lookup table or not
    registered become instances of the parent class itself. Subtype
    attributes are not loaded here.
    """

    def __init__(self, base_cls: type[HasSubtypes], resolver: DiscriminatorResolver) -> None:
        self.base_cls = base_cls
        self.resolver = resolver

    def target_class(self, type_id: Any) -> type[Model]:
        """Return the class a row with this discriminator value hydrates as."""
        if type_id is None or type_id == "":
            return self.base_cls
        try:
            subtype_cls = self.resolver.resolve_class(type_id)
        except InvalidDiscriminator:
            logger.warning(
                "Discriminator %r of %s not found in lookup table; using base class",
                type_id,
                self.base_cls.__name__,
            )
            add_span_event(
                "cti.discriminator_fallback",
                {"cti.model": self.base_cls.__name__, "cti.type_id": str(type_id)},
            )
            return self.base_cls
        if subtype_cls is None:
            logger.debug(
                "Discriminator %r of %s has no registered subtype; using base class",
                type_id,
                self.base_cls.__name__,
            )
            return self.base_cls
        return subtype_cls

    def morph(self, row: Mapping[str, Any]) -> Model:
        """Hydrate row as the class its discriminator names; the instance exists."""
        column = self.base_cls.get_discriminator_column()
        target = self.target_class(row.get(column))
        instance = target.hydrate(row)
        if target is not self.base_cls:
            inherited = {
                key: kind for key, kind in self.base_cls.casts.items() if not instance.has_cast(key)
            }
            instance.merge_casts(inherited)
        return instance
