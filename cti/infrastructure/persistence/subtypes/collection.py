"""Collection that batch-loads subtype data when it is built."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from cti.infrastructure.persistence.collection import ModelCollection
from cti.infrastructure.persistence.subtypes.loader import load_subtypes_for


class SubtypedCollection(ModelCollection):
    """ModelCollection whose subtype instances are loaded on construction.

    Loading issues one query per concrete subtype class present.
    """

    def __init__(self, models: Iterable[Any] = ()) -> None:
        super().__init__(models)
        self.load_subtypes()

    def load_subtypes(self) -> SubtypedCollection:
        """Load subtype rows for instances not loaded yet (no queries when none are pending)."""
        load_subtypes_for(self)
        return self
