"""Subtype descriptors and the per-parent subtype registry.

A SubtypeDescriptor is the immutable CTI configuration of one subtype class
(its table, the attributes stored there and the shared key column). The
persistence protocol, the batch loader and the query router all work from a
descriptor instead of reaching into class attributes.

A SubtypeRegistry maps discriminator labels to subtype classes for one
parent class. Subtypes are added with the parent's register_subtype()
decorator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SubtypeDescriptor:
    """CTI configuration of one subtype class.

    Attributes:
        model: The subtype model class.
        table: Subtype table name, or None when the class declares none.
        attributes: Attribute names stored in the subtype table.
        key_name: Subtype table column holding the parent's primary key.
        parent_key_name: Primary key column of the parent table.
    """

    model: type
    table: str | None
    attributes: tuple[str, ...]
    key_name: str
    parent_key_name: str

    @property
    def is_configured(self) -> bool:
        """True when both a subtype table and subtype attributes are declared."""
        return bool(self.table) and bool(self.attributes)

    def owns(self, column: str) -> bool:
        """Return True if column (optionally "table.column") is a subtype attribute."""
        return column.rpartition(".")[2] in self.attributes

    def subtype_view(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in attributes.items() if key in self.attributes}

    def parent_view(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Attributes that belong to the parent table.

        Excludes subtype attributes and, when it differs from the parent
        primary key, the shared key column.
        """
        excluded = set(self.attributes)
        if self.key_name != self.parent_key_name:
            excluded.add(self.key_name)
        return {key: value for key, value in attributes.items() if key not in excluded}


@runtime_checkable
class SubtypeCapable(Protocol):
    """Instances the batch loader can fill with subtype rows."""

    subtype_loaded: bool

    @classmethod
    def subtype_descriptor(cls) -> SubtypeDescriptor: ...

    def get_key(self) -> Any: ...

    def merge_subtype_row(self, row: Mapping[str, Any], overwrite: bool = True) -> None: ...

    def mark_subtype_loaded(self) -> None: ...


class SubtypeRegistry:
    """Label -> subtype class map owned by one parent class."""

    def __init__(self, owner: type) -> None:
        self.owner = owner
        self._by_label: dict[str, type] = {}
        self._by_class: dict[type, str] = {}

    def register(self, label: str, model_cls: type) -> None:
        """Map label to model_cls.

        Raises:
            ValueError: If label or model_cls is already registered to something else.
        """
        if not label:
            raise ValueError(f"Subtype label for {model_cls.__name__} must be non-empty")
        current = self._by_label.get(label)
        if current is not None and current is not model_cls:
            raise ValueError(
                f"Label '{label}' on {self.owner.__name__} is already registered to "
                f"{current.__name__}"
            )
        existing_label = self._by_class.get(model_cls)
        if existing_label is not None and existing_label != label:
            raise ValueError(
                f"{model_cls.__name__} is already registered on {self.owner.__name__} "
                f"as '{existing_label}'"
            )
        self._by_label[label] = model_cls
        self._by_class[model_cls] = label

    def class_for_label(self, label: str) -> type | None:
        return self._by_label.get(label)

    def label_for_class(self, model_cls: type) -> str | None:
        return self._by_class.get(model_cls)

    def as_dict(self) -> dict[str, type]:
        return dict(self._by_label)

    def __contains__(self, label: object) -> bool:
        return label in self._by_label

    def __len__(self) -> int:
        return len(self._by_label)

    def __repr__(self) -> str:
        labels = ", ".join(f"{k}={v.__name__}" for k, v in self._by_label.items())
        return f"SubtypeRegistry({self.owner.__name__}: {labels})"
