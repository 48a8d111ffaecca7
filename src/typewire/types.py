from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias

TypeDescriptor: TypeAlias = Any
"""Any hashable type form used as a registry key.

Classes, ``typing`` aliases such as ``list[int]`` or ``Callable[..., str]``
and ``Annotated[...]`` tokens are all valid descriptors.
"""


class _Missing:
    """Placeholder stored in the invalid held value."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


_MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class HeldValue:
    """A registered value together with its concrete type.

    ``is_valid`` distinguishes a stored value (``None`` included) from the
    ``INVALID`` marker returned when a lookup finds nothing.
    """

    value: Any
    type_: type[Any] = field(compare=False)

    @classmethod
    def of(cls, value: Any) -> HeldValue:
        """Wrap ``value`` using its own runtime type."""
        return cls(value=value, type_=type(value))

    @property
    def is_valid(self) -> bool:
        return self.value is not _MISSING


INVALID = HeldValue(value=_MISSING, type_=_Missing)
"""Marker returned by ``Injector.get`` when a type cannot be resolved."""


__all__ = ["INVALID", "HeldValue", "TypeDescriptor"]
