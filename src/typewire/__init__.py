from typewire.capabilities import implements, interface_of, is_capability
from typewire.exceptions import (
    TypewireError,
    TypewireInvalidSignatureError,
    TypewireNotACapabilityError,
    TypewireNotCallableError,
    TypewireValueNotFoundError,
)
from typewire.injector import Injector
from typewire.markers import INJECT_TAG, Injected, InjectedMarker, inject_field
from typewire.types import INVALID, HeldValue, TypeDescriptor

__all__ = [
    "INJECT_TAG",
    "INVALID",
    "HeldValue",
    "Injected",
    "InjectedMarker",
    "Injector",
    "TypeDescriptor",
    "TypewireError",
    "TypewireInvalidSignatureError",
    "TypewireNotACapabilityError",
    "TypewireNotCallableError",
    "TypewireValueNotFoundError",
    "implements",
    "inject_field",
    "interface_of",
    "is_capability",
]
