from __future__ import annotations

import inspect
import types
import weakref
from typing import Annotated, Any, TypeGuard, get_args, get_origin

from typing_extensions import get_protocol_members, is_protocol

from typewire.exceptions import TypewireNotACapabilityError
from typewire.types import TypeDescriptor


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_capability(descriptor: TypeDescriptor) -> bool:
    """Return whether a type descriptor denotes an abstract capability.

    Protocol classes and abstract classes (classes with unimplemented
    abstract methods) are capabilities. Everything else, including generic
    aliases and ``Annotated`` tokens, is treated as a concrete descriptor.

    Args:
        descriptor: Type descriptor to check.

    """
    if not is_runtime_class(descriptor):
        return False
    return is_protocol(descriptor) or inspect.isabstract(descriptor)


def implements(concrete: type[Any], capability: TypeDescriptor) -> bool:
    """Return whether ``concrete`` satisfies ``capability``.

    Abstract classes are matched with ``issubclass`` so virtual subclasses
    registered through ``ABC.register`` count, including ones registered after
    an earlier negative answer. Protocols are matched nominally first and
    structurally otherwise: every protocol member must be an attribute or an
    annotated field of ``concrete``. Structural matching does not require
    ``@runtime_checkable``.

    Args:
        concrete: Runtime type of a registered value.
        capability: Capability descriptor, see ``is_capability``.

    """
    if not is_runtime_class(concrete) or not is_capability(capability):
        return False
    if capability in concrete.__mro__:
        return True
    if not is_protocol(capability):
        return issubclass(concrete, capability)
    return _conforms(concrete, capability)


# Structural answers keyed by concrete type, then by protocol, both held weakly.
_CONFORMANCE: weakref.WeakKeyDictionary[type[Any], weakref.WeakKeyDictionary[type[Any], bool]] = (
    weakref.WeakKeyDictionary()
)


def _conforms(concrete: type[Any], protocol: type[Any]) -> bool:
    answers = _CONFORMANCE.get(concrete)
    if answers is None:
        answers = weakref.WeakKeyDictionary()
        _CONFORMANCE[concrete] = answers
    conforms = answers.get(protocol)
    if conforms is None:
        annotated_names = _annotated_names(concrete)
        conforms = all(
            member in annotated_names or hasattr(concrete, member)
            for member in get_protocol_members(protocol)
        )
        answers[protocol] = conforms
    return conforms


def interface_of(handle: Any) -> TypeDescriptor:
    """Return the capability descriptor denoted by ``handle``.

    ``handle`` is a capability class, optionally wrapped in any number of
    ``type[...]``, ``Annotated[...]`` or ``weakref.ref`` layers.

    Raises:
        TypewireNotACapabilityError: If the unwrapped handle is not a
            capability.

    """
    candidate = handle
    while True:
        if isinstance(candidate, weakref.ref):
            candidate = candidate()
            continue
        if get_origin(candidate) in (type, Annotated):
            candidate = get_args(candidate)[0]
            continue
        break

    if not is_capability(candidate):
        raise TypewireNotACapabilityError(handle)
    return candidate


def _annotated_names(cls: type[Any]) -> set[str]:
    names: set[str] = set()
    for klass in cls.__mro__:
        names.update(getattr(klass, "__annotations__", {}))
    return names


__all__ = ["implements", "interface_of", "is_capability", "is_runtime_class"]
