from __future__ import annotations

from typing import Any


class TypewireError(Exception):
    """Represent a base class for all typewire-specific failures.

    Catch this type when you want to handle any typewire error path without
    matching each concrete exception class individually.
    """


class TypewireValueNotFoundError(TypewireError, LookupError):
    """Signal that no value is registered for a requested type.

    Raised by ``Injector.apply``, ``Injector.invoke``, ``Injector.resolve``
    and injected wrappers when a dependency cannot be found in the injector
    or anywhere in its parent chain.

    Typical fixes include mapping a value for the type with ``map``,
    mapping an implementation against the capability with ``map_to``, or
    wiring a parent injector that holds it with ``set_parent``.
    """

    def __init__(self, dependency: Any) -> None:
        self.dependency = dependency
        super().__init__(f"Value not found for type {_describe(dependency)}")


class TypewireNotACapabilityError(TypewireError, TypeError):
    """Signal that a handle does not denote a capability type.

    Raised by ``interface_of`` and ``Injector.map_to``. A capability is a
    ``typing.Protocol`` class or an abstract class, optionally wrapped in
    ``type[...]``, ``Annotated[...]`` or a ``weakref.ref``.

    This is a programming error: pass the protocol or abstract class itself,
    for example ``injector.map_to(impl, Repository)``.
    """

    def __init__(self, handle: Any) -> None:
        self.handle = handle
        super().__init__(
            f"Called interface_of with a value that is not a capability type: {handle!r}. "
            "Pass a Protocol or an abstract class.",
        )


class TypewireNotCallableError(TypewireError, TypeError):
    """Signal that a non-callable object was passed where a callable is required.

    Raised by ``Injector.invoke`` and ``Injector.inject``. This is a
    programming error and is never reported through the resolution channel.
    """

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(f"Expected a callable, got {target!r}.")


class TypewireInvalidSignatureError(TypewireError, TypeError):
    """Signal that a callable has no signature typewire can inspect.

    Raised by ``Injector.invoke`` and ``Injector.inject`` for callables such as
    builtin types without introspection support or objects with a malformed
    ``__signature__``.

    Typical fix is wrapping the callable in a plain function with annotated
    parameters.
    """

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(f"Cannot inspect the signature of {target!r}.")


def _describe(dependency: Any) -> str:
    if isinstance(dependency, type):
        return f"{dependency.__module__}.{dependency.__qualname__}"
    return repr(dependency)
