from __future__ import annotations

import functools
import inspect
import logging
import weakref
from collections.abc import Callable, Iterable
from typing import Any, TypeVar, cast, overload

from typewire.capabilities import implements, interface_of, is_capability
from typewire.exceptions import TypewireNotCallableError, TypewireValueNotFoundError
from typewire.injection import CallableInspection, CallableInspector, RecordFieldInspector
from typewire.types import INVALID, HeldValue, TypeDescriptor

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)


class Injector:
    """Map values by type and inject them into records and callables.

    Values are registered under a type descriptor with ``map`` (the value's
    own type), ``map_to`` (a capability such as a Protocol or an abstract
    class) or ``set`` (any descriptor). ``get`` resolves a descriptor by
    exact match first, then by scanning local values for one whose type
    implements the requested capability, then through the parent injector.

    ``apply`` fills marked fields of a record and ``invoke`` calls a function
    with every argument resolved by type. Every registration behaves as a
    singleton for its descriptor; re-registering overwrites.

    Injectors are not thread-safe. Serialize access externally when sharing
    one between threads.
    """

    def __init__(self, *, parent: Injector | None = None) -> None:
        """Initialize an empty injector.

        Args:
            parent: Optional injector consulted when a descriptor cannot be
                resolved locally. Equivalent to calling ``set_parent`` later.

        """
        self._values: dict[TypeDescriptor, HeldValue] = {}
        self._parent = parent
        self._record_inspector = RecordFieldInspector()
        self._callable_inspector = CallableInspector()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(values={len(self._values)}, has_parent={self._parent is not None})"

    def __contains__(self, descriptor: TypeDescriptor) -> bool:
        return self.get(descriptor).is_valid

    @property
    def parent(self) -> Injector | None:
        """Return the injector consulted after local lookups fail."""
        return self._parent

    def set_parent(self, parent: Injector | None) -> None:
        """Replace the parent injector.

        Cycles in the parent chain are not detected and make unresolved
        lookups recurse without bound.
        """
        logger.debug("Setting parent of %r to %r", self, parent)
        self._parent = parent

    def map(self, value: Any) -> Injector:
        """Register ``value`` under its own runtime type.

        Returns:
            This injector, for chaining.

        """
        held = HeldValue.of(value)
        logger.debug("Mapping %s", held.type_.__qualname__)
        self._values[held.type_] = held
        return self

    def map_to(self, value: Any, capability: Any) -> Injector:
        """Register ``value`` under a capability type instead of its own type.

        Args:
            value: Implementation to register.
            capability: Protocol or abstract class, optionally wrapped in
                ``type[...]``, ``Annotated[...]`` or ``weakref.ref``.

        Returns:
            This injector, for chaining.

        Raises:
            TypewireNotACapabilityError: If ``capability`` does not denote a
                capability type.

        """
        descriptor = interface_of(capability)
        logger.debug("Mapping %s to capability %s", type(value).__qualname__, descriptor.__qualname__)
        self._values[descriptor] = HeldValue.of(value)
        return self

    def set(self, descriptor: TypeDescriptor, value: HeldValue | Any) -> Injector:
        """Register a value under an explicit descriptor.

        Use this for descriptors that ``map`` cannot derive, such as
        ``Callable[[int], str]`` or ``Annotated`` tokens. Raw values are
        wrapped with ``HeldValue.of``.

        Returns:
            This injector, for chaining.

        """
        held = value if isinstance(value, HeldValue) else HeldValue.of(value)
        logger.debug("Setting %r", descriptor)
        self._values[descriptor] = held
        return self

    def get(self, descriptor: TypeDescriptor) -> HeldValue:
        """Resolve ``descriptor`` to a held value.

        Lookup order is an exact local match, then the first local value whose
        type implements ``descriptor`` when it is a capability, then the
        parent chain. Which implementor wins when several qualify is not
        defined.

        Returns:
            The held value, or ``INVALID`` when nothing matches.

        """
        held = self._values.get(descriptor, INVALID)
        if held.is_valid:
            return held

        if is_capability(descriptor):
            held = self._find_implementor(descriptor)
            if held.is_valid:
                logger.debug("Resolved capability %s by implementor %s", descriptor, held.type_)
                return held

        if self._parent is not None:
            logger.debug("Delegating %r to parent injector", descriptor)
            return self._parent.get(descriptor)

        return INVALID

    @overload
    def resolve(self, descriptor: type[T]) -> T: ...

    @overload
    def resolve(self, descriptor: Any) -> Any: ...

    def resolve(self, descriptor: Any) -> Any:
        """Return the value for ``descriptor`` or raise when it is not registered.

        Raises:
            TypewireValueNotFoundError: If ``get`` returns ``INVALID``.

        """
        held = self.get(descriptor)
        if not held.is_valid:
            raise TypewireValueNotFoundError(descriptor)
        return held.value

    def apply(self, record: Any) -> None:
        """Assign registered values to the marked fields of ``record``.

        ``weakref.ref`` handles are dereferenced first and ``weakref.proxy``
        objects are injected through. Inputs that are not
        records are ignored without error. Fields are processed in declaration
        order; a field is injected when it is public, writable and marked with
        ``Injected[...]`` or ``inject_field(...)``.

        Raises:
            TypewireValueNotFoundError: On the first marked field whose type
                cannot be resolved. Fields assigned before it keep their
                values.

        """
        target = record
        while isinstance(target, weakref.ref):
            target = target()

        record_type = self._record_inspector.record_type_of(target)
        if record_type is None:
            logger.debug("Skipping injection into non-record %r", type(target))
            return

        for field in self._record_inspector.inspect_record(record_type):
            if not field.injectable:
                continue
            held = self.get(field.dependency)
            if not held.is_valid:
                raise TypewireValueNotFoundError(field.dependency)
            setattr(target, field.name, held.value)

    def invoke(self, callable_obj: Callable[..., Any]) -> tuple[Any, ...]:
        """Call ``callable_obj`` with every argument resolved by its declared type.

        All arguments are resolved before the call. Unannotated parameters
        resolve ``typing.Any``; ``*args`` and ``**kwargs`` stay empty.

        Returns:
            The call results. Calling a class yields the new instance;
            otherwise results are empty for ``-> None``, the elements of a
            fixed-length ``-> tuple[...]`` result, otherwise a one-element tuple.

        Raises:
            TypewireNotCallableError: If ``callable_obj`` is not callable.
            TypewireInvalidSignatureError: If the signature cannot be inspected.
            TypewireValueNotFoundError: If any argument cannot be resolved, in
                which case no call is made.

        """
        if not callable(callable_obj):
            raise TypewireNotCallableError(callable_obj)

        inspection = self._callable_inspector.inspect_callable(callable_obj)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for parameter in inspection.parameters:
            held = self.get(parameter.dependency)
            if not held.is_valid:
                raise TypewireValueNotFoundError(parameter.dependency)
            if parameter.positional:
                args.append(held.value)
            else:
                kwargs[parameter.name] = held.value

        result = callable_obj(*args, **kwargs)
        return self._callable_inspector.split_results(
            callable_obj=callable_obj,
            signature=inspection.signature,
            result=result,
        )

    def inject(self, func: F) -> F:
        """Wrap ``func`` so its ``Injected[...]`` parameters resolve at call time.

        Injected parameters are hidden from the wrapper's ``__signature__``.
        Passing one explicitly as a keyword argument overrides injection.
        Coroutine functions get an async wrapper.

        Examples:
            .. code-block:: python

                @injector.inject
                def handle(request_id: int, repository: Injected[Repository]) -> str:
                    return repository.load(request_id)

                handle(42)

        Raises:
            TypewireNotCallableError: If ``func`` is not callable.

        """
        if not callable(func):
            raise TypewireNotCallableError(func)

        inspection = self._callable_inspector.inspect_callable(func)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _async_injected(*args: Any, **kwargs: Any) -> Any:
                call_args, call_kwargs = self._bind_injected_call(inspection, args, kwargs)
                return await func(*call_args, **call_kwargs)

            wrapper: Callable[..., Any] = _async_injected
        else:

            @functools.wraps(func)
            def _injected(*args: Any, **kwargs: Any) -> Any:
                call_args, call_kwargs = self._bind_injected_call(inspection, args, kwargs)
                return func(*call_args, **call_kwargs)

            wrapper = _injected

        wrapper.__signature__ = inspection.public_signature  # type: ignore[attr-defined]
        return cast("F", wrapper)

    def _bind_injected_call(
        self,
        inspection: CallableInspection,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        injected_values: dict[str, Any] = {}
        for parameter in inspection.injected_parameters:
            if parameter.name in kwargs:
                injected_values[parameter.name] = kwargs.pop(parameter.name)
                continue
            held = self.get(parameter.dependency)
            if not held.is_valid:
                raise TypewireValueNotFoundError(parameter.dependency)
            injected_values[parameter.name] = held.value

        return self._callable_inspector.bind_call(
            inspection=inspection,
            args=args,
            kwargs=kwargs,
            injected_values=injected_values,
        )

    def _find_implementor(self, capability: TypeDescriptor) -> HeldValue:
        return next(
            (held for held in self._candidates() if implements(held.type_, capability)),
            INVALID,
        )

    def _candidates(self) -> Iterable[HeldValue]:
        return (held for held in self._values.values() if held.is_valid)


__all__ = ["Injector"]
