from __future__ import annotations

import dataclasses
import inspect
import sys
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, get_args, get_origin, get_type_hints

from typewire.exceptions import TypewireInvalidSignatureError
from typewire.markers import (
    is_injected_annotation,
    is_marked_tag,
    strip_injected_annotation,
)

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)
_VARIADIC_KINDS = (
    inspect.Parameter.VAR_POSITIONAL,
    inspect.Parameter.VAR_KEYWORD,
)
_ATTRS_FROZEN_SETATTR = "_frozen_setattrs"


@dataclass(frozen=True, slots=True)
class RecordField:
    """Injection metadata for a single record field."""

    name: str
    dependency: Any
    settable: bool
    marked: bool

    @property
    def injectable(self) -> bool:
        return self.settable and self.marked


@dataclass(frozen=True, slots=True)
class CallableParameter:
    """Injection metadata for a single callable parameter."""

    name: str
    kind: inspect._ParameterKind
    dependency: Any
    injected: bool

    @property
    def positional(self) -> bool:
        return self.kind in _POSITIONAL_KINDS


@dataclass(frozen=True, slots=True)
class CallableInspection:
    """Injection metadata derived from a callable signature and annotations."""

    signature: inspect.Signature
    parameters: tuple[CallableParameter, ...]
    public_signature: inspect.Signature

    @property
    def injected_parameters(self) -> tuple[CallableParameter, ...]:
        return tuple(parameter for parameter in self.parameters if parameter.injected)


@dataclass(slots=True)
class RecordFieldInspector:
    """Inspect record instances for fields eligible for injection."""

    def record_type_of(self, candidate: object) -> type[Any] | None:
        """Return the class of a record instance, or ``None`` for non-records.

        Classes, routines, modules, tuples and builtin values are not records.
        ``weakref.proxy`` objects report the class of their referent; a dead
        proxy is not a record.
        """
        if candidate is None:
            return None
        try:
            if isinstance(candidate, weakref.ProxyTypes):
                record_type: type[Any] = candidate.__class__
            else:
                record_type = type(candidate)
        except ReferenceError:
            return None

        if issubclass(record_type, (type, tuple)) or record_type.__module__ == "builtins":
            return None
        if inspect.isroutine(candidate) or inspect.ismodule(candidate):
            return None
        return record_type

    def inspect_record(self, record_type: type[Any]) -> tuple[RecordField, ...]:
        """Return every declared field of ``record_type`` in declaration order."""
        annotations = self.resolved_annotations(record_type=record_type)
        if dataclasses.is_dataclass(record_type):
            declared = [(field.name, field.metadata) for field in dataclasses.fields(record_type)]
        else:
            declared = [
                (name, None)
                for name, annotation in annotations.items()
                if get_origin(annotation) is not ClassVar
            ]

        frozen = self.is_frozen(record_type=record_type)
        return tuple(
            RecordField(
                name=name,
                dependency=strip_injected_annotation(annotations.get(name)),
                settable=not frozen and self.is_settable(record_type=record_type, name=name),
                marked=(
                    is_injected_annotation(annotations.get(name)) or is_marked_tag(metadata)
                ),
            )
            for name, metadata in declared
        )

    def resolved_annotations(self, *, record_type: type[Any]) -> dict[str, Any]:
        """Resolve class annotations with extras, base classes first.

        When the class as a whole cannot be resolved, for example because one
        annotation names a ``TYPE_CHECKING``-only import, each annotation is
        resolved on its own and only the broken ones stay raw strings.
        """
        try:
            return get_type_hints(record_type, include_extras=True)
        except (AttributeError, NameError, TypeError):
            resolved: dict[str, Any] = {}
            for klass in reversed(record_type.__mro__):
                for name, annotation in _own_annotations(klass).items():
                    resolved[name] = self.resolve_annotation(
                        owner=klass,
                        name=name,
                        annotation=annotation,
                    )
            return resolved

    def resolve_annotation(self, *, owner: type[Any], name: str, annotation: Any) -> Any:
        """Resolve a single class annotation in the namespace of ``owner``."""
        if not isinstance(annotation, str):
            return annotation
        single = type(
            owner.__name__,
            (),
            {"__module__": owner.__module__, "__annotations__": {name: annotation}},
        )
        try:
            return get_type_hints(single, localns=dict(vars(owner)), include_extras=True)[name]
        except (AttributeError, NameError, SyntaxError, TypeError):
            return annotation

    def is_frozen(self, *, record_type: type[Any]) -> bool:
        """Return whether instances of ``record_type`` reject attribute assignment.

        Frozen dataclasses, frozen attrs classes and frozen pydantic models are
        recognized.
        """
        params = getattr(record_type, "__dataclass_params__", None)
        if params is not None and params.frozen:
            return True
        if hasattr(record_type, "__attrs_attrs__"):
            setattr_name = getattr(record_type.__setattr__, "__name__", "")
            if setattr_name == _ATTRS_FROZEN_SETATTR:
                return True
        model_config = getattr(record_type, "model_config", None)
        return isinstance(model_config, Mapping) and bool(model_config.get("frozen"))

    def is_settable(self, *, record_type: type[Any], name: str) -> bool:
        """Return whether a field can be assigned on instances of ``record_type``."""
        if name.startswith("_"):
            return False
        attribute = inspect.getattr_static(record_type, name, None)
        if isinstance(attribute, property):
            return attribute.fset is not None
        return True


@dataclass(slots=True)
class CallableInspector:
    """Inspect callables for the dependencies of their parameters."""

    def inspect_callable(self, callable_obj: Callable[..., Any]) -> CallableInspection:
        """Build injection metadata and a public signature for a callable.

        Unannotated parameters depend on ``typing.Any``. Variadic parameters
        are never resolved.
        """
        signature = self.signature_for(callable_obj=callable_obj)
        parameters = tuple(
            CallableParameter(
                name=parameter.name,
                kind=parameter.kind,
                dependency=strip_injected_annotation(self.parameter_annotation(parameter)),
                injected=is_injected_annotation(parameter.annotation),
            )
            for parameter in signature.parameters.values()
            if parameter.kind not in _VARIADIC_KINDS
        )
        hidden_parameter_names = {
            parameter.name for parameter in parameters if parameter.injected
        }
        return CallableInspection(
            signature=signature,
            parameters=parameters,
            public_signature=self.build_public_signature(
                signature=signature,
                hidden_parameter_names=hidden_parameter_names,
            ),
        )

    def signature_for(self, *, callable_obj: Callable[..., Any]) -> inspect.Signature:
        """Return the callable signature with string annotations evaluated when possible.

        Raises:
            TypewireInvalidSignatureError: If the callable has no inspectable
                signature, as with many builtin types.

        """
        try:
            return inspect.signature(callable_obj, eval_str=True)
        except ValueError as error:
            raise TypewireInvalidSignatureError(callable_obj) from error
        except (AttributeError, NameError, SyntaxError, TypeError):
            pass

        try:
            return inspect.signature(callable_obj)
        except (TypeError, ValueError) as error:
            raise TypewireInvalidSignatureError(callable_obj) from error

    def parameter_annotation(self, parameter: inspect.Parameter) -> Any:
        if parameter.annotation is inspect.Parameter.empty:
            return Any
        return parameter.annotation

    def build_public_signature(
        self,
        *,
        signature: inspect.Signature,
        hidden_parameter_names: set[str],
    ) -> inspect.Signature:
        """Build a signature that hides injected parameters."""
        filtered_parameters = [
            parameter
            for parameter in signature.parameters.values()
            if parameter.name not in hidden_parameter_names
        ]
        return signature.replace(parameters=filtered_parameters)

    def split_results(
        self,
        *,
        callable_obj: Callable[..., Any],
        signature: inspect.Signature,
        result: Any,
    ) -> tuple[Any, ...]:
        """Return call results as a tuple matching the declared return arity.

        Calling a class always yields the new instance, whatever ``__init__``
        declares. Otherwise ``-> None`` yields no results, a fixed-length
        ``-> tuple[A, B]`` yields each element and anything else yields the
        single returned value.
        """
        if inspect.isclass(callable_obj):
            return (result,)
        annotation = signature.return_annotation
        if annotation is None or annotation is type(None) or annotation == "None":
            return ()
        if get_origin(annotation) is tuple and isinstance(result, tuple):
            args = get_args(annotation)
            if args and args[-1] is not Ellipsis and len(args) == len(result):
                return tuple(result)
        return (result,)

    def bind_call(
        self,
        *,
        inspection: CallableInspection,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        injected_values: Mapping[str, Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        """Merge caller arguments with injected values into a full call.

        Caller arguments are bound against the public signature so their
        positions skip the hidden injected parameters. Positional parameters are
        passed positionally until the first omitted one, so values bound to
        ``*args`` keep their place after them.
        """
        bound = inspection.public_signature.bind(*args, **kwargs)
        arguments = {**bound.arguments, **injected_values}

        call_args: list[Any] = []
        call_kwargs: dict[str, Any] = {}
        positional_open = True
        for parameter in inspection.signature.parameters.values():
            if parameter.name not in arguments:
                if parameter.kind in _POSITIONAL_KINDS:
                    positional_open = False
                continue
            value = arguments[parameter.name]
            if parameter.kind is inspect.Parameter.POSITIONAL_ONLY or (
                parameter.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD and positional_open
            ):
                call_args.append(value)
            elif parameter.kind is inspect.Parameter.VAR_POSITIONAL:
                call_args.extend(value)
            elif parameter.kind is inspect.Parameter.VAR_KEYWORD:
                call_kwargs.update(value)
            else:
                call_kwargs[parameter.name] = value
        return call_args, call_kwargs


def _own_annotations(klass: type[Any]) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(klass))
    except NameError:
        if sys.version_info < (3, 14):
            raise
        import annotationlib  # noqa: PLC0415

        return dict(annotationlib.get_annotations(klass, format=annotationlib.Format.STRING))


__all__ = [
    "CallableInspection",
    "CallableInspector",
    "CallableParameter",
    "RecordField",
    "RecordFieldInspector",
]
