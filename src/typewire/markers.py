from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, TypeVar, Union, get_args, get_origin

T = TypeVar("T")
INJECT_TAG = "inject"
_ANNOTATED_MARKER_MIN_ARGS = 2


@dataclass(frozen=True, slots=True)
class InjectedMarker:
    """A marker used to indicate a field or parameter should be injected.

    The optional ``key`` is carried for disambiguation by callers; resolution
    itself only looks at the annotated type.
    """

    key: str = ""


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a record field or parameter for injection.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``.

    Examples:
        .. code-block:: python

            @dataclass
            class Handler:
                repository: Injected[Repository] = None

            injector.apply(handler)
    """

else:

    class Injected:
        """Mark a record field or parameter for injection.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.

        Examples:
            .. code-block:: python

                @dataclass
                class Handler:
                    repository: Injected[Repository] = None

                injector.apply(handler)

        """

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                inner = args[0]
                metadata = args[1:]
                return _build_annotated((inner, *metadata, InjectedMarker()))
            return _build_annotated((item, InjectedMarker()))


def inject_field(key: str, **kwargs: Any) -> Any:
    """Declare a dataclass field eligible for injection under ``key``.

    The field is eligible when ``key`` is non-empty. Remaining keyword
    arguments go to ``dataclasses.field``; ``default`` falls back to ``None``
    so the record can be built before injection.

    Examples:
        .. code-block:: python

            @dataclass
            class Handler:
                repository: Repository = inject_field("primary")

    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[INJECT_TAG] = key
    if "default" not in kwargs and "default_factory" not in kwargs:
        kwargs["default"] = None
    return dataclasses.field(metadata=metadata, **kwargs)


def is_injected_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., InjectedMarker(...)]."""
    return _extract_injected_marker(annotation) is not None


def strip_injected_annotation(annotation: Any) -> Any:
    """Strip the injected marker while preserving other Annotated metadata."""
    if not is_injected_annotation(annotation):
        return annotation

    annotation_args = get_args(annotation)
    parameter_type = annotation_args[0]
    metadata = annotation_args[1:]
    filtered_metadata = tuple(item for item in metadata if not isinstance(item, InjectedMarker))
    if not filtered_metadata:
        return parameter_type
    return _build_annotated((parameter_type, *filtered_metadata))


def is_marked_tag(metadata: Any) -> bool:
    """Return True when field metadata carries a non-empty value under the inject tag."""
    if not metadata:
        return False
    return bool(metadata.get(INJECT_TAG))


def _extract_injected_marker(annotation: Any) -> InjectedMarker | None:
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None
    metadata = annotation_args[1:]
    return next(
        (item for item in metadata if isinstance(item, InjectedMarker)),
        None,
    )


def _build_annotated(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]


__all__ = [
    "INJECT_TAG",
    "Injected",
    "InjectedMarker",
    "inject_field",
    "is_injected_annotation",
    "is_marked_tag",
    "strip_injected_annotation",
]
