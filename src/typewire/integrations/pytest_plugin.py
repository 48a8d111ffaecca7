from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest

from typewire.injection import CallableInspector, CallableParameter
from typewire.injector import Injector

_TYPEWIRE_INJECTOR_ATTR = "_typewire_injector"
_TYPEWIRE_INJECTED_PARAMETERS_ATTR = "__typewire_pytest_injected_parameters__"
_TYPEWIRE_ORIGINAL_SIGNATURE_ATTR = "__typewire_pytest_original_signature__"
_CALLABLE_INSPECTOR = CallableInspector()


@pytest.fixture()
def typewire_injector() -> Injector:
    """Create a per-test injector used by the plugin.

    Tests that use ``Injected[...]`` parameters resolve them from this injector.
    Override the fixture to register values, for example by returning
    ``Injector().map(settings)``.

    Returns:
        A new, empty ``Injector``.

    """
    return Injector()


@pytest.fixture(autouse=True)
def _typewire_state(
    request: pytest.FixtureRequest,
    typewire_injector: Injector,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _TYPEWIRE_INJECTOR_ATTR, typewire_injector)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide ``Injected[...]`` parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names. This hook rewrites
    the signature of test functions with injected parameters so pytest does not
    look for fixtures with those names.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not callable(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    callable_obj = cast("Callable[..., Any]", obj)
    inspection = _CALLABLE_INSPECTOR.inspect_callable(callable_obj)
    if not inspection.injected_parameters:
        return None

    obj_as_any = cast("Any", obj)
    obj_as_any.__dict__[_TYPEWIRE_INJECTED_PARAMETERS_ATTR] = inspection.injected_parameters
    obj_as_any.__dict__[_TYPEWIRE_ORIGINAL_SIGNATURE_ATTR] = inspection.signature
    obj_as_any.__signature__ = inspection.public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Resolve ``Injected[...]`` test parameters from the ``typewire_injector`` fixture.

    The test callable is swapped for ``injector.inject(original)`` for the
    duration of the call. Tests without injected parameters are left alone.

    Yields:
        Control back to pytest around test execution.

    """
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    original_callable_as_any = cast("Any", original_callable)
    injected_parameters = cast(
        "tuple[CallableParameter, ...] | None",
        getattr(original_callable_as_any, _TYPEWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    injector = cast("Injector | None", getattr(pyfuncitem, _TYPEWIRE_INJECTOR_ATTR, None))
    if not injected_parameters or injector is None:
        yield
        return

    function = cast("Any", getattr(original_callable, "__func__", original_callable))
    signature_override = function.__signature__
    function.__signature__ = getattr(
        function,
        _TYPEWIRE_ORIGINAL_SIGNATURE_ATTR,
    )
    try:
        pyfuncitem.obj = injector.inject(original_callable)
    finally:
        function.__signature__ = signature_override

    try:
        yield
    finally:
        pyfuncitem.obj = original_callable


__all__ = ["typewire_injector"]
