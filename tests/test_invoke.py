import inspect
from typing import Any

import pytest

from tests.domain import Database, EnglishGreeter, Greeter, Settings
from typewire.exceptions import (
    TypewireError,
    TypewireInvalidSignatureError,
    TypewireNotCallableError,
    TypewireValueNotFoundError,
)
from typewire.injector import Injector
from typewire.markers import Injected


class Report:
    def __init__(self, settings: Settings, database: Database) -> None:
        self.settings = settings
        self.database = database


def build_report(settings: Settings, database: Database) -> Report:
    return Report(settings, database)


class TestInvoke:
    def test_returns_single_result(self, injector: Injector) -> None:
        settings = Settings()
        database = Database()
        injector.map(settings).map(database)

        results = injector.invoke(build_report)

        assert len(results) == 1
        report = results[0]
        assert isinstance(report, Report)
        assert report.settings is settings
        assert report.database is database

    def test_missing_argument_raises_without_calling(self, injector: Injector) -> None:
        calls: list[tuple[Settings, Database]] = []

        def record(settings: Settings, database: Database) -> None:
            calls.append((settings, database))

        injector.map(Settings())

        with pytest.raises(TypewireValueNotFoundError) as exc_info:
            injector.invoke(record)

        assert exc_info.value.dependency is Database
        assert "Database" in str(exc_info.value)
        assert calls == []

    def test_capability_parameters(self, injector: Injector) -> None:
        def welcome(greeter: Greeter) -> str:
            return greeter.greet("Ada")

        injector.map(EnglishGreeter())

        assert injector.invoke(welcome) == ("Hello, Ada",)

    def test_arguments_from_parent(self, child: Injector, parent: Injector) -> None:
        parent.map(Settings(debug=True))

        def debug_enabled(settings: Settings) -> bool:
            return settings.debug

        assert child.invoke(debug_enabled) == (True,)

    def test_none_return_yields_no_results(self, injector: Injector) -> None:
        def noop() -> None:
            return None

        assert injector.invoke(noop) == ()

    def test_fixed_tuple_return_yields_each_value(self, injector: Injector) -> None:
        injector.map(Settings()).map(Database("sqlite://memory"))

        def describe(settings: Settings, database: Database) -> tuple[bool, str]:
            return settings.debug, database.url

        assert injector.invoke(describe) == (False, "sqlite://memory")

    def test_variable_tuple_return_is_a_single_result(self, injector: Injector) -> None:
        def numbers() -> tuple[int, ...]:
            return (1, 2, 3)

        assert injector.invoke(numbers) == ((1, 2, 3),)

    def test_unannotated_return_is_a_single_result(self, injector: Injector) -> None:
        def nothing():  # type: ignore[no-untyped-def]
            return None

        assert injector.invoke(nothing) == (None,)

    def test_class_is_constructed(self, injector: Injector) -> None:
        settings = Settings()
        database = Database()
        injector.map(settings).map(database)

        (report,) = injector.invoke(Report)

        assert report.settings is settings
        assert report.database is database

    def test_class_result_ignores_init_return_annotation(self, injector: Injector) -> None:
        class Counter:
            def __init__(self, settings: Settings) -> None:
                self.settings = settings

        settings = Settings()
        injector.map(settings)

        results = injector.invoke(Counter)

        assert len(results) == 1
        assert isinstance(results[0], Counter)
        assert results[0].settings is settings

    def test_bound_method(self, injector: Injector) -> None:
        class Service:
            def run(self, settings: Settings) -> bool:
                return settings.debug

        injector.map(Settings(debug=True))

        assert injector.invoke(Service().run) == (True,)

    def test_keyword_only_parameters(self, injector: Injector) -> None:
        def connect(settings: Settings, *, database: Database) -> str:
            return database.url

        injector.map(Settings()).map(Database("mysql://"))

        assert injector.invoke(connect) == ("mysql://",)

    def test_variadic_parameters_are_not_resolved(self, injector: Injector) -> None:
        def collect(settings: Settings, *args: Any, **kwargs: Any) -> int:
            return len(args) + len(kwargs)

        injector.map(Settings())

        assert injector.invoke(collect) == (0,)

    def test_unannotated_parameter_resolves_any(self, injector: Injector) -> None:
        def echo(value):  # type: ignore[no-untyped-def]
            return value

        with pytest.raises(TypewireValueNotFoundError) as exc_info:
            injector.invoke(echo)
        assert exc_info.value.dependency is Any

        injector.set(Any, "anything")
        assert injector.invoke(echo) == ("anything",)

    def test_injected_marker_is_stripped(self, injector: Injector) -> None:
        def read(settings: Injected[Settings]) -> bool:
            return settings.debug

        injector.map(Settings(debug=True))

        assert injector.invoke(read) == (True,)

    def test_callable_instance(self, injector: Injector) -> None:
        class Job:
            def __call__(self, database: Database) -> str:
                return database.url

        injector.map(Database("redis://"))

        assert injector.invoke(Job()) == ("redis://",)

    @pytest.mark.parametrize("target", [42, "build_report", None, Settings()])
    def test_non_callable_raises(self, injector: Injector, target: object) -> None:
        with pytest.raises(TypewireNotCallableError) as exc_info:
            injector.invoke(target)  # type: ignore[arg-type]

        assert exc_info.value.target is target
        assert isinstance(exc_info.value, TypeError)
        assert isinstance(exc_info.value, TypewireError)

    def test_exceptions_from_callable_propagate(self, injector: Injector) -> None:
        def explode(settings: Settings) -> None:
            msg = "boom"
            raise RuntimeError(msg)

        injector.map(Settings())

        with pytest.raises(RuntimeError, match="boom"):
            injector.invoke(explode)

    def test_malformed_signature_raises(self, injector: Injector) -> None:
        class Opaque:
            __signature__ = "not a signature"

            def __call__(self) -> None:
                pass

        target = Opaque()

        with pytest.raises(TypewireInvalidSignatureError) as exc_info:
            injector.invoke(target)

        assert exc_info.value.target is target
        assert isinstance(exc_info.value, TypeError)
        assert isinstance(exc_info.value, TypewireError)

    def test_builtin_without_signature_raises(self, injector: Injector) -> None:
        try:
            inspect.signature(dict)
        except ValueError:
            pass
        else:
            pytest.skip("dict exposes a signature on this interpreter")

        with pytest.raises(TypewireInvalidSignatureError):
            injector.invoke(dict)
