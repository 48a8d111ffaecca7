import gc
import weakref
from abc import ABC, abstractmethod
from typing import Annotated, Protocol

import pytest

from tests.domain import (
    Account,
    Closer,
    Database,
    EnglishGreeter,
    ExplicitGreeter,
    Greeter,
    LegacyStore,
    MemoryStore,
    Named,
    Store,
)
from typewire.capabilities import implements, interface_of, is_capability, is_runtime_class
from typewire.exceptions import TypewireError, TypewireNotACapabilityError


class TestIsCapability:
    @pytest.mark.parametrize("descriptor", [Greeter, Closer, Named, Store])
    def test_protocols_and_abstract_classes(self, descriptor: object) -> None:
        assert is_capability(descriptor)

    @pytest.mark.parametrize(
        "descriptor",
        [int, str, Database, MemoryStore, ExplicitGreeter, list[int], Annotated[Greeter, "x"]],
    )
    def test_concrete_descriptors(self, descriptor: object) -> None:
        assert not is_capability(descriptor)


class TestImplements:
    def test_structural_protocol_match(self) -> None:
        assert implements(EnglishGreeter, Greeter)

    def test_nominal_protocol_match(self) -> None:
        assert implements(ExplicitGreeter, Greeter)

    def test_missing_protocol_member(self) -> None:
        assert not implements(Database, Greeter)
        assert not implements(EnglishGreeter, Closer)

    def test_annotated_field_satisfies_data_member(self) -> None:
        assert implements(Account, Named)

    def test_abstract_subclass(self) -> None:
        assert implements(MemoryStore, Store)

    def test_abstract_virtual_subclass(self) -> None:
        assert implements(LegacyStore, Store)

    def test_structure_alone_does_not_satisfy_abstract_class(self) -> None:
        class LookalikeStore:
            def save(self, key: str, value: str) -> None:
                pass

        assert not implements(LookalikeStore, Store)

    def test_reflects_registration_after_negative_answer(self) -> None:
        class Sink(ABC):
            @abstractmethod
            def write(self, data: str) -> None: ...

        class FileSink:
            def write(self, data: str) -> None:
                pass

        assert not implements(FileSink, Sink)

        Sink.register(FileSink)

        assert implements(FileSink, Sink)

    def test_structural_answers_do_not_keep_classes_alive(self) -> None:
        class Transient:
            def greet(self, name: str) -> str:
                return name

        assert implements(Transient, Greeter)
        transient_ref = weakref.ref(Transient)

        del Transient
        gc.collect()

        assert transient_ref() is None

    def test_repeated_structural_checks_agree(self) -> None:
        assert implements(EnglishGreeter, Greeter) is implements(EnglishGreeter, Greeter)
        assert implements(Database, Greeter) is implements(Database, Greeter)

    def test_concrete_target_is_never_implemented(self) -> None:
        assert not implements(MemoryStore, MemoryStore)

    def test_protocol_inheritance(self) -> None:
        class LoudGreeter(Greeter, Protocol):
            def shout(self) -> str: ...

        class Town:
            def greet(self, name: str) -> str:
                return name

            def shout(self) -> str:
                return "HEY"

        assert implements(Town, LoudGreeter)
        assert not implements(EnglishGreeter, LoudGreeter)


class TestInterfaceOf:
    def test_returns_capability_itself(self) -> None:
        assert interface_of(Greeter) is Greeter

    @pytest.mark.parametrize(
        "handle",
        [
            type[Greeter],
            type[type[Greeter]],
            Annotated[Greeter, "primary"],
            Annotated[type[Greeter], "primary"],
        ],
    )
    def test_unwraps_indirection(self, handle: object) -> None:
        assert interface_of(handle) is Greeter

    def test_unwraps_weak_reference(self) -> None:
        assert interface_of(weakref.ref(Store)) is Store

    @pytest.mark.parametrize("handle", [Database, type[Database], int, None, "Greeter"])
    def test_rejects_non_capabilities(self, handle: object) -> None:
        with pytest.raises(TypewireNotACapabilityError) as exc_info:
            interface_of(handle)

        assert exc_info.value.handle is handle
        assert isinstance(exc_info.value, TypewireError)
        assert isinstance(exc_info.value, TypeError)


def test_is_runtime_class_rejects_generic_aliases() -> None:
    assert is_runtime_class(int)
    assert not is_runtime_class(list[int])
    assert not is_runtime_class(EnglishGreeter())
