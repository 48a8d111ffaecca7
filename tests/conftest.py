"""Shared pytest fixtures for typewire tests."""

import pytest

from typewire.injector import Injector


@pytest.fixture()
def injector() -> Injector:
    """Empty injector without a parent."""
    return Injector()


@pytest.fixture()
def parent() -> Injector:
    """Empty injector used as a parent."""
    return Injector()


@pytest.fixture()
def child(parent: Injector) -> Injector:
    """Empty injector whose parent is the ``parent`` fixture."""
    injector = Injector()
    injector.set_parent(parent)
    return injector
