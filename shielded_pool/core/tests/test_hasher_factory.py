"""Tests for the Poseidon hasher factory and backend resolution."""

import pytest

from shielded_pool.core.config import EngineConfig
from shielded_pool.core.exceptions import ConfigurationError, UnknownBackend
from shielded_pool.core.poseidon import (
    PoseidonHasher,
    PortablePoseidonHasher,
    factory,
    get_hasher,
    resolve_backend_name,
)


class TestResolveBackendName:
    def test_default_is_portable(self) -> None:
        assert resolve_backend_name() == "portable"

    def test_env_var_selects_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "gmpy2")
        assert resolve_backend_name() == "gmpy2"

    def test_prefer_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "gmpy2")
        assert resolve_backend_name(prefer="portable") == "portable"

    def test_config_used_when_nothing_else_set(self) -> None:
        assert resolve_backend_name(config=EngineConfig(hasher_backend="gmpy2")) == "gmpy2"

    def test_env_beats_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "portable")
        config = EngineConfig(hasher_backend="gmpy2")
        assert resolve_backend_name(config=config) == "portable"

    def test_prefer_beats_config(self) -> None:
        config = EngineConfig(hasher_backend="gmpy2")
        assert resolve_backend_name(prefer="portable", config=config) == "portable"

    def test_empty_values_are_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "")
        assert resolve_backend_name(prefer="") == "portable"

    def test_invalid_prefer(self) -> None:
        with pytest.raises(UnknownBackend, match="from --backend"):
            resolve_backend_name(prefer="numba")

    def test_invalid_env_names_its_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "numba")
        with pytest.raises(UnknownBackend, match="SHIELDED_POOL_HASHER"):
            resolve_backend_name()

    def test_invalid_env_ignored_when_prefer_set(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIELDED_POOL_HASHER", "numba")
        assert resolve_backend_name(prefer="portable") == "portable"


def test_default_is_portable():
    assert isinstance(get_hasher(), PortablePoseidonHasher)


def test_prefer_selects_backend():
    pytest.importorskip("gmpy2")
    hasher = get_hasher(prefer="gmpy2")
    assert hasher.name == "gmpy2"
    assert isinstance(hasher, PoseidonHasher)


def test_config_selects_backend():
    pytest.importorskip("gmpy2")
    assert get_hasher(config=EngineConfig(hasher_backend="gmpy2")).name == "gmpy2"


def test_unknown_backend():
    with pytest.raises(UnknownBackend):
        get_hasher(prefer="numba")


def test_unknown_backend_is_configuration_error():
    with pytest.raises(ConfigurationError):
        get_hasher(prefer="numba")


def test_registry_entry_must_implement_interface(monkeypatch):
    monkeypatch.setitem(
        factory.HASHER_REGISTRY, "portable", "shielded_pool.core.field.FieldElement"
    )
    with pytest.raises(TypeError, match="does not implement PoseidonHasher"):
        get_hasher()


def test_missing_module_raises_import_error(monkeypatch):
    monkeypatch.setitem(
        factory.HASHER_REGISTRY, "portable", "shielded_pool.core.missing.Hasher"
    )
    with pytest.raises(ImportError):
        get_hasher()
