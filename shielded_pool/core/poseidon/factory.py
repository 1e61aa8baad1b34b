"""
Poseidon hasher factory.

Backends are registered by import path and loaded lazily, so the gmpy2
backend is only imported when selected. Every backend produces the same
bytes; the choice only affects speed.

Backend resolution, first non-empty source wins:

1. `prefer` (the CLI `--backend` flag)
2. the SHIELDED_POOL_HASHER environment variable
3. `EngineConfig.hasher_backend` from a loaded config
4. DEFAULT_HASHER_BACKEND
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import TYPE_CHECKING, Final, Optional

from ..config import DEFAULT_HASHER_BACKEND
from ..exceptions import UnknownBackend
from .hasher import PoseidonHasher

if TYPE_CHECKING:
    from ..config import EngineConfig

logger = logging.getLogger(__name__)

HASHER_ENV_VAR: Final[str] = "SHIELDED_POOL_HASHER"

HASHER_REGISTRY: Final[dict[str, str]] = {
    "portable": "shielded_pool.core.poseidon.portable.PortablePoseidonHasher",
    "gmpy2": "shielded_pool.core.poseidon.accelerated.Gmpy2PoseidonHasher",
}


def _format_valid_options() -> str:
    return ", ".join(sorted(HASHER_REGISTRY.keys()))


def resolve_backend_name(
    prefer: Optional[str] = None, config: Optional["EngineConfig"] = None
) -> str:
    """
    Name of the backend `get_hasher` would build.

    Raises:
        UnknownBackend: If the first set source names an unregistered backend
    """
    sources = (
        ("--backend", prefer),
        (HASHER_ENV_VAR, os.getenv(HASHER_ENV_VAR)),
        ("config", config.hasher_backend if config is not None else None),
    )
    for source, value in sources:
        if value is None or value == "":
            continue
        if not isinstance(value, str) or value not in HASHER_REGISTRY:
            raise UnknownBackend(
                f"Invalid hasher backend from {source}: {value!r}. "
                f"Valid options: {_format_valid_options()}"
            )
        return value
    return DEFAULT_HASHER_BACKEND


def _load_hasher_class(backend_name: str) -> type[PoseidonHasher]:
    import_path = HASHER_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import hasher module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        hasher_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Hasher class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(hasher_cls, type) or not issubclass(hasher_cls, PoseidonHasher):
        raise TypeError(f"Hasher reference {import_path!r} does not implement PoseidonHasher")

    return hasher_cls


def get_hasher(
    *, prefer: Optional[str] = None, config: Optional["EngineConfig"] = None
) -> PoseidonHasher:
    """
    Return a new Poseidon hasher for the resolved backend.

    Raises:
        UnknownBackend: If the backend name is not registered.
        ImportError: If the backend class cannot be imported.
        TypeError: If the class does not implement PoseidonHasher.
    """
    backend_name = resolve_backend_name(prefer, config)
    hasher = _load_hasher_class(backend_name)()
    logger.debug("Using Poseidon backend %s", hasher.name)
    return hasher
