"""Source adapter contract and resolution of adapter references."""

from __future__ import annotations

import importlib
from typing import Callable, Protocol, Sequence

from ...config import SourceConfig
from ..models import RawRecord


class SourceAdapter(Protocol):
    """Fetch the current tender listing of one source.

    Implementations raise ``FetchError`` (or any exception, which the
    pipeline converts) and enforce their own network timeouts.
    """

    def fetch(self, source_id: str) -> Sequence[RawRecord]: ...


class FunctionAdapter:
    """Adapt a plain ``fetch(source_id)`` callable to the adapter protocol."""

    def __init__(self, func: Callable[[str], Sequence[RawRecord]]) -> None:
        self.func = func

    def fetch(self, source_id: str) -> Sequence[RawRecord]:
        return self.func(source_id)


AdapterFactory = Callable[[SourceConfig], SourceAdapter]

_BUILTIN_ADAPTERS: dict[str, AdapterFactory] = {}


def register_adapter(name: str, factory: AdapterFactory) -> None:
    _BUILTIN_ADAPTERS[name] = factory


def builtin_adapters() -> list[str]:
    return sorted(_BUILTIN_ADAPTERS)


def _import_reference(reference: str) -> object:
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Adapter reference must look like 'package.module:attr', got {reference!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"Adapter {attr!r} not found in {module_name}") from exc


def resolve_adapter(source: SourceConfig) -> SourceAdapter:
    """Build the adapter named by ``source.adapter``.

    Built-in names come from the registry. ``module:attr`` references may
    point at a class (instantiated with the source config), an object that
    already has ``fetch``, or a bare callable taking the source id.
    """

    factory = _BUILTIN_ADAPTERS.get(source.adapter)
    if factory is not None:
        return factory(source)
    target = _import_reference(source.adapter)
    if isinstance(target, type):
        return target(source)
    if callable(getattr(target, "fetch", None)):
        return target  # type: ignore[return-value]
    if callable(target):
        return FunctionAdapter(target)  # type: ignore[arg-type]
    raise ValueError(f"Adapter reference {source.adapter!r} is not callable")


__all__ = [
    "AdapterFactory",
    "FunctionAdapter",
    "SourceAdapter",
    "builtin_adapters",
    "register_adapter",
    "resolve_adapter",
]
