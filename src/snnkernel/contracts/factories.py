"""Factory/registry contracts.

Node models are created by name so that callers (CLI, builders) never import
concrete model classes directly.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class IRegistry(Protocol[T]):
    """Named registry mapping string keys to constructors."""

    def register(self, key: str, ctor: Callable[..., T]) -> None:
        ...

    def create(self, key: str, **kwargs: Any) -> T:
        ...

    def keys(self) -> list[str]:
        ...


class Registry(IRegistry[T]):
    """Named registry with optional aliases."""

    def __init__(self, *, label: str | None = None) -> None:
        self._label = label or "registry"
        self._ctors: dict[str, Callable[..., T]] = {}
        self._aliases: dict[str, str] = {}
        self._deprecated: set[str] = set()

    def register(self, key: str, ctor: Callable[..., T]) -> None:
        if key in self._ctors or key in self._aliases:
            raise KeyError(f"{self._label} already has key '{key}'.")
        self._ctors[key] = ctor

    def register_alias(self, alias: str, target: str, *, deprecated: bool = False) -> None:
        if alias in self._ctors or alias in self._aliases:
            raise KeyError(f"{self._label} already has key '{alias}'.")
        if target not in self._ctors:
            raise KeyError(f"{self._label} has no target '{target}' for alias '{alias}'.")
        self._aliases[alias] = target
        if deprecated:
            self._deprecated.add(alias)

    def create(self, key: str, **kwargs: Any) -> T:
        resolved = self._aliases.get(key, key)
        if resolved not in self._ctors:
            raise KeyError(f"{self._label} has no key '{key}'.")
        if key in self._deprecated:
            warnings.warn(
                f"{self._label} key '{key}' is deprecated; use '{resolved}' instead.",
                DeprecationWarning,
                stacklevel=2,
            )
        return self._ctors[resolved](**kwargs)

    def keys(self) -> list[str]:
        return sorted(set(self._ctors) | set(self._aliases))
