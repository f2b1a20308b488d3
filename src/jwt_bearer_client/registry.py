"""Name to instance lookup used to wire caches and trust stores together."""
from __future__ import annotations

from typing import Dict, Generic, Iterable, Iterator, Optional, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")


class NamedRegistry(Generic[T]):
    """Immutable, case-insensitive map of named instances.

    Instances expose a ``name`` attribute; the registry is built once by the
    composition root and handed to the components that need to pick one.
    """

    def __init__(self, items: Iterable[T] = (), *, kind: str = "instance"):
        self._kind = kind
        self._items: Dict[str, T] = {}
        for item in items:
            key = self._normalise(getattr(item, "name"))
            if key in self._items:
                raise ConfigurationError(f"Duplicate {kind} name: {getattr(item, 'name')!r}")
            self._items[key] = item

    def resolve(self, name: Optional[str]) -> T:
        if not name:
            raise ConfigurationError(f"A {self._kind} name is required")
        try:
            return self._items[self._normalise(name)]
        except KeyError:
            raise ConfigurationError(f"The {self._kind} with name {name} is not found") from None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._normalise(name) in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    @staticmethod
    def _normalise(name: str) -> str:
        return name.casefold()
