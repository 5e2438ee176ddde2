from typing import Dict, Generic, Iterable, Iterator, List, Protocol, TypeVar


class Named(Protocol):
    name: str


ItemT = TypeVar("ItemT", bound=Named)


class Registry(Generic[ItemT]):
    """
    Name-keyed store for objects that carry a `name`.

    Backs the project registry: one entry per open project, each owning its
    own sessions, rebuild tracker and workers.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ItemT] = {}

    def register(self, item: ItemT) -> ItemT:
        """Add an item; a second item under the same name raises ValueError."""
        if item.name in self._entries:
            raise ValueError(f"Item with name '{item.name}' is already registered.")
        self._entries[item.name] = item
        return item

    def register_all(self, items: Iterable[ItemT]) -> None:
        for item in items:
            self.register(item)

    def get(self, name: str) -> ItemT:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"'{name}' not found in registry.") from None

    def unregister(self, name: str) -> ItemT:
        """Remove an item and hand it back; unknown names raise KeyError."""
        try:
            return self._entries.pop(name)
        except KeyError:
            raise KeyError(f"'{name}' not found in registry.") from None

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ItemT]:
        return iter(list(self._entries.values()))
