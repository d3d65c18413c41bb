"""Name-based registry for pluggable provider classes."""

from typing import Callable, Generic, Type, TypeVar

T = TypeVar("T")


class UnknownProviderError(LookupError):
    """No provider is registered under the requested name."""

    def __init__(self, kind: str, name: str, available: list[str]):
        self.kind = kind
        self.name = name
        self.available = available
        super().__init__(
            f"Unknown {kind} provider {name!r} (available: {', '.join(available) or 'none'})"
        )


class ProviderRegistry(Generic[T]):
    """Maps configuration names to provider classes.

    Providers are added with the ``register`` decorator; callers select one
    with ``create`` and never branch on the name themselves.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._providers: dict[str, Type[T]] = {}

    def register(self, name: str) -> Callable[[Type[T]], Type[T]]:
        def decorator(cls: Type[T]) -> Type[T]:
            self._providers[name.lower()] = cls
            return cls
        return decorator

    def get(self, name: str) -> Type[T]:
        try:
            return self._providers[name.lower()]
        except KeyError:
            raise UnknownProviderError(self.kind, name, self.names()) from None

    def create(self, name: str, **kwargs) -> T:
        """Instantiate the provider registered under ``name``."""
        return self.get(name)(**kwargs)

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._providers
