"""Service container shared by the ``apps.*.container`` modules."""
import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


class Container:
    """Maps service names to zero-argument providers."""

    def __init__(self) -> None:
        self._providers: Dict[str, Callable[[], Any]] = {}

    def register(self, name: str, provider: Callable[[], Any]) -> None:
        if name in self._providers:
            logger.debug(f"Replacing provider for '{name}'")
        self._providers[name] = provider

    def resolve(self, name: str) -> Any:
        try:
            provider = self._providers[name]
        except KeyError:
            raise KeyError(f"No provider registered for '{name}'") from None
        return provider()

    def is_registered(self, name: str) -> bool:
        return name in self._providers


container = Container()
