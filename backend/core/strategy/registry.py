"""Strategy registry for discovering and instantiating strategies.

Usage:
    @register_strategy("my_strategy")
    def my_strategy(period: int = 20) -> StrategyDefinition:
        ...

    strategy = create_strategy("my_strategy", period=30)
    strategies = list_strategies()
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Global registry: strategy_name -> factory
_REGISTRY: dict[str, Callable[..., Any]] = {}


def register_strategy(name: str):
    """Decorator to register a strategy factory under a given name.

    Args:
        name: Unique strategy name (e.g., 'ema_cross').

    Returns:
        Decorator that registers the factory and returns it unchanged.

    Raises:
        ValueError: If a strategy with the same name is already registered.
    """

    def decorator(factory):
        if name in _REGISTRY:
            raise ValueError(
                f"Strategy '{name}' is already registered by {_REGISTRY[name].__name__}"
            )
        _REGISTRY[name] = factory
        logger.debug("Registered strategy: %s -> %s", name, factory.__name__)
        return factory

    return decorator


def get_strategy_factory(name: str) -> Callable[..., Any]:
    """Get the strategy factory by name (without calling it).

    Raises:
        KeyError: If no strategy is registered under the given name.
    """
    factory = _REGISTRY.get(name)
    if factory is None:
        available = ", ".join(sorted(_REGISTRY.keys())) or "(none)"
        raise KeyError(
            f"Unknown strategy '{name}'. Available: {available}"
        )
    return factory


def create_strategy(name: str, **kwargs: Any):
    """Create a strategy definition by name.

    Args:
        name: Registered strategy name.
        **kwargs: Parameters passed to the strategy factory.

    Returns:
        The StrategyDefinition built by the factory.

    Raises:
        KeyError: If no strategy is registered under the given name.
    """
    return get_strategy_factory(name)(**kwargs)


def list_strategies() -> list[str]:
    """Return a sorted list of registered strategy names."""
    return sorted(_REGISTRY.keys())
