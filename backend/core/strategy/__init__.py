"""Strategy plugin system.

Public API:
- StrategyDefinition: named rule set plus minimum history
- SignalGenerator: evaluates a StrategyDefinition over candles
- register_strategy: Decorator to register a strategy factory
- create_strategy: Build a strategy definition by name
- list_strategies: Discover all registered strategies
- get_strategy_factory: Get a strategy factory by name without calling it

Importing this package auto-registers all built-in strategies.
"""

from core.strategy.generator import SignalGenerator, StrategyDefinition
from core.strategy.registry import (
    create_strategy,
    get_strategy_factory,
    list_strategies,
    register_strategy,
)
from core.strategy.rules import (
    BreakoutRule,
    CloudRule,
    CrossoverRule,
    Line,
    MomentumReversalRule,
    Rule,
    RuleOutput,
    ThresholdReversalRule,
    VolumeBreakoutRule,
)

# Import built-in strategies to trigger auto-registration
import core.strategy.presets  # noqa: F401

__all__ = [
    "SignalGenerator",
    "StrategyDefinition",
    "create_strategy",
    "get_strategy_factory",
    "list_strategies",
    "register_strategy",
    "BreakoutRule",
    "CloudRule",
    "CrossoverRule",
    "Line",
    "MomentumReversalRule",
    "Rule",
    "RuleOutput",
    "ThresholdReversalRule",
    "VolumeBreakoutRule",
]
