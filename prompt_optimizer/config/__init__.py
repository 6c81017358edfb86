"""
Configuration for Prompt Optimizer.
"""

from .loader import (
    AlertThresholds,
    BudgetConfig,
    CostConfig,
    OptimizerConfig,
    Settings,
    load_config,
)

__all__ = [
    "AlertThresholds",
    "BudgetConfig",
    "CostConfig",
    "OptimizerConfig",
    "Settings",
    "load_config",
]
