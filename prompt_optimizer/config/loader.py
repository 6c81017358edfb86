"""
Configuration management and loading.

Cost rates, budget policy and optimizer settings, validated against
explicit numeric ranges at construction time.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from prompt_optimizer.core.errors import InvalidConfiguration
from prompt_optimizer.core.pricing import PRICING_TABLE


def _check_range(name: str, value: Any, low: float, high: Optional[float] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"{name} must be a number")
    if value < low:
        raise InvalidConfiguration(f"{name} must be >= {low}")
    if high is not None and value > high:
        raise InvalidConfiguration(f"{name} must be <= {high}")


@dataclass(frozen=True)
class CostConfig:
    """Per-token pricing used by the cost model."""
    model: str = "gpt-4"
    cost_per_input_token: float = 0.00003
    cost_per_output_token: float = 0.00006
    currency: str = "USD"

    def __post_init__(self):
        """Validate rates are non-negative and labels are present."""
        if not self.model or not str(self.model).strip():
            raise InvalidConfiguration("model cannot be empty")
        if not self.currency or not str(self.currency).strip():
            raise InvalidConfiguration("currency cannot be empty")
        _check_range("cost_per_input_token", self.cost_per_input_token, 0)
        _check_range("cost_per_output_token", self.cost_per_output_token, 0)

    @classmethod
    def for_model(cls, model: str, currency: str = "USD") -> "CostConfig":
        """Build a cost config from the fixed pricing table."""
        try:
            pricing = PRICING_TABLE.get_pricing(model)
        except ValueError as e:
            raise InvalidConfiguration(str(e))
        return cls(
            model=model,
            cost_per_input_token=float(pricing.input_cost_per_token),
            cost_per_output_token=float(pricing.output_cost_per_token),
            currency=currency
        )


@dataclass(frozen=True)
class AlertThresholds:
    """Fractions of a period budget at which alerts fire."""
    warning: float = 0.8
    critical: float = 0.95

    def __post_init__(self):
        _check_range("alert_thresholds.warning", self.warning, 0, 1)
        _check_range("alert_thresholds.critical", self.critical, 0, 1)


@dataclass(frozen=True)
class BudgetConfig:
    """Budget limits for admission control."""
    daily_budget: float = 100.0
    monthly_budget: float = 2000.0
    max_tokens_per_request: int = 4000
    reserve_percentage: float = 0.2
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    def __post_init__(self):
        """Validate budget values are within range."""
        _check_range("daily_budget", self.daily_budget, 0)
        _check_range("monthly_budget", self.monthly_budget, 0)
        _check_range("max_tokens_per_request", self.max_tokens_per_request, 100, 32000)
        _check_range("reserve_percentage", self.reserve_percentage, 0, 0.5)
        if not isinstance(self.alert_thresholds, AlertThresholds):
            raise InvalidConfiguration("alert_thresholds must be an AlertThresholds")


@dataclass(frozen=True)
class OptimizerConfig:
    """Settings for the strategy pipeline."""
    max_tokens: Optional[int] = None  # None: use the budget's max_tokens_per_request
    default_quality_threshold: float = 80.0
    output_token_ratio: float = 0.5
    default_timeout: Optional[float] = None

    def __post_init__(self):
        if self.max_tokens is not None:
            _check_range("max_tokens", self.max_tokens, 100, 32000)
        _check_range("default_quality_threshold", self.default_quality_threshold, 0, 100)
        _check_range("output_token_ratio", self.output_token_ratio, 0, 4)
        if self.output_token_ratio == 0:
            raise InvalidConfiguration("output_token_ratio must be > 0")
        if self.default_timeout is not None:
            _check_range("default_timeout", self.default_timeout, 0)
            if self.default_timeout == 0:
                raise InvalidConfiguration("default_timeout must be > 0")


@dataclass(frozen=True)
class Settings:
    """Complete optimizer configuration."""
    cost: CostConfig = field(default_factory=CostConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)


def update_config(config, changes: Dict[str, Any]):
    """Return a re-validated copy of a config record with changes applied."""
    try:
        return replace(config, **changes)
    except TypeError as e:
        raise InvalidConfiguration(f"Unknown configuration keys: {e}")


def load_config(path: str) -> Settings:
    """Load and validate optimizer configuration from a YAML file.

    Strict validation ensures no silent misconfigurations that could
    lead to unexpected cost overruns.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        InvalidConfiguration: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise InvalidConfiguration("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise InvalidConfiguration("Configuration must be a mapping")

    allowed_top_keys = {'cost', 'budget', 'optimizer'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise InvalidConfiguration(f"Unknown configuration keys: {unknown_keys}")

    cost = _parse_cost(_section(raw_config, 'cost'))
    budget = _parse_budget(_section(raw_config, 'budget'))
    optimizer = OptimizerConfig(**_checked_keys(
        _section(raw_config, 'optimizer'),
        {'max_tokens', 'default_quality_threshold', 'output_token_ratio', 'default_timeout'},
        'optimizer'
    ))

    return Settings(cost=cost, budget=budget, optimizer=optimizer)


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"'{name}' must be a dictionary")
    return data


def _checked_keys(data: Dict, allowed: set, path: str) -> Dict:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise InvalidConfiguration(f"Unknown keys in {path}: {unknown_keys}")
    return data


def _parse_cost(data: Dict) -> CostConfig:
    """Parse the cost section.

    A bare `model` that is in the pricing table picks up its rates;
    explicit rates always win.
    """
    data = _checked_keys(
        data,
        {'model', 'cost_per_input_token', 'cost_per_output_token', 'currency'},
        'cost'
    )
    model = data.get('model')
    rates_given = 'cost_per_input_token' in data or 'cost_per_output_token' in data
    if model and not rates_given and model in PRICING_TABLE.prices:
        return CostConfig.for_model(model, currency=data.get('currency', 'USD'))
    return CostConfig(**data)


def _parse_budget(data: Dict) -> BudgetConfig:
    data = dict(_checked_keys(
        data,
        {'daily_budget', 'monthly_budget', 'max_tokens_per_request',
         'reserve_percentage', 'alert_thresholds'},
        'budget'
    ))
    if 'alert_thresholds' in data:
        thresholds = data['alert_thresholds']
        if not isinstance(thresholds, dict):
            raise InvalidConfiguration("'budget.alert_thresholds' must be a dictionary")
        data['alert_thresholds'] = AlertThresholds(**_checked_keys(
            thresholds, {'warning', 'critical'}, 'budget.alert_thresholds'
        ))
    return BudgetConfig(**data)
