"""
Pricing calculations and rate management.

Maps token counts to monetary cost for a per-token input/output rate.
"""

from dataclasses import dataclass
from typing import Dict
from decimal import Decimal, ROUND_UP

from .token_counter import TokenUsage

# Costs are rounded UP to one micro-unit of currency
COST_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_cost_per_token: Decimal
    output_cost_per_token: Decimal


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.
        
        Args:
            model: Model identifier
            
        Returns:
            ModelPricing for the model
            
        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gpt-4": ModelPricing(
        input_cost_per_token=Decimal("0.00003"),
        output_cost_per_token=Decimal("0.00006")
    ),
    "gpt-3.5-turbo": ModelPricing(
        input_cost_per_token=Decimal("0.0000015"),
        output_cost_per_token=Decimal("0.000002")
    ),
    "claude-3-opus": ModelPricing(
        input_cost_per_token=Decimal("0.000015"),
        output_cost_per_token=Decimal("0.000075")
    )
})


def calculate_cost(pricing: ModelPricing, usage: TokenUsage) -> float:
    """Calculate total cost for token usage with conservative rounding.
    
    Args:
        pricing: Per-token rates
        usage: Token usage data
        
    Returns:
        Total cost rounded UP to 6 decimal places
    """
    input_cost = Decimal(usage.input_tokens) * pricing.input_cost_per_token
    output_cost = Decimal(usage.output_tokens) * pricing.output_cost_per_token
    
    # Total cost with conservative rounding (always round UP)
    total_cost = input_cost + output_cost
    return float(total_cost.quantize(COST_QUANTUM, rounding=ROUND_UP))


class CostModel:
    """Pure mapping of (input tokens, output tokens) to cost."""

    def __init__(self, cost_per_input_token: float, cost_per_output_token: float):
        # str() keeps 0.00003 from turning into its binary float expansion
        self.pricing = ModelPricing(
            input_cost_per_token=Decimal(str(cost_per_input_token)),
            output_cost_per_token=Decimal(str(cost_per_output_token))
        )

    @classmethod
    def from_config(cls, cost_config) -> "CostModel":
        """Build a cost model from a CostConfig."""
        return cls(cost_config.cost_per_input_token, cost_config.cost_per_output_token)

    def __call__(self, input_tokens: int, output_tokens: int) -> float:
        return calculate_cost(self.pricing, TokenUsage(input_tokens, output_tokens))
