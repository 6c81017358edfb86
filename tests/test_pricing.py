"""
Unit tests for pricing calculations.

Tests cost accuracy, rounding behavior, and error handling.
"""

import pytest
from decimal import Decimal

from prompt_optimizer.core.pricing import CostModel, ModelPricing, PRICING_TABLE, calculate_cost
from prompt_optimizer.core.token_counter import TokenUsage, estimate_tokens


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed correctly."""
        usage = TokenUsage(input_tokens=100, output_tokens=50)
        assert usage.total_tokens == 150

    def test_zero_tokens(self):
        """Verify zero token handling."""
        usage = TokenUsage(input_tokens=0, output_tokens=0)
        assert usage.total_tokens == 0


class TestEstimateTokens:
    """Test the character-based token estimate."""

    def test_four_characters_per_token(self):
        """Verify 8 characters estimate to 2 tokens."""
        assert estimate_tokens("abcdefgh") == 2

    def test_rounds_up(self):
        """Verify partial tokens round up."""
        assert estimate_tokens("abcde") == 2

    def test_empty_text(self):
        """Verify empty text is zero tokens."""
        assert estimate_tokens("") == 0


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for supported models."""
        gpt4_pricing = PRICING_TABLE.get_pricing("gpt-4")
        assert gpt4_pricing.input_cost_per_token == Decimal("0.00003")
        assert gpt4_pricing.output_cost_per_token == Decimal("0.00006")

    def test_unsupported_model_raises_error(self):
        """Verify error for unknown models."""
        with pytest.raises(ValueError, match="Unsupported model: unknown-model"):
            PRICING_TABLE.get_pricing("unknown-model")


class TestCostCalculation:
    """Test cost calculation accuracy and rounding."""

    def test_exact_cost_gpt4(self):
        """Verify exact cost calculation for GPT-4."""
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        cost = calculate_cost(PRICING_TABLE.get_pricing("gpt-4"), usage)
        # 1000 * 0.00003 + 500 * 0.00006 = 0.03 + 0.03
        assert cost == 0.06

    def test_rounding_up(self):
        """Verify costs are rounded up to the next micro-unit."""
        pricing = ModelPricing(
            input_cost_per_token=Decimal("0.0000015"),
            output_cost_per_token=Decimal("0")
        )
        cost = calculate_cost(pricing, TokenUsage(input_tokens=1, output_tokens=0))
        assert cost == 0.000002

    def test_zero_tokens_cost_nothing(self):
        """Verify zero usage costs zero."""
        cost = calculate_cost(PRICING_TABLE.get_pricing("gpt-4"), TokenUsage(0, 0))
        assert cost == 0.0


class TestCostModel:
    """Test the configured cost model."""

    def test_fifty_thousand_input_tokens(self):
        """Verify 50000 input tokens at 0.00003 cost 1.50."""
        model = CostModel(0.00003, 0.00006)
        assert model(50000, 0) == 1.5

    def test_linear_in_tokens(self):
        """Verify cost is additive over input and output."""
        model = CostModel(0.00003, 0.00006)
        assert model(100, 200) == pytest.approx(model(100, 0) + model(0, 200))

    def test_float_rates_are_exact(self):
        """Verify float rates do not pick up binary representation error."""
        model = CostModel(0.1, 0)
        assert model(3, 0) == 0.3
