"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for optimizer configs.
"""

import os
import tempfile

import pytest
import yaml

from prompt_optimizer.config.loader import (
    AlertThresholds,
    BudgetConfig,
    CostConfig,
    OptimizerConfig,
    Settings,
    load_config,
    update_config,
)
from prompt_optimizer.core.errors import InvalidConfiguration


class TestConfigRecords:
    """Test construction-time validation of config records."""

    def test_defaults(self):
        """Verify default values."""
        settings = Settings()
        assert settings.cost.model == "gpt-4"
        assert settings.cost.cost_per_input_token == 0.00003
        assert settings.budget.daily_budget == 100.0
        assert settings.budget.monthly_budget == 2000.0
        assert settings.budget.max_tokens_per_request == 4000
        assert settings.budget.reserve_percentage == 0.2
        assert settings.budget.alert_thresholds == AlertThresholds(0.8, 0.95)
        assert settings.optimizer.default_quality_threshold == 80.0

    def test_negative_budget_rejected(self):
        """Test negative budgets are rejected."""
        with pytest.raises(InvalidConfiguration, match="daily_budget must be >= 0"):
            BudgetConfig(daily_budget=-1)

    def test_max_tokens_range(self):
        """Test max_tokens_per_request must be within [100, 32000]."""
        with pytest.raises(InvalidConfiguration):
            BudgetConfig(max_tokens_per_request=99)
        with pytest.raises(InvalidConfiguration):
            BudgetConfig(max_tokens_per_request=32001)
        assert BudgetConfig(max_tokens_per_request=32000).max_tokens_per_request == 32000

    def test_reserve_range(self):
        """Test reserve_percentage must be within [0, 0.5]."""
        with pytest.raises(InvalidConfiguration):
            BudgetConfig(reserve_percentage=0.6)

    def test_threshold_range(self):
        """Test alert thresholds must be fractions."""
        with pytest.raises(InvalidConfiguration):
            AlertThresholds(warning=1.5)

    def test_non_numeric_rejected(self):
        """Test strings and booleans are not accepted as numbers."""
        with pytest.raises(InvalidConfiguration, match="must be a number"):
            BudgetConfig(daily_budget="100")
        with pytest.raises(InvalidConfiguration, match="must be a number"):
            BudgetConfig(daily_budget=True)

    def test_negative_rates_rejected(self):
        """Test negative token rates are rejected."""
        with pytest.raises(InvalidConfiguration):
            CostConfig(cost_per_input_token=-0.1)

    def test_quality_threshold_range(self):
        """Test quality threshold must be within [0, 100]."""
        with pytest.raises(InvalidConfiguration):
            OptimizerConfig(default_quality_threshold=101)

    def test_zero_output_ratio_rejected(self):
        """Test output_token_ratio must be positive."""
        with pytest.raises(InvalidConfiguration):
            OptimizerConfig(output_token_ratio=0)

    def test_for_model(self):
        """Test building a cost config from the pricing table."""
        config = CostConfig.for_model("gpt-3.5-turbo")
        assert config.model == "gpt-3.5-turbo"
        assert config.cost_per_input_token == 0.0000015

    def test_for_unknown_model(self):
        """Test unknown models are a configuration error."""
        with pytest.raises(InvalidConfiguration, match="Unsupported model"):
            CostConfig.for_model("unknown-model")

    def test_update_config_revalidates(self):
        """Test updates go through validation again."""
        updated = update_config(BudgetConfig(), {"daily_budget": 50.0})
        assert updated.daily_budget == 50.0
        with pytest.raises(InvalidConfiguration):
            update_config(BudgetConfig(), {"daily_budget": -5})

    def test_update_config_unknown_key(self):
        """Test updating a field that does not exist."""
        with pytest.raises(InvalidConfiguration, match="Unknown configuration keys"):
            update_config(BudgetConfig(), {"weekly_budget": 5})


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_path = self._write_config({
            "cost": {
                "model": "custom",
                "cost_per_input_token": 0.00001,
                "cost_per_output_token": 0.00002,
                "currency": "EUR"
            },
            "budget": {
                "daily_budget": 10.0,
                "monthly_budget": 200.0,
                "reserve_percentage": 0.1,
                "alert_thresholds": {"warning": 0.7, "critical": 0.9}
            },
            "optimizer": {
                "default_quality_threshold": 60,
                "default_timeout": 2.5
            }
        })

        settings = load_config(config_path)

        assert settings.cost.currency == "EUR"
        assert settings.cost.cost_per_output_token == 0.00002
        assert settings.budget.daily_budget == 10.0
        assert settings.budget.alert_thresholds.warning == 0.7
        assert settings.optimizer.default_quality_threshold == 60
        assert settings.optimizer.default_timeout == 2.5

    def test_sections_are_optional(self):
        """Test that omitted sections take their defaults."""
        settings = load_config(self._write_config({"budget": {"daily_budget": 5}}))
        assert settings.budget.daily_budget == 5
        assert settings.cost == CostConfig()
        assert settings.optimizer == OptimizerConfig()

    def test_known_model_picks_up_rates(self):
        """Test a bare known model name uses the pricing table."""
        settings = load_config(self._write_config({"cost": {"model": "claude-3-opus"}}))
        assert settings.cost.cost_per_input_token == 0.000015
        assert settings.cost.cost_per_output_token == 0.000075

    def test_missing_file(self):
        """Test missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml(self):
        """Test malformed YAML raises YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("budget: [unclosed")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_config(config_path)

    def test_empty_file(self):
        """Test empty config file is rejected."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        with pytest.raises(InvalidConfiguration, match="empty"):
            load_config(config_path)

    def test_unknown_top_level_key(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(InvalidConfiguration, match="Unknown configuration keys"):
            load_config(self._write_config({"budgets": {}}))

    def test_unknown_nested_key(self):
        """Test unknown keys inside a section are rejected."""
        with pytest.raises(InvalidConfiguration, match="Unknown keys in budget"):
            load_config(self._write_config({"budget": {"daily": 10}}))
        with pytest.raises(InvalidConfiguration, match="budget.alert_thresholds"):
            load_config(self._write_config({"budget": {"alert_thresholds": {"info": 0.5}}}))

    def test_section_must_be_mapping(self):
        """Test a non-mapping section is rejected."""
        with pytest.raises(InvalidConfiguration, match="'cost' must be a dictionary"):
            load_config(self._write_config({"cost": [1, 2]}))

    def test_out_of_range_value(self):
        """Test range checks apply to loaded values."""
        with pytest.raises(InvalidConfiguration, match="reserve_percentage"):
            load_config(self._write_config({"budget": {"reserve_percentage": 0.9}}))
