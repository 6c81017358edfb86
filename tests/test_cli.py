"""
Tests for the CLI interface.
"""

import os
import tempfile

import yaml
from typer.testing import CliRunner

from prompt_optimizer.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL

runner = CliRunner()


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up a temp directory for config files."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data) -> str:
        config_path = os.path.join(self.temp_dir, "config.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_no_command(self):
        """Test running without a command prints a hint."""
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Use --help" in result.output

    def test_optimize(self):
        """Test optimizing a prompt prints the result."""
        result = runner.invoke(app, [
            "optimize", "Please kindly help me to implement the login form.",
            "--tool", "smart_debug"
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Optimization Result" in result.output
        assert "compression" in result.output
        assert "implement the login form." in result.output

    def test_optimize_with_strategy(self):
        """Test a pinned strategy is reported."""
        result = runner.invoke(app, [
            "optimize", "Summarize the report",
            "--tool", "smart_debug",
            "--strategy", "heuristic"
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "heuristic" in result.output

    def test_optimize_denied_fails(self):
        """Test a budget denial exits with the failure code."""
        config_path = self._write_config({"budget": {"daily_budget": 0}})

        result = runner.invoke(app, [
            "optimize", "Implement the login form.",
            "--tool", "smart_debug",
            "--config", config_path
        ])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Reason" in result.output

    def test_optimize_bad_config(self):
        """Test an invalid config file exits with the failure code."""
        config_path = self._write_config({"budget": {"weekly": 1}})

        result = runner.invoke(app, [
            "optimize", "Implement the login form.",
            "--tool", "smart_debug",
            "--config", config_path
        ])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error" in result.output

    def test_optimize_invalid_task_type(self):
        """Test unknown enum values are rejected by the parser."""
        result = runner.invoke(app, [
            "optimize", "x", "--tool", "smart_debug", "--task-type", "dreaming"
        ])
        assert result.exit_code != EXIT_CODE_PASS

    def test_templates(self):
        """Test listing templates."""
        result = runner.invoke(app, ["templates"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "smart_begin_basic" in result.output
        assert "smart_finish_generation" in result.output

    def test_templates_filtered(self):
        """Test filtering templates by tool."""
        result = runner.invoke(app, ["templates", "--tool", "smart_plan"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "smart_plan_basic" in result.output
        assert "smart_write_basic" not in result.output

    def test_templates_unknown_tool(self):
        """Test filtering by an unknown tool."""
        result = runner.invoke(app, ["templates", "--tool", "nope"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "No templates found" in result.output

    def test_budget(self):
        """Test showing configured budgets."""
        config_path = self._write_config({"budget": {"daily_budget": 25, "monthly_budget": 500}})

        result = runner.invoke(app, ["budget", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Daily budget: $25.00" in result.output
        assert "Monthly budget: $500.00" in result.output
        assert "Remaining today: $25.00" in result.output

    def test_budget_missing_config(self):
        """Test a missing config file exits with the failure code."""
        result = runner.invoke(app, ["budget", "--config", os.path.join(self.temp_dir, "nope.yaml")])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Config file not found" in result.output

    def test_render(self):
        """Test rendering a built-in template."""
        result = runner.invoke(app, [
            "render", "smart_begin_basic",
            "--var", "project_name=Shop",
            "--var", "project_type=web"
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Project: Shop" in result.output
        assert "Type: web" in result.output

    def test_render_unknown_template(self):
        """Test rendering an unknown template fails."""
        result = runner.invoke(app, ["render", "missing"])
        assert result.exit_code == EXIT_CODE_FAIL

    def test_render_bad_variable(self):
        """Test variables must be key=value pairs."""
        result = runner.invoke(app, ["render", "smart_begin_basic", "--var", "oops"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "expected key=value" in result.output
