"""
Error taxonomy for Prompt Optimizer.

Admission denial is deliberately absent: it is returned as a
BudgetApproval, never raised.
"""


class PromptOptimizerError(Exception):
    """Base class for all Prompt Optimizer errors."""


class InvalidConfiguration(PromptOptimizerError, ValueError):
    """Raised when a configuration value is outside its allowed range."""


class TemplateNotFound(PromptOptimizerError, LookupError):
    """Raised when a template id is not registered."""
    def __init__(self, template_id: str):
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class NoTemplateForContext(PromptOptimizerError, LookupError):
    """Raised when no template matches a tool/task type combination."""
    def __init__(self, tool_name: str, task_type: str):
        super().__init__(f"No templates found for tool: {tool_name}, task: {task_type}")
        self.tool_name = tool_name
        self.task_type = task_type


class MissingSessionId(PromptOptimizerError, ValueError):
    """Raised when a session-scoped operation is called without a session id."""
    def __init__(self, message: str = "sessionId is required for context-aware template generation"):
        super().__init__(message)
