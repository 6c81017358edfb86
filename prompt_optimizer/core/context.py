"""
Request context, user profile and session records.

TemplateContext is immutable per call; enum-valued fields accept either
the enum or its string value.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple


class TaskType(Enum):
    GENERATION = "generation"
    ANALYSIS = "analysis"
    TRANSFORMATION = "transformation"
    PLANNING = "planning"
    DEBUGGING = "debugging"


class UserLevel(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class OutputFormat(Enum):
    CODE = "code"
    TEXT = "text"
    STRUCTURED = "structured"
    MARKDOWN = "markdown"


class TimeConstraint(Enum):
    IMMEDIATE = "immediate"
    STANDARD = "standard"
    THOROUGH = "thorough"


class PreferredStyle(Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    TECHNICAL = "technical"
    BUSINESS = "business"


class WorkflowStage(Enum):
    PLANNING = "planning"
    IMPLEMENTATION = "implementation"
    TESTING = "testing"
    DEPLOYMENT = "deployment"


def coerce_enum(enum_cls, value):
    """Return `value` as a member of `enum_cls`, accepting its string value."""
    if value is None or isinstance(value, enum_cls):
        return value
    return enum_cls(value)


@dataclass(frozen=True)
class ProjectContext:
    project_id: Optional[str] = None
    domain: Optional[str] = None
    complexity: Optional[str] = None  # simple | moderate | complex


@dataclass(frozen=True)
class UserBehaviorProfile:
    preferred_verbosity: Optional[str] = None  # concise | moderate | detailed
    common_patterns: Tuple[str, ...] = ()
    successful_template_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContextualFactors:
    related_tools: Tuple[str, ...] = ()
    workflow_stage: Optional[WorkflowStage] = None
    urgency_level: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "workflow_stage", coerce_enum(WorkflowStage, self.workflow_stage))


@dataclass(frozen=True)
class TemplateContext:
    """Caller-supplied optimization context."""
    tool_name: str
    task_type: TaskType
    user_level: UserLevel = UserLevel.INTERMEDIATE
    output_format: OutputFormat = OutputFormat.TEXT
    time_constraint: TimeConstraint = TimeConstraint.STANDARD
    constraints: Tuple[str, ...] = ()
    preferences: Mapping[str, Any] = field(default_factory=dict)
    context_history: Tuple[str, ...] = ()
    session_id: Optional[str] = None
    project_context: Optional[ProjectContext] = None
    user_behavior_profile: Optional[UserBehaviorProfile] = None
    contextual_factors: Optional[ContextualFactors] = None

    def __post_init__(self):
        if not self.tool_name or not self.tool_name.strip():
            raise ValueError("tool_name is required and cannot be empty")
        object.__setattr__(self, "task_type", coerce_enum(TaskType, self.task_type))
        object.__setattr__(self, "user_level", coerce_enum(UserLevel, self.user_level))
        object.__setattr__(self, "output_format", coerce_enum(OutputFormat, self.output_format))
        object.__setattr__(self, "time_constraint", coerce_enum(TimeConstraint, self.time_constraint))
        object.__setattr__(self, "constraints", tuple(self.constraints or ()))
        object.__setattr__(self, "context_history", tuple(self.context_history or ()))
        object.__setattr__(self, "preferences", dict(self.preferences or {}))


@dataclass(frozen=True)
class UserProfile:
    """Per-user history used as scoring input.

    Read-only to the pipeline; see ProfileStore.update.
    """
    id: str
    experience_level: UserLevel
    preferred_style: PreferredStyle = PreferredStyle.CONCISE
    common_tasks: Tuple[str, ...] = ()
    success_patterns: Tuple[str, ...] = ()
    last_active: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.id:
            raise ValueError("id is required and cannot be empty")
        object.__setattr__(self, "experience_level", coerce_enum(UserLevel, self.experience_level))
        object.__setattr__(self, "preferred_style", coerce_enum(PreferredStyle, self.preferred_style))
        object.__setattr__(self, "common_tasks", tuple(self.common_tasks))
        object.__setattr__(self, "success_patterns", tuple(self.success_patterns))


@dataclass
class SessionContext:
    """Per-session history, created lazily by SessionStore."""
    session_id: str
    start_time: datetime
    templates_used: List[str] = field(default_factory=list)
    success_rate: float = 0.0
    user_satisfaction: Optional[float] = None
    context_preservation: bool = True
    outcome_count: int = 0
