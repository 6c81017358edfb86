"""
Template registry and rendering.

Templates are reusable prompt skeletons keyed by id. Bodies are Jinja2
templates; conditional sections test context capabilities through the
`flag(field, value)` global instead of ad hoc boolean variables.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Set, Tuple

import jinja2
from jinja2 import meta

from .context import TaskType, coerce_enum
from .errors import TemplateNotFound


class AdaptationLevel(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    ADAPTIVE = "adaptive"


class Capability(NamedTuple):
    """One enum-valued context field and its value, e.g. ("user_level", "beginner")."""
    field: str
    value: str


@dataclass(frozen=True)
class Template:
    """Template metadata plus body."""
    id: str
    name: str
    tool_name: str
    task_type: TaskType
    body: str
    description: str = ""
    base_tokens: int = 0
    compression_ratio: float = 0.3
    quality_score: float = 80.0
    usage_count: int = 0
    last_updated: datetime = field(default_factory=datetime.now)
    variables: Tuple[str, ...] = ()
    adaptation_level: AdaptationLevel = AdaptationLevel.STATIC
    cross_session_compatible: bool = True
    user_segments: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate metadata ranges."""
        if not self.id or not self.id.strip():
            raise ValueError("template id is required and cannot be empty")
        if not 0 <= self.quality_score <= 100:
            raise ValueError("quality_score must be between 0 and 100")
        if self.usage_count < 0:
            raise ValueError("usage_count cannot be negative")
        object.__setattr__(self, "task_type", coerce_enum(TaskType, self.task_type))
        object.__setattr__(self, "adaptation_level", coerce_enum(AdaptationLevel, self.adaptation_level))
        object.__setattr__(self, "variables", tuple(self.variables))
        object.__setattr__(self, "user_segments", tuple(self.user_segments))


class TemplateRegistry:
    """Mapping of template id to template.

    Iteration order is registration order; overwriting an id keeps its
    original position.
    """

    def __init__(self, templates: Optional[List[Template]] = None):
        self._templates: Dict[str, Template] = {}
        self._lock = threading.Lock()
        for template in templates or []:
            self.add(template)

    @classmethod
    def with_builtins(cls) -> "TemplateRegistry":
        """Create a registry pre-loaded with the built-in templates."""
        from .builtin_templates import builtin_templates
        return cls(builtin_templates())

    def add(self, template: Template) -> None:
        with self._lock:
            self._templates[template.id] = template

    def get(self, template_id: str) -> Optional[Template]:
        with self._lock:
            return self._templates.get(template_id)

    def list(self) -> List[Template]:
        with self._lock:
            return list(self._templates.values())

    def has_template_for(self, tool_name: str, task_type: Optional[TaskType] = None) -> bool:
        """Whether any template targets the tool (and task type, if given)."""
        task_type = coerce_enum(TaskType, task_type)
        return any(
            t.tool_name == tool_name and (task_type is None or t.task_type == task_type)
            for t in self.list()
        )

    def record_use(self, template_id: str) -> Template:
        """Increment a template's usage count.

        Raises:
            TemplateNotFound: If the id is not registered
        """
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise TemplateNotFound(template_id)
            updated = replace(
                template,
                usage_count=template.usage_count + 1,
                last_updated=datetime.now()
            )
            self._templates[template_id] = updated
            return updated

    def usage_counts(self) -> Dict[str, int]:
        return {t.id: t.usage_count for t in self.list()}

    def __len__(self) -> int:
        return len(self._templates)


@jinja2.pass_context
def _flag(ctx, field_name: str, value: str) -> bool:
    capabilities = ctx.get("capabilities") or frozenset()
    return Capability(field_name, value) in capabilities


def _create_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        undefined=jinja2.ChainableUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False
    )
    env.globals["flag"] = _flag
    return env


class TemplateRenderer:
    """Renders registry templates with a variable map."""

    def __init__(self, registry: TemplateRegistry):
        self.registry = registry
        self.env = _create_environment()
        self._compiled: Dict[Tuple[str, str], jinja2.Template] = {}
        self._lock = threading.Lock()

    def _compile(self, template: Template) -> jinja2.Template:
        key = (template.id, template.body)
        with self._lock:
            compiled = self._compiled.get(key)
            if compiled is None:
                compiled = self.env.from_string(template.body)
                self._compiled[key] = compiled
            return compiled

    def _require(self, template_id: str) -> Template:
        template = self.registry.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    def render(self, template_id: str, variables: Mapping[str, Any]) -> str:
        """Render a registered template.

        Args:
            template_id: Registered template id
            variables: Variable map, optionally carrying `capabilities`

        Returns:
            Rendered text, stripped of surrounding whitespace

        Raises:
            TemplateNotFound: If the id is unknown
            jinja2.TemplateError: If the body is malformed
        """
        template = self._require(template_id)
        return self._compile(template).render(dict(variables)).strip()

    def placeholders(self, template_id: str) -> Set[str]:
        """Names of variables the template reads from its context."""
        template = self._require(template_id)
        names = meta.find_undeclared_variables(self.env.parse(template.body))
        return set(names) - set(self.env.globals)
