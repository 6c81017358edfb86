"""
Context-aware template engine.

Bundles the registry, scorer, renderer and session/profile stores behind
one object that the optimizer is constructed with.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .context import SessionContext, TemplateContext, UserProfile
from .scoring import TemplateScorer, extract_variables
from .sessions import ProfileStore, SessionStore
from .templates import Template, TemplateRegistry, TemplateRenderer


class LearningHook(Protocol):
    """Extension point for cross-session learning."""

    def learn_from_session(self, session_id: str, outcomes: Mapping[str, Any]) -> None:
        ...


class NullLearningHook:
    """Default learning hook: records nothing."""

    def learn_from_session(self, session_id: str, outcomes: Mapping[str, Any]) -> None:
        return None


@dataclass(frozen=True)
class GeneratedTemplate:
    """Result of context-aware template generation."""
    template: Template
    adapted: Template
    rendered: str
    variables: Dict[str, Any]
    session: SessionContext


class TemplateEngine:
    """Selects, adapts and renders templates for a request context."""

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        sessions: Optional[SessionStore] = None,
        profiles: Optional[ProfileStore] = None,
        learning_hook: Optional[LearningHook] = None
    ):
        self.registry = registry if registry is not None else TemplateRegistry.with_builtins()
        self.sessions = sessions if sessions is not None else SessionStore()
        self.profiles = profiles if profiles is not None else ProfileStore()
        self.learning_hook = learning_hook or NullLearningHook()
        self.scorer = TemplateScorer(self.registry)
        self.renderer = TemplateRenderer(self.registry)

    def generate_optimized_template(
        self,
        context: TemplateContext,
        profile: Optional[UserProfile] = None
    ) -> GeneratedTemplate:
        """Select, adapt and render the best template for a session.

        Raises:
            MissingSessionId: If the context has no session id
            NoTemplateForContext: If no template matches the tool and task type
        """
        session = self.sessions.get_or_create(context)
        adapted = self.scorer.select_adapted(context, session, profile)
        template = self.registry.get(adapted.id)
        variables = extract_variables(context)
        rendered = self.renderer.render(template.id, variables)
        self.record_usage(template.id, session)
        return GeneratedTemplate(
            template=template,
            adapted=adapted,
            rendered=rendered,
            variables=variables,
            session=session
        )

    def record_usage(self, template_id: str, session: Optional[SessionContext] = None) -> Template:
        """Count a template use, and append it to the session when there is one."""
        updated = self.registry.record_use(template_id)
        if session is not None:
            self.sessions.record_template(session.session_id, template_id)
        return updated

    def learn_from_session(self, session_id: str, outcomes: Mapping[str, Any]) -> None:
        self.learning_hook.learn_from_session(session_id, outcomes)

    def add_custom_template(self, template: Template) -> None:
        self.registry.add(template)

    def get_template_by_id(self, template_id: str) -> Optional[Template]:
        return self.registry.get(template_id)

    def get_all_templates(self) -> List[Template]:
        return self.registry.list()

    def get_usage_stats(self) -> Dict[str, int]:
        return self.registry.usage_counts()

    def get_metrics(self) -> Dict[str, Any]:
        """Aggregate template statistics."""
        templates = self.registry.list()
        if not templates:
            return {
                "total_templates": 0,
                "active_templates": 0,
                "average_quality_score": 0.0,
                "total_usage": 0,
                "performance_score": 0,
            }

        avg_quality = sum(t.quality_score for t in templates) / len(templates)
        active = [t for t in templates if t.usage_count > 0]
        usage_rate = len(active) / len(templates)
        return {
            "total_templates": len(templates),
            "active_templates": len(active),
            "average_quality_score": avg_quality,
            "total_usage": sum(t.usage_count for t in templates),
            "performance_score": round((avg_quality + usage_rate * 100) / 2),
        }
