"""
Context-aware template scoring and adaptation.

Picks the best registered template for a tool/task/user combination and
adapts it using session and profile history.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .context import SessionContext, TemplateContext, TimeConstraint, UserLevel, UserProfile
from .errors import NoTemplateForContext
from .templates import AdaptationLevel, Capability, Template, TemplateRegistry

logger = logging.getLogger(__name__)

USER_LEVEL_BONUS = 10
IMMEDIATE_STATIC_BONUS = 5
PROFILE_MATCH_BONUS = 15

# Only the extremes earn a segment bonus; intermediate users get none
BONUS_LEVELS = (UserLevel.BEGINNER, UserLevel.ADVANCED)

ENUM_FIELDS = ("task_type", "user_level", "output_format", "time_constraint")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class TemplateScorer:
    """Scores registry entries against a request context."""

    def __init__(self, registry: TemplateRegistry):
        self.registry = registry

    def score(
        self,
        template: Template,
        context: TemplateContext,
        profile: Optional[UserProfile] = None
    ) -> float:
        """Score a template for a context.

        quality_score, +10 when the user level is beginner/advanced and in the
        template's segments, +5 for static templates under an immediate time
        constraint, +15 when the profile's experience level is in the segments.
        Clamped to [0, 100].
        """
        score = template.quality_score

        if context.user_level in BONUS_LEVELS and context.user_level.value in template.user_segments:
            score += USER_LEVEL_BONUS

        if (context.time_constraint == TimeConstraint.IMMEDIATE
                and template.adaptation_level == AdaptationLevel.STATIC):
            score += IMMEDIATE_STATIC_BONUS

        if profile is not None and profile.experience_level.value in template.user_segments:
            score += PROFILE_MATCH_BONUS

        return _clamp(score, 0, 100)

    def rank(
        self,
        context: TemplateContext,
        profile: Optional[UserProfile] = None
    ) -> List[Tuple[Template, float]]:
        """All templates matching (tool_name, task_type), best first.

        Ties keep registration order.
        """
        candidates = [
            t for t in self.registry.list()
            if t.tool_name == context.tool_name and t.task_type == context.task_type
        ]
        scored = [(t, self.score(t, context, profile)) for t in candidates]
        return sorted(scored, key=lambda pair: pair[1], reverse=True)

    def select(
        self,
        context: TemplateContext,
        profile: Optional[UserProfile] = None
    ) -> Template:
        """Return the best template for the context.

        Raises:
            NoTemplateForContext: If nothing matches the tool and task type
        """
        ranked = self.rank(context, profile)
        if not ranked:
            raise NoTemplateForContext(context.tool_name, context.task_type.value)
        template, score = ranked[0]
        logger.debug("Selected template %s (score %.1f) for %s/%s",
                     template.id, score, context.tool_name, context.task_type.value)
        return template

    def select_adapted(
        self,
        context: TemplateContext,
        session: Optional[SessionContext] = None,
        profile: Optional[UserProfile] = None
    ) -> Template:
        """Adapt every candidate to the session and profile, return the best.

        Same ranking as select(), but scored on the adapted copies, so a
        template the user has succeeded with before can overtake a
        slightly better-rated one.

        Raises:
            NoTemplateForContext: If nothing matches the tool and task type
        """
        ranked = self.rank(context, profile)
        if not ranked:
            raise NoTemplateForContext(context.tool_name, context.task_type.value)
        adapted = [adapt_template(t, context, session, profile) for t, _score in ranked]
        # Stable sort: ties keep their order from rank()
        rescored = sorted(
            ((t, self.score(t, context, profile)) for t in adapted),
            key=lambda pair: pair[1],
            reverse=True
        )
        template, score = rescored[0]
        logger.debug("Selected adapted template %s (score %.1f) for %s/%s",
                     template.id, score, context.tool_name, context.task_type.value)
        return template


def context_capabilities(context: TemplateContext) -> FrozenSet[Capability]:
    """One capability per enum-valued context field."""
    return frozenset(
        Capability(name, getattr(context, name).value) for name in ENUM_FIELDS
    )


def extract_variables(context: TemplateContext) -> Dict[str, Any]:
    """Build the variable map a template is rendered with.

    Scalar fields and arrays verbatim, the capability set, and a shallow
    merge of the context preferences (preferences win on key clashes).
    """
    variables: Dict[str, Any] = {
        "tool_name": context.tool_name,
        "task_type": context.task_type.value,
        "user_level": context.user_level.value,
        "output_format": context.output_format.value,
        "time_constraint": context.time_constraint.value,
        "constraints": list(context.constraints),
        "context_history": list(context.context_history),
        "capabilities": context_capabilities(context),
    }
    if context.session_id is not None:
        variables["session_id"] = context.session_id
    if context.project_context is not None:
        variables["project_context"] = context.project_context
    variables.update(context.preferences)
    return variables


def adapt_template(
    template: Template,
    context: TemplateContext,
    session: Optional[SessionContext] = None,
    profile: Optional[UserProfile] = None
) -> Template:
    """Return a copy of the template adjusted to the user and history.

    Beginners get less compression and a quality bump, advanced users more
    compression; immediate requests compress harder, thorough ones less.
    Prior successful use in the session or the profile's success patterns
    raise the quality estimate.
    """
    ratio = template.compression_ratio
    quality = template.quality_score

    if context.user_level == UserLevel.BEGINNER:
        quality += 5
        ratio *= 0.8
    elif context.user_level == UserLevel.ADVANCED:
        ratio *= 1.2

    if context.time_constraint == TimeConstraint.IMMEDIATE:
        ratio *= 1.3
    elif context.time_constraint == TimeConstraint.THOROUGH:
        ratio *= 0.7

    if session is not None and template.id in session.templates_used and session.success_rate >= 0.5:
        quality += 5

    if profile is not None and template.id in profile.success_patterns:
        quality += 5

    return replace(
        template,
        compression_ratio=_clamp(ratio, 0.0, 1.0),
        quality_score=_clamp(quality, 0, 100)
    )
