"""
Prompt optimization pipeline.

Runs one optimize() call through
Admission -> TemplateSelection -> Transform -> Remeasure -> UsageRecord -> Done.

Admission denial and runtime failures are returned as results with
success=False; optimize() never raises for a well-formed call.
"""

import asyncio
import logging
import math
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import jinja2

from prompt_optimizer.config.loader import BudgetConfig, CostConfig, OptimizerConfig, Settings
from .budget import BudgetApproval, BudgetLedger, BudgetRequest, Priority
from .context import (
    OutputFormat,
    SessionContext,
    TaskType,
    TemplateContext,
    TimeConstraint,
    UserLevel,
    UserProfile,
    coerce_enum,
)
from .errors import NoTemplateForContext, TemplateNotFound
from .scoring import extract_variables
from .strategies import (
    HeuristicOptimizer,
    NullHeuristicOptimizer,
    QualityRequirements,
    Strategy,
    StrategyResult,
    TaskComplexity,
    apply_adaptive,
    apply_context_aware,
    apply_template_based,
    compress,
    select_strategy,
)
from .template_engine import TemplateEngine
from .templates import Template
from .token_counter import estimate_tokens

logger = logging.getLogger(__name__)

DENIAL_FALLBACK_QUALITY = 70


@dataclass(frozen=True)
class OptimizationContext:
    """Per-request context as supplied by the caller."""
    task_type: TaskType
    user_level: UserLevel = UserLevel.INTERMEDIATE
    output_format: OutputFormat = OutputFormat.TEXT
    time_constraint: TimeConstraint = TimeConstraint.STANDARD
    constraints: Tuple[str, ...] = ()
    preferences: Mapping[str, Any] = field(default_factory=dict)
    context_history: Tuple[str, ...] = ()
    session_id: Optional[str] = None


@dataclass(frozen=True)
class OptimizationRequest:
    """Input to PromptOptimizer.optimize."""
    tool_name: str
    original_prompt: str
    context: OptimizationContext
    target_reduction: Optional[float] = None
    max_tokens: Optional[int] = None
    quality_threshold: Optional[float] = None
    priority: Priority = Priority.MEDIUM
    task_complexity: TaskComplexity = TaskComplexity.MEDIUM
    quality_requirements: QualityRequirements = QualityRequirements.STANDARD
    strategy: Optional[Strategy] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None  # overrides context.session_id

    def __post_init__(self):
        object.__setattr__(self, "priority", coerce_enum(Priority, self.priority))
        object.__setattr__(self, "task_complexity", coerce_enum(TaskComplexity, self.task_complexity))
        object.__setattr__(self, "quality_requirements",
                           coerce_enum(QualityRequirements, self.quality_requirements))
        object.__setattr__(self, "strategy", coerce_enum(Strategy, self.strategy))

    def template_context(self) -> TemplateContext:
        ctx = self.context
        return TemplateContext(
            tool_name=self.tool_name,
            task_type=ctx.task_type,
            user_level=ctx.user_level,
            output_format=ctx.output_format,
            time_constraint=ctx.time_constraint,
            constraints=ctx.constraints,
            preferences=ctx.preferences,
            context_history=ctx.context_history,
            session_id=self.session_id or ctx.session_id
        )


@dataclass(frozen=True)
class FallbackSuggestion:
    optimized_prompt: str
    quality_score: float
    strategy: str


@dataclass(frozen=True)
class OptimizeResponse:
    """Result returned to the caller of optimize()."""
    success: bool
    optimized_prompt: str
    token_reduction: int
    estimated_tokens: int
    strategy: str
    quality_score: float
    reason: Optional[str] = None
    fallback: Optional[FallbackSuggestion] = None


@dataclass(frozen=True)
class TokenSavings:
    original: int
    optimized: int
    reduction_percentage: float


@dataclass(frozen=True)
class OptimizationMetadata:
    optimization_time: float  # milliseconds
    strategy_reasons: Tuple[str, ...]
    context_injected: bool
    template_used: Optional[str] = None
    template_quality: Optional[float] = None  # adapted quality of the selected template
    target_met: Optional[bool] = None


@dataclass(frozen=True)
class OptimizationResult:
    """History record of one successful optimization."""
    original_prompt: str
    optimized_prompt: str
    strategy: Tuple[str, ...]
    token_savings: TokenSavings
    quality_score: float
    metadata: OptimizationMetadata


def calculate_quality_score(original_tokens: int, optimized_tokens: int) -> float:
    """Estimate output quality from how hard the prompt was compressed.

    Base 90; compression beyond 70% costs a point per percent; moderate
    compression (20-50%) earns 10. Clamped to [0, 100].
    """
    if original_tokens <= 0:
        compression_ratio = 0.0
    else:
        compression_ratio = 1 - optimized_tokens / original_tokens

    quality_score = 90.0
    if compression_ratio > 0.7:
        quality_score -= (compression_ratio - 0.7) * 100
    if 0.2 <= compression_ratio <= 0.5:
        quality_score += 10

    return max(0.0, min(100.0, quality_score))


def _reduction_percentage(original_tokens: int, optimized_tokens: int) -> float:
    if original_tokens <= 0:
        return 0.0
    return round((original_tokens - optimized_tokens) / original_tokens * 100, 2)


class PromptOptimizer:
    """Budget-gated prompt optimization pipeline.

    The ledger and template engine are owned services passed in, so tests
    and callers can share or isolate them.
    """

    def __init__(
        self,
        ledger: Optional[BudgetLedger] = None,
        template_engine: Optional[TemplateEngine] = None,
        config: Optional[OptimizerConfig] = None,
        heuristic: Optional[HeuristicOptimizer] = None
    ):
        self.ledger = ledger or BudgetLedger()
        self.template_engine = template_engine or TemplateEngine()
        self.config = config or OptimizerConfig()
        self.heuristic = heuristic or NullHeuristicOptimizer()
        self._history: List[OptimizationResult] = []

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "PromptOptimizer":
        ledger = BudgetLedger(settings.cost, settings.budget)
        return cls(ledger=ledger, config=settings.optimizer, **kwargs)

    @property
    def max_tokens(self) -> int:
        if self.config.max_tokens is not None:
            return self.config.max_tokens
        return self.ledger.budget_config.max_tokens_per_request

    async def optimize(
        self,
        request: OptimizationRequest,
        timeout: Optional[float] = None
    ) -> OptimizeResponse:
        """Optimize a prompt within the running budget.

        Args:
            request: Prompt, tool and context to optimize for
            timeout: Deadline in seconds (defaults to config.default_timeout)

        Returns:
            OptimizeResponse; success=False carries the original prompt
        """
        request_id = f"opt_{uuid.uuid4().hex}"
        if timeout is None:
            timeout = self.config.default_timeout

        if timeout is None:
            return await self._run(request, request_id)
        try:
            return await asyncio.wait_for(self._run(request, request_id), timeout)
        except asyncio.TimeoutError:
            logger.warning("Optimization %s timed out after %.2fs", request_id, timeout)
            self.ledger.release_allocation(request_id)
            return self._failure(request, "Optimization timed out", "timeout")

    async def _run(self, request: OptimizationRequest, request_id: str) -> OptimizeResponse:
        started = time.perf_counter()
        try:
            context = request.template_context()
            prompt = request.original_prompt
            original_tokens = estimate_tokens(prompt)

            # Admission
            budget_request = BudgetRequest(
                request_id=request_id,
                tool_name=request.tool_name,
                estimated_input_tokens=original_tokens,
                estimated_output_tokens=math.ceil(original_tokens * self.config.output_token_ratio),
                priority=request.priority
            )
            approval = await self.ledger.request_approval(budget_request)
            if not approval.approved:
                return self._denied(request, original_tokens, approval)

            # Template selection
            profile = self._profile_for(request)
            template, session = self._select_template(context, profile)

            # Transform
            if request.strategy is not None:
                strategy = request.strategy
                selection_reason = f"Strategy {strategy.value} requested by caller"
            else:
                max_tokens = request.max_tokens
                if max_tokens is None:
                    max_tokens = self.max_tokens
                strategy, selection_reason = select_strategy(
                    token_count=original_tokens,
                    max_tokens=max_tokens,
                    has_template=template is not None,
                    task_complexity=request.task_complexity,
                    history=context.context_history,
                    quality_requirements=request.quality_requirements
                )
            logger.debug("Optimization %s using %s: %s", request_id, strategy.value, selection_reason)

            result = self._apply_strategy(strategy, request, context, template)
            optimized = result.prompt if result.improved else prompt
            reasons = [selection_reason, result.reason]

            # Remeasure
            optimized_tokens = estimate_tokens(optimized)
            quality_score = calculate_quality_score(original_tokens, optimized_tokens)
            threshold = request.quality_threshold
            if threshold is None:
                threshold = self.config.default_quality_threshold
            if quality_score < threshold:
                reasons.append(
                    f"Quality {quality_score:.1f} below threshold {threshold:.1f}; original prompt kept"
                )
                optimized = prompt
                optimized_tokens = original_tokens
                quality_score = calculate_quality_score(original_tokens, optimized_tokens)

            # Usage record; no await after the ledger call
            await self.ledger.record_usage(request_id, original_tokens, optimized_tokens)
            if template is not None:
                self.template_engine.record_usage(template.id, session)

            adopted = optimized != prompt
            reduction = _reduction_percentage(original_tokens, optimized_tokens)
            self._history.append(OptimizationResult(
                original_prompt=prompt,
                optimized_prompt=optimized,
                strategy=(strategy.value,),
                token_savings=TokenSavings(
                    original=original_tokens,
                    optimized=optimized_tokens,
                    reduction_percentage=reduction
                ),
                quality_score=quality_score,
                metadata=OptimizationMetadata(
                    optimization_time=(time.perf_counter() - started) * 1000,
                    strategy_reasons=tuple(reasons),
                    context_injected=adopted and strategy == Strategy.CONTEXT_AWARE,
                    template_used=(
                        template.id
                        if adopted and template is not None and strategy == Strategy.TEMPLATE_BASED
                        else None
                    ),
                    template_quality=None if template is None else template.quality_score,
                    target_met=(
                        None if request.target_reduction is None
                        else reduction >= request.target_reduction * 100
                    )
                )
            ))

            return OptimizeResponse(
                success=True,
                optimized_prompt=optimized,
                token_reduction=original_tokens - optimized_tokens,
                estimated_tokens=optimized_tokens,
                strategy=strategy.value,
                quality_score=quality_score
            )
        except Exception as e:
            logger.exception("Optimization %s failed", request_id)
            self.ledger.release_allocation(request_id)
            return self._failure(request, str(e), "error")

    def _profile_for(self, request: OptimizationRequest) -> Optional[UserProfile]:
        if request.user_id is None:
            return None
        return self.template_engine.profiles.get(request.user_id)

    def _select_template(
        self,
        context: TemplateContext,
        profile: Optional[UserProfile]
    ) -> Tuple[Optional[Template], Optional[SessionContext]]:
        """Best template for the context adapted to the session and profile,
        plus the session when one is named.

        A missing template is not an error here; the call proceeds without one.
        """
        session = None
        if context.session_id:
            session = self.template_engine.sessions.get_or_create(context)
        try:
            template = self.template_engine.scorer.select_adapted(context, session, profile)
        except NoTemplateForContext:
            logger.debug("No template for %s/%s", context.tool_name, context.task_type.value)
            return None, session
        return template, session

    def _apply_strategy(
        self,
        strategy: Strategy,
        request: OptimizationRequest,
        context: TemplateContext,
        template: Optional[Template]
    ) -> StrategyResult:
        prompt = request.original_prompt
        if strategy == Strategy.COMPRESSION:
            return compress(prompt)
        if strategy == Strategy.CONTEXT_AWARE:
            return apply_context_aware(prompt, context.context_history, request.task_complexity)
        if strategy == Strategy.TEMPLATE_BASED:
            return apply_template_based(
                prompt,
                context.output_format.value,
                template_available=template is not None,
                render_content=self._content_renderer(template, context)
            )
        if strategy == Strategy.ADAPTIVE:
            return apply_adaptive(prompt)
        return self.heuristic.optimize(prompt, request.task_complexity)

    def _content_renderer(self, template: Optional[Template], context: TemplateContext):
        """Renderer for templates with a `content` placeholder, else None."""
        if template is None:
            return None
        renderer = self.template_engine.renderer
        if "content" not in renderer.placeholders(template.id):
            return None
        variables = extract_variables(context)

        def render(content: str) -> str:
            return renderer.render(template.id, {**variables, "content": content})

        return render

    def _denied(
        self,
        request: OptimizationRequest,
        original_tokens: int,
        approval: BudgetApproval
    ) -> OptimizeResponse:
        fallback = None
        if approval.alternatives is not None:
            fallback = FallbackSuggestion(
                optimized_prompt=request.original_prompt,
                quality_score=DENIAL_FALLBACK_QUALITY,
                strategy=approval.alternatives.fallback_strategy
            )
        return OptimizeResponse(
            success=False,
            optimized_prompt=request.original_prompt,
            token_reduction=0,
            estimated_tokens=original_tokens,
            strategy="none",
            quality_score=0,
            reason=approval.reason or "Budget approval failed",
            fallback=fallback
        )

    def _failure(self, request: OptimizationRequest, reason: str, strategy: str) -> OptimizeResponse:
        return OptimizeResponse(
            success=False,
            optimized_prompt=request.original_prompt,
            token_reduction=0,
            estimated_tokens=estimate_tokens(request.original_prompt),
            strategy=strategy,
            quality_score=0,
            reason=reason
        )

    # Budget operations

    async def request_budget_approval(self, request: BudgetRequest) -> BudgetApproval:
        return await self.ledger.request_approval(request)

    async def record_usage(self, request_id: str, actual_input_tokens: int, actual_output_tokens: int) -> None:
        await self.ledger.record_usage(request_id, actual_input_tokens, actual_output_tokens)

    # Template operations

    def add_custom_template(self, template: Template) -> None:
        self.template_engine.add_custom_template(template)

    def get_template_by_id(self, template_id: str) -> Optional[Template]:
        return self.template_engine.get_template_by_id(template_id)

    def get_all_templates(self) -> List[Template]:
        return self.template_engine.get_all_templates()

    def render_template(self, template_id: str, variables: Mapping[str, Any]) -> Optional[str]:
        """Render a template, returning None for unknown ids or broken bodies."""
        try:
            return self.template_engine.renderer.render(template_id, variables)
        except TemplateNotFound:
            return None
        except jinja2.TemplateError:
            logger.error("Error rendering template %s", template_id, exc_info=True)
            return None

    # Analytics

    def get_analytics(self) -> Dict[str, Any]:
        history = list(self._history)
        distribution = Counter(s for result in history for s in result.strategy)
        return {
            "total_optimizations": len(history),
            "average_reduction": (
                sum(r.token_savings.reduction_percentage for r in history) / len(history)
                if history else 0.0
            ),
            "strategy_distribution": dict(distribution),
        }

    def get_performance_metrics(self) -> Dict[str, float]:
        history = list(self._history)
        if not history:
            return {"average_reduction": 0.0, "average_quality_score": 0.0, "total_optimizations": 0}
        return {
            "average_reduction": sum(r.token_savings.reduction_percentage for r in history) / len(history),
            "average_quality_score": sum(r.quality_score for r in history) / len(history),
            "total_optimizations": len(history),
        }

    def get_usage_stats(self) -> Dict[str, int]:
        """Template id to usage count."""
        return self.template_engine.get_usage_stats()

    def get_optimization_history(self) -> List[OptimizationResult]:
        return list(self._history)


def create_prompt_optimizer(
    cost_config: Optional[CostConfig] = None,
    budget_config: Optional[BudgetConfig] = None,
    optimizer_config: Optional[OptimizerConfig] = None
) -> PromptOptimizer:
    """Build an optimizer with a fresh ledger and built-in templates."""
    return PromptOptimizer(
        ledger=BudgetLedger(cost_config, budget_config),
        template_engine=TemplateEngine(),
        config=optimizer_config
    )
