"""
Token budget ledger and admission control.

Approves or rejects work against daily/monthly budgets, tracks pending
allocations and reconciles them with actual usage.

Admission Order:
1. Per-request max cost - Caller supplied hard ceiling
2. Daily budget - High priority may overrun the remainder by 10%
3. Monthly budget
4. Reserve - Low priority may not dip into the daily reserve
"""

import calendar
import itertools
import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

from prompt_optimizer.config.loader import BudgetConfig, CostConfig, update_config
from .pricing import CostModel

logger = logging.getLogger(__name__)

MAX_ALERTS = 100
HIGH_PRIORITY_OVERAGE = 1.1
ALTERNATIVE_REDUCTION = 0.7


class Priority(Enum):
    """Request priority for admission control."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Period(Enum):
    """Budget accounting periods."""
    DAILY = "daily"
    MONTHLY = "monthly"


class AlertType(Enum):
    """Budget alert levels in order of severity."""
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class BudgetRequest:
    """Request for a token budget allocation."""
    request_id: str
    tool_name: str
    estimated_input_tokens: int
    estimated_output_tokens: int
    priority: Priority = Priority.MEDIUM
    max_cost: Optional[float] = None

    def __post_init__(self):
        if not self.request_id:
            raise ValueError("request_id is required and cannot be empty")
        if self.estimated_input_tokens < 0 or self.estimated_output_tokens < 0:
            raise ValueError("estimated token counts cannot be negative")
        if not isinstance(self.priority, Priority):
            object.__setattr__(self, "priority", Priority(self.priority))


@dataclass(frozen=True)
class AllocatedTokens:
    """Tokens reserved for an approved request."""
    input: int
    output: int


@dataclass(frozen=True)
class BudgetAlternatives:
    """Suggestion returned with a denied request."""
    reduced_tokens: int
    fallback_strategy: str


@dataclass(frozen=True)
class BudgetApproval:
    """Outcome of an admission check. Immutable once returned."""
    approved: bool
    allocated_tokens: AllocatedTokens
    estimated_cost: float
    reason: Optional[str] = None
    alternatives: Optional[BudgetAlternatives] = None


@dataclass(frozen=True)
class Allocation:
    """Pending allocation: an approved request not yet reflected in usage."""
    request: BudgetRequest
    approval: BudgetApproval
    created_at: datetime


@dataclass
class TokenTotals:
    """Cumulative token counts."""
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass
class UsageStats:
    """Cumulative usage for one accounting period."""
    period: Period
    start_date: datetime
    end_date: datetime
    total_tokens: TokenTotals = field(default_factory=TokenTotals)
    total_cost: float = 0.0
    request_count: int = 0
    average_tokens_per_request: float = 0.0

    def add(self, input_tokens: int, output_tokens: int, cost: float) -> None:
        """Fold one recorded request into the totals."""
        self.total_tokens.input += input_tokens
        self.total_tokens.output += output_tokens
        self.total_cost += cost
        self.request_count += 1
        self.average_tokens_per_request = self.total_tokens.total / self.request_count

    def copy(self) -> "UsageStats":
        return replace(self, total_tokens=replace(self.total_tokens))


@dataclass(frozen=True)
class BudgetAlert:
    """Budget threshold notification."""
    id: str
    type: AlertType
    period: Period
    message: str
    timestamp: datetime
    current_usage: float
    threshold: float
    recommended_action: str


def period_bounds(period: Period, now: datetime):
    """Return the (start, end) datetimes of the period containing `now`."""
    if period == Period.DAILY:
        start = datetime(now.year, now.month, now.day)
        end = start + timedelta(days=1) - timedelta(microseconds=1)
    else:
        start = datetime(now.year, now.month, 1)
        last_day = calendar.monthrange(now.year, now.month)[1]
        end = datetime(now.year, now.month, last_day, 23, 59, 59, 999999)
    return start, end


def new_usage_stats(period: Period, now: datetime) -> UsageStats:
    start, end = period_bounds(period, now)
    return UsageStats(period=period, start_date=start, end_date=end)


class BudgetLedger:
    """Admission controller owning daily and monthly usage.

    All mutations of the usage counters, pending allocations and alert log
    happen under one lock, so concurrent optimize() calls never lose updates.
    """

    def __init__(
        self,
        cost_config: Optional[CostConfig] = None,
        budget_config: Optional[BudgetConfig] = None,
        auto_rollover: bool = False,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the ledger.

        Args:
            cost_config: Per-token rates (defaults to CostConfig())
            budget_config: Budget policy (defaults to BudgetConfig())
            auto_rollover: Reset a period lazily once its end_date has passed
            clock: Source of the current time
        """
        self.cost_config = cost_config or CostConfig()
        self.budget_config = budget_config or BudgetConfig()
        self.auto_rollover = auto_rollover
        self._clock = clock
        self._cost_model = CostModel.from_config(self.cost_config)
        self._lock = threading.Lock()

        now = clock()
        self._daily = new_usage_stats(Period.DAILY, now)
        self._monthly = new_usage_stats(Period.MONTHLY, now)
        self._alerts: Deque[BudgetAlert] = deque(maxlen=MAX_ALERTS)
        self._allocations: Dict[str, Allocation] = {}
        self._alert_sequence = itertools.count(1)

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Cost of a token count under the current rates."""
        return self._cost_model(input_tokens, output_tokens)

    async def request_approval(self, request: BudgetRequest) -> BudgetApproval:
        """Approve or deny a request against the remaining budgets.

        Denial is an expected outcome and is returned, never raised.

        Args:
            request: Budget request with estimated token counts

        Returns:
            BudgetApproval; approved requests become pending allocations
        """
        estimated_cost = self.calculate_cost(
            request.estimated_input_tokens,
            request.estimated_output_tokens
        )

        with self._lock:
            self._roll_over_expired()
            reason = self._check_availability(estimated_cost, request)

            if reason is not None:
                approval = BudgetApproval(
                    approved=False,
                    allocated_tokens=AllocatedTokens(0, 0),
                    estimated_cost=0.0,
                    reason=reason,
                    alternatives=self._generate_alternatives(request)
                )
            else:
                approval = BudgetApproval(
                    approved=True,
                    allocated_tokens=AllocatedTokens(
                        input=request.estimated_input_tokens,
                        output=request.estimated_output_tokens
                    ),
                    estimated_cost=estimated_cost
                )
                self._allocations[request.request_id] = Allocation(
                    request=request,
                    approval=approval,
                    created_at=self._clock()
                )

        if not approval.approved:
            logger.info("Budget denied for %s (%s): %s",
                        request.request_id, request.tool_name, approval.reason)
        return approval

    async def record_usage(
        self,
        request_id: str,
        actual_input_tokens: int,
        actual_output_tokens: int
    ) -> None:
        """Reconcile a pending allocation with actual usage.

        The allocation is removed, so a second call for the same id is a no-op.

        Args:
            request_id: Id of a previously approved request
            actual_input_tokens: Input tokens actually consumed
            actual_output_tokens: Output tokens actually produced
        """
        actual_cost = self.calculate_cost(actual_input_tokens, actual_output_tokens)

        with self._lock:
            allocation = self._allocations.pop(request_id, None)
            if allocation is None:
                logger.warning("No allocation found for request %s", request_id)
                return

            self._roll_over_expired()
            self._daily.add(actual_input_tokens, actual_output_tokens, actual_cost)
            self._monthly.add(actual_input_tokens, actual_output_tokens, actual_cost)
            new_alerts = self._check_budget_alerts()

        request = allocation.request
        logger.info(
            "Usage recorded for %s: input=%d (%+d) output=%d (%+d) cost=%.6f (%+.6f) %s",
            request_id,
            actual_input_tokens, actual_input_tokens - request.estimated_input_tokens,
            actual_output_tokens, actual_output_tokens - request.estimated_output_tokens,
            actual_cost, actual_cost - allocation.approval.estimated_cost,
            self.cost_config.currency
        )
        for alert in new_alerts:
            if alert.type == AlertType.WARNING:
                logger.warning(alert.message)
            else:
                logger.error(alert.message)

    def release_allocation(self, request_id: str) -> bool:
        """Drop a pending allocation without recording usage.

        Returns:
            True if an allocation was released
        """
        with self._lock:
            return self._allocations.pop(request_id, None) is not None

    def _check_availability(self, requested_cost: float, request: BudgetRequest) -> Optional[str]:
        """Return a denial reason, or None when the request fits."""
        daily_remaining = self.budget_config.daily_budget - self._daily.total_cost
        monthly_remaining = self.budget_config.monthly_budget - self._monthly.total_cost
        priority = request.priority

        if request.max_cost is not None and requested_cost > request.max_cost:
            return (
                f"Request cost ${requested_cost:.4f} exceeds maximum allowed "
                f"${request.max_cost:.4f} for {request.tool_name}"
            )

        if requested_cost > daily_remaining:
            overage_allowed = (
                priority == Priority.HIGH
                and requested_cost <= daily_remaining * HIGH_PRIORITY_OVERAGE
            )
            if not overage_allowed:
                return (
                    f"Request exceeds daily budget. Remaining: ${daily_remaining:.2f}, "
                    f"Requested: ${requested_cost:.2f}"
                )

        if requested_cost > monthly_remaining:
            return (
                f"Request exceeds monthly budget. Remaining: ${monthly_remaining:.2f}, "
                f"Requested: ${requested_cost:.2f}"
            )

        reserve_amount = self.budget_config.daily_budget * self.budget_config.reserve_percentage
        available_for_non_critical = daily_remaining - reserve_amount
        if priority == Priority.LOW and requested_cost > available_for_non_critical:
            return (
                f"Low priority request exceeds available non-reserve budget. "
                f"Available: ${available_for_non_critical:.2f}"
            )

        return None

    def _generate_alternatives(self, request: BudgetRequest) -> BudgetAlternatives:
        """Suggest a smaller request and a fallback strategy."""
        daily_remaining = self.budget_config.daily_budget - self._daily.total_cost
        rate = self.cost_config.cost_per_input_token
        if rate > 0:
            max_affordable = max(0, math.floor(daily_remaining / rate))
        else:
            max_affordable = request.estimated_input_tokens

        reduced_tokens = math.floor(
            min(request.estimated_input_tokens * ALTERNATIVE_REDUCTION, max_affordable)
        )

        fallback_strategy = "Reduce prompt complexity and use compression"
        if reduced_tokens < request.estimated_input_tokens * 0.5:
            fallback_strategy = "Use cached responses or defer request to next budget period"
        elif reduced_tokens < request.estimated_input_tokens * 0.8:
            fallback_strategy = "Apply aggressive prompt compression and remove examples"

        return BudgetAlternatives(reduced_tokens=reduced_tokens, fallback_strategy=fallback_strategy)

    def _check_budget_alerts(self) -> List[BudgetAlert]:
        """Emit alerts for every period at or above a threshold."""
        thresholds = self.budget_config.alert_thresholds
        created = []
        for usage, budget in (
            (self._daily, self.budget_config.daily_budget),
            (self._monthly, self.budget_config.monthly_budget),
        ):
            usage_percent = _usage_fraction(usage.total_cost, budget)
            if usage_percent >= thresholds.critical:
                created.append(self._create_alert(AlertType.CRITICAL, usage.period, usage_percent))
            elif usage_percent >= thresholds.warning:
                created.append(self._create_alert(AlertType.WARNING, usage.period, usage_percent))
            if usage_percent >= 1.0:
                created.append(self._create_alert(AlertType.EXCEEDED, usage.period, usage_percent))
        return created

    def _create_alert(self, alert_type: AlertType, period: Period, usage_percent: float) -> BudgetAlert:
        thresholds = self.budget_config.alert_thresholds
        threshold = {
            AlertType.WARNING: thresholds.warning,
            AlertType.CRITICAL: thresholds.critical,
            AlertType.EXCEEDED: 1.0,
        }[alert_type]

        if alert_type == AlertType.WARNING:
            action = "Monitor usage closely and consider optimizing prompts to reduce token consumption"
        else:
            action = (
                f"Immediate action required: Consider pausing non-essential operations "
                f"for remainder of {period.value} period"
            )

        alert = BudgetAlert(
            id=f"{alert_type.value}_{period.value}_{next(self._alert_sequence)}",
            type=alert_type,
            period=period,
            message=(
                f"{period.value.capitalize()} budget {alert_type.value}: "
                f"{usage_percent * 100:.1f}% used"
            ),
            timestamp=self._clock(),
            current_usage=usage_percent,
            threshold=threshold,
            recommended_action=action
        )
        self._alerts.append(alert)
        return alert

    def _roll_over_expired(self) -> None:
        """Reset any period whose end has passed. Caller holds the lock."""
        if not self.auto_rollover:
            return
        now = self._clock()
        if now > self._daily.end_date:
            self._daily = new_usage_stats(Period.DAILY, now)
            logger.info("Daily usage rolled over")
        if now > self._monthly.end_date:
            self._monthly = new_usage_stats(Period.MONTHLY, now)
            logger.info("Monthly usage rolled over")

    def get_daily_usage(self) -> UsageStats:
        with self._lock:
            return self._daily.copy()

    def get_monthly_usage(self) -> UsageStats:
        with self._lock:
            return self._monthly.copy()

    def get_alerts(self) -> List[BudgetAlert]:
        with self._lock:
            return list(self._alerts)

    def get_active_allocations(self) -> List[Allocation]:
        with self._lock:
            return list(self._allocations.values())

    def get_remaining_budget(self) -> Dict[str, float]:
        """Remaining daily and monthly budget, never negative."""
        with self._lock:
            return {
                "daily": max(0.0, self.budget_config.daily_budget - self._daily.total_cost),
                "monthly": max(0.0, self.budget_config.monthly_budget - self._monthly.total_cost),
            }

    def get_projected_usage(self, now: Optional[datetime] = None) -> Dict[str, float]:
        """Project additional spend until the end of each period.

        Uses the average cost per request and the request rate observed so far.
        """
        now = now or self._clock()
        with self._lock:
            return {
                "daily": _project(self._daily, now),
                "monthly": _project(self._monthly, now),
            }

    def update_budget_config(self, **changes) -> None:
        """Replace budget policy values, re-validating the result."""
        new_config = update_config(self.budget_config, changes)
        with self._lock:
            self.budget_config = new_config

    def update_cost_config(self, **changes) -> None:
        """Replace cost rates, re-validating the result."""
        new_config = update_config(self.cost_config, changes)
        with self._lock:
            self.cost_config = new_config
            self._cost_model = CostModel.from_config(new_config)

    def reset_daily_usage(self) -> None:
        with self._lock:
            self._daily = new_usage_stats(Period.DAILY, self._clock())
        logger.info("Daily usage reset")

    def reset_monthly_usage(self) -> None:
        with self._lock:
            self._monthly = new_usage_stats(Period.MONTHLY, self._clock())
        logger.info("Monthly usage reset")


def _usage_fraction(total_cost: float, budget: float) -> float:
    if budget == 0:
        return math.inf if total_cost > 0 else 0.0
    return total_cost / budget


def _project(usage: UsageStats, now: datetime) -> float:
    if usage.request_count == 0:
        return 0.0
    elapsed_hours = (now - usage.start_date).total_seconds() / 3600
    if elapsed_hours <= 0:
        return 0.0
    total_hours = (usage.end_date - usage.start_date).total_seconds() / 3600
    remaining_requests = max(0.0, (usage.request_count / elapsed_hours) * (total_hours - elapsed_hours))
    return (usage.total_cost / usage.request_count) * remaining_requests
