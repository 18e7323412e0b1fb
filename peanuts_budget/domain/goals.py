"""Goal progress - derived from ledger state, never stored"""

from dataclasses import dataclass
from datetime import date, datetime

from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.domain.models import GOAL_AVAILABLE, GOAL_MONTHLY_ASSIGNMENT, Goal
from peanuts_budget.utils.date_utils import get_timezone, local_day


@dataclass
class GoalProgress:
    """Progress of a goal towards its target"""

    current: int
    target: int
    percentage: float
    is_complete: bool


def goal_progress(ledger: Ledger, goal: Goal, today: date | datetime | None = None) -> GoalProgress:
    """
    Compute progress for a goal.

    - "available": the budget's available balance as of this month
    - "monthly_assignment": what was assigned to the budget this month

    The percentage treats a negative current as zero and is capped at 100,
    while completeness compares the raw current against the target, so the
    two can disagree at the edges (e.g. a zero target is complete at 0%).
    """
    today = local_day(today) if today is not None else datetime.now(get_timezone()).date()
    target = goal.target_amount
    current = 0

    budget = ledger.get_budget(goal.budget_id)
    if budget is not None:
        if goal.type == GOAL_AVAILABLE:
            current = ledger.budget_available_for_month(budget, today)
        elif goal.type == GOAL_MONTHLY_ASSIGNMENT:
            current = ledger.budget_assigned_for_month(budget, today)

    effective_current = max(0, current)
    percentage = min(100.0, effective_current / target * 100) if target > 0 else 0.0

    return GoalProgress(
        current=current,
        target=target,
        percentage=percentage,
        is_complete=current >= target,
    )
