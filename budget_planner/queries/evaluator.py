"""
Budget Evaluation

DESIGN DECISION: Spend-vs-limit is a pure computation over the current
records. Nothing here reads storage or keeps state; BudgetAlerts is the
only stateful piece and only remembers which alerts were already shown.

SPEND RULES:
- Monthly budget: all expenses dated in the budget month
- Category budget: all expenses in the category, across every month
  unless a month filter narrows it
- Income never counts against a budget

A budget is exceeded when spend reaches the limit (spent == limit
counts), and near its limit when spend reaches the configured ratio of
the limit without exceeding it.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from budget_planner.audit import AuditLogger
from budget_planner.models.records import Budget, BudgetScope, Transaction
from budget_planner.queries.formatting import format_money, plain_decimal
from budget_planner.services.notifications import Notifier, Severity


class BudgetStatus(BaseModel):
    """Evaluation of one budget against the current transactions."""
    model_config = ConfigDict(frozen=True)

    budget: Budget
    spent: Decimal
    exceeded: bool
    near_limit: bool
    alert_key: str

    @property
    def remaining(self) -> Decimal:
        return self.budget.limit - self.spent

    @property
    def ratio(self) -> float:
        return float(self.spent / self.budget.limit)


def alert_key(budget: Budget) -> str:
    """Stable key for a budget's alert: scope, target and limit."""
    return f"{budget.scope.value}:{budget.target}:limit:{plain_decimal(budget.limit)}"


def spent_against(
    budget: Budget,
    transactions: Iterable[Transaction],
    month_filter: Optional[str] = None,
) -> Decimal:
    """Total expense counted against a budget."""
    total = Decimal("0")
    for tx in transactions:
        if not tx.is_expense:
            continue
        if budget.scope == BudgetScope.MONTHLY:
            if tx.month != budget.month:
                continue
        else:
            if tx.category != budget.category:
                continue
            if month_filter and tx.month != month_filter:
                continue
        total += tx.amount
    return total


def evaluate_budgets(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    month_filter: Optional[str] = None,
    near_limit_ratio: float = 0.9,
) -> list[BudgetStatus]:
    """Evaluate every budget, in budget order."""
    ratio = Decimal(str(near_limit_ratio))
    statuses = []
    for budget in budgets:
        spent = spent_against(budget, transactions, month_filter)
        exceeded = spent >= budget.limit
        statuses.append(BudgetStatus(
            budget=budget,
            spent=spent,
            exceeded=exceeded,
            near_limit=not exceeded and spent >= ratio * budget.limit,
            alert_key=alert_key(budget),
        ))
    return statuses


def exceeded_message(status: BudgetStatus, currency: str = "INR") -> str:
    spent = format_money(status.spent, currency)
    limit = format_money(status.budget.limit, currency)
    if status.budget.scope == BudgetScope.MONTHLY:
        return f"Monthly budget exceeded for {status.budget.month}: spent {spent} (limit {limit})."
    return f'Budget exceeded for category "{status.budget.category}": spent {spent} (limit {limit}).'


def near_limit_message(status: BudgetStatus, currency: str = "INR") -> str:
    spent = format_money(status.spent, currency)
    limit = format_money(status.budget.limit, currency)
    if status.budget.scope == BudgetScope.MONTHLY:
        return f"Monthly spend near budget ({spent} / {limit})"
    return f"{status.budget.category} nearing budget ({spent} / {limit})"


class BudgetAlerts:
    """
    Alert policy over budget statuses.

    An exceeded budget raises a persistent alert once per alert key;
    it is raised again only after dismiss(key). A near-limit budget
    raises a transient warning on every run.
    """

    def __init__(
        self,
        notifier: Notifier,
        currency: str = "INR",
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._notifier = notifier
        self._currency = currency
        self._audit_logger = audit_logger
        self._shown: set[str] = set()

    @property
    def active_keys(self) -> set[str]:
        return set(self._shown)

    def process(self, statuses: Iterable[BudgetStatus]) -> list[str]:
        """
        Raise alerts for a set of statuses.

        Returns:
            Keys of the persistent alerts raised by this run
        """
        raised = []
        for status in statuses:
            if status.exceeded:
                if status.alert_key in self._shown:
                    continue
                self._shown.add(status.alert_key)
                raised.append(status.alert_key)
                self._notifier.notify_persistent(
                    exceeded_message(status, self._currency),
                    status.alert_key,
                )
                self._audit(status, exceeded=True)
            elif status.near_limit:
                self._notifier.notify(
                    near_limit_message(status, self._currency),
                    Severity.WARNING,
                )
                self._audit(status, exceeded=False)
        return raised

    def dismiss(self, key: str) -> None:
        self._shown.discard(key)

    def reset(self) -> None:
        self._shown.clear()

    def _audit(self, status: BudgetStatus, exceeded: bool) -> None:
        if self._audit_logger:
            self._audit_logger.log_budget_alert(
                exceeded=exceeded,
                alert_key=status.alert_key,
                spent=str(status.spent),
                limit=str(status.budget.limit),
            )
