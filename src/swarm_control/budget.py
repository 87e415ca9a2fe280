"""Budget ledger: spend totals derived from a mission snapshot.

Nothing here is stored. Every figure is recomputed from the missions passed
in, so the ledger can never drift from the registry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from swarm_control.constants import (
	BUDGET_HEALTHY_ABOVE,
	BUDGET_WARNING_FROM,
	DEFAULT_DAILY_BUDGET_USD,
	FALLBACK_TIER_COST,
	STANDARD_TIER_COSTS,
	TIER_COSTS,
)
from swarm_control.models import Mission, MissionType, ModelCost


class BudgetHealth(str, Enum):
	HEALTHY = "healthy"
	WARNING = "warning"
	CRITICAL = "critical"


def estimate_cost(tier: str | None, mission_type: MissionType) -> float:
	"""Estimated USD cost of a tier before the actual cost is known."""
	if tier == "Standard":
		return STANDARD_TIER_COSTS[mission_type]
	if tier is None:
		return FALLBACK_TIER_COST
	return TIER_COSTS.get(tier, FALLBACK_TIER_COST)


def classify_remaining(remaining: float) -> BudgetHealth:
	if remaining > BUDGET_HEALTHY_ABOVE:
		return BudgetHealth.HEALTHY
	if remaining >= BUDGET_WARNING_FROM:
		return BudgetHealth.WARNING
	return BudgetHealth.CRITICAL


@dataclass
class BudgetSummary:
	"""Point-in-time view of the daily budget."""

	daily_total: float = 0.0
	used: float = 0.0
	remaining: float = 0.0
	pending_estimate: float = 0.0
	health: BudgetHealth = BudgetHealth.HEALTHY
	finished_missions: int = 0
	running_missions: int = 0


class BudgetLedger:
	"""Pure spend calculations over a mission collection."""

	def __init__(self, daily_total: float = DEFAULT_DAILY_BUDGET_USD) -> None:
		self.daily_total = daily_total

	@staticmethod
	def used(missions: Iterable[Mission]) -> float:
		"""Sum of recorded cost over missions that are no longer running."""
		return sum(m.cost for m in missions if m.is_terminal)

	def remaining(self, missions: Iterable[Mission]) -> float:
		return self.daily_total - self.used(missions)

	def health(self, missions: Iterable[Mission]) -> BudgetHealth:
		return classify_remaining(self.remaining(missions))

	@staticmethod
	def pending_estimate(missions: Iterable[Mission]) -> float:
		"""Tier estimates for missions still running (no actual cost yet)."""
		return sum(estimate_cost(m.tier, m.type) for m in missions if not m.is_terminal)

	@staticmethod
	def history_total(missions: Iterable[Mission]) -> float:
		"""Total recorded cost across the whole run history."""
		return sum(m.cost for m in missions)

	@staticmethod
	def cost_breakdown(mission: Mission) -> list[ModelCost]:
		return list(mission.model_costs)

	def summary(self, missions: Iterable[Mission]) -> BudgetSummary:
		snapshot = list(missions)
		used = self.used(snapshot)
		remaining = self.daily_total - used
		finished = sum(1 for m in snapshot if m.is_terminal)
		return BudgetSummary(
			daily_total=self.daily_total,
			used=used,
			remaining=remaining,
			pending_estimate=self.pending_estimate(snapshot),
			health=classify_remaining(remaining),
			finished_missions=finished,
			running_missions=len(snapshot) - finished,
		)
