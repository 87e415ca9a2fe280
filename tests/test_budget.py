"""Tests for the budget ledger."""

from __future__ import annotations

import pytest

from conftest import make_mission
from swarm_control.budget import BudgetHealth, BudgetLedger, classify_remaining, estimate_cost
from swarm_control.models import MissionStatus, MissionType, ModelCost


@pytest.mark.parametrize(("tier", "mission_type", "expected"), [
	("Budget", MissionType.RESEARCH, 0.10),
	("Standard", MissionType.RESEARCH, 0.40),
	("Standard", MissionType.ENGINEERING, 3.00),
	("Deep", MissionType.RESEARCH, 1.20),
	("Heavy", MissionType.ENGINEERING, 6.00),
	("Mystery", MissionType.RESEARCH, 0.40),
	(None, MissionType.ENGINEERING, 0.40),
])
def test_estimate_cost(tier: str | None, mission_type: MissionType, expected: float) -> None:
	assert estimate_cost(tier, mission_type) == pytest.approx(expected)


@pytest.mark.parametrize(("remaining", "health"), [
	(10.0, BudgetHealth.HEALTHY),
	(5.01, BudgetHealth.HEALTHY),
	(5.0, BudgetHealth.WARNING),
	(2.0, BudgetHealth.WARNING),
	(1.99, BudgetHealth.CRITICAL),
	(-3.0, BudgetHealth.CRITICAL),
])
def test_classify_remaining(remaining: float, health: BudgetHealth) -> None:
	assert classify_remaining(remaining) is health


class TestBudgetLedger:
	def test_used_ignores_running(self) -> None:
		missions = [
			make_mission(id="a", cost=1.0),
			make_mission(id="b", cost=0.5, status=MissionStatus.ERROR),
			make_mission(id="c", cost=9.0, status=MissionStatus.RUNNING),
		]
		ledger = BudgetLedger(10.0)
		assert ledger.used(missions) == pytest.approx(1.5)
		assert ledger.remaining(missions) == pytest.approx(8.5)
		assert ledger.health(missions) is BudgetHealth.HEALTHY

	def test_recomputed_per_call(self) -> None:
		mission = make_mission(id="a", status=MissionStatus.RUNNING, cost=0.0)
		missions = [mission]
		ledger = BudgetLedger(10.0)
		assert ledger.used(missions) == 0.0
		mission.status = MissionStatus.COMPLETE
		mission.cost = 7.5
		assert ledger.used(missions) == pytest.approx(7.5)
		assert ledger.health(missions) is BudgetHealth.WARNING

	def test_overspend_goes_negative(self) -> None:
		ledger = BudgetLedger(10.0)
		missions = [make_mission(id="a", cost=12.0)]
		assert ledger.remaining(missions) == pytest.approx(-2.0)
		assert ledger.health(missions) is BudgetHealth.CRITICAL

	def test_pending_estimate(self) -> None:
		missions = [
			make_mission(id="a", status=MissionStatus.RUNNING, tier="Deep"),
			make_mission(id="b", status=MissionStatus.RUNNING, type=MissionType.ENGINEERING, tier="Standard"),
			make_mission(id="c", tier="Heavy", cost=5.0),
		]
		assert BudgetLedger.pending_estimate(missions) == pytest.approx(4.2)

	def test_history_total_and_breakdown(self) -> None:
		rows = [ModelCost("Claude Sonnet", "lead", 1000, 0.3), ModelCost("GPT-4o", "critic", 500, 0.1)]
		missions = [make_mission(id="a", cost=0.4, model_costs=rows), make_mission(id="b", cost=1.0)]
		assert BudgetLedger.history_total(missions) == pytest.approx(1.4)
		breakdown = BudgetLedger.cost_breakdown(missions[0])
		assert [r.model for r in breakdown] == ["Claude Sonnet", "GPT-4o"]
		breakdown.clear()
		assert len(missions[0].model_costs) == 2

	def test_summary(self) -> None:
		missions = [
			make_mission(id="a", cost=6.5),
			make_mission(id="b", status=MissionStatus.RUNNING, tier="Budget"),
		]
		summary = BudgetLedger(10.0).summary(missions)
		assert summary.used == pytest.approx(6.5)
		assert summary.remaining == pytest.approx(3.5)
		assert summary.health is BudgetHealth.WARNING
		assert summary.pending_estimate == pytest.approx(0.1)
		assert summary.finished_missions == 1
		assert summary.running_missions == 1

	def test_empty(self) -> None:
		summary = BudgetLedger().summary([])
		assert summary.daily_total == 10.0
		assert summary.remaining == 10.0
		assert summary.health is BudgetHealth.HEALTHY
