"""Tests for DashboardProvider snapshot building and TUI render helpers."""

from __future__ import annotations

import pytest

from conftest import FAST_INTERVAL, FakeBackend, make_client, make_mission, mission_payload, wait_until
from swarm_control.budget import BudgetHealth
from swarm_control.config import SwarmConfig
from swarm_control.dashboard.provider import DashboardProvider, DashboardSnapshot
from swarm_control.models import MissionStatus, ModelCost


def _config() -> SwarmConfig:
	cfg = SwarmConfig()
	cfg.polling.interval = FAST_INTERVAL
	return cfg


class TestSnapshot:
	def test_empty(self) -> None:
		snap = DashboardSnapshot()
		assert snap.running == 0
		assert snap.health is BudgetHealth.HEALTHY
		assert snap.selected is None


class TestDashboardProvider:
	@pytest.mark.asyncio
	async def test_load_builds_snapshot(self, backend: FakeBackend) -> None:
		backend.missions = [
			mission_payload(id="a", cost=8.5),
			mission_payload(id="b", status="running", cost=None),
		]
		async with make_client(backend) as client:
			provider = DashboardProvider(client, _config())
			snap = await provider.load()
			await provider.close()
		assert snap.online
		assert snap.error == ""
		assert [m.id for m in snap.missions] == ["a", "b"]
		assert snap.running == 1
		assert snap.budget.remaining == pytest.approx(1.5)
		assert snap.health is BudgetHealth.CRITICAL
		assert snap.history_total == pytest.approx(8.5)

	@pytest.mark.asyncio
	async def test_running_missions_update_in_place(self, backend: FakeBackend) -> None:
		backend.missions = [mission_payload(id="b", status="running", cost=None)]
		backend.statuses["b"] = ["running", "complete"]
		backend.records["b"] = mission_payload(id="b", cost=0.9)
		snapshots: list[DashboardSnapshot] = []
		async with make_client(backend) as client:
			provider = DashboardProvider(client, _config())
			provider.subscribe(snapshots.append)
			await provider.load()
			assert provider.get_snapshot().watching == 1
			await wait_until(lambda: provider.get_snapshot().running == 0)
			await provider.close()
		final = provider.get_snapshot()
		assert final.missions[0].status is MissionStatus.COMPLETE
		assert final.budget.used == pytest.approx(0.9)
		assert len(snapshots) >= 2

	@pytest.mark.asyncio
	async def test_offline(self, backend: FakeBackend) -> None:
		async with make_client(backend, api_url="") as client:
			provider = DashboardProvider(client, _config())
			snap = await provider.load()
			await provider.close()
		assert not snap.online
		assert "API not configured" in snap.error
		assert snap.missions == []

	@pytest.mark.asyncio
	async def test_load_failure_keeps_previous(self, backend: FakeBackend) -> None:
		backend.missions = [mission_payload(id="a")]
		async with make_client(backend) as client:
			provider = DashboardProvider(client, _config())
			await provider.load()
			backend.failures[("GET", "/missions")] = (500, {"detail": "db locked"})
			snap = await provider.load()
			await provider.close()
		assert "db locked" in snap.error
		assert [m.id for m in snap.missions] == ["a"]

	@pytest.mark.asyncio
	async def test_reload_keeps_finished_mission(self, backend: FakeBackend) -> None:
		backend.missions = [mission_payload(id="m1", status="running", cost=None)]
		backend.statuses["m1"] = ["complete"]
		backend.records["m1"] = mission_payload(id="m1", cost=0.5)
		async with make_client(backend) as client:
			provider = DashboardProvider(client, _config())
			await provider.load()
			await wait_until(lambda: provider.get_snapshot().running == 0)
			snap = await provider.load()
			await provider.close()
		assert snap.missions[0].status is MissionStatus.COMPLETE
		assert snap.budget.used == pytest.approx(0.5)
		assert snap.watching == 0
		assert backend.count("GET", "/missions/m1") == 1

	@pytest.mark.asyncio
	async def test_selection_wraps(self, backend: FakeBackend) -> None:
		backend.missions = [mission_payload(id="a"), mission_payload(id="b"), mission_payload(id="c")]
		async with make_client(backend) as client:
			provider = DashboardProvider(client, _config())
			await provider.load()
			assert provider.select_next().selected.id == "a"  # type: ignore[union-attr]
			assert provider.select_next().selected.id == "b"  # type: ignore[union-attr]
			assert provider.select_next(-1).selected.id == "a"  # type: ignore[union-attr]
			assert provider.select_next(-1).selected.id == "c"  # type: ignore[union-attr]
			assert provider.select("zzz").selected is None
			await provider.close()


class TestTuiHelpers:
	@pytest.fixture(autouse=True)
	def _textual(self) -> None:
		pytest.importorskip("textual")

	def test_fmt_cost(self) -> None:
		from swarm_control.dashboard.tui import _fmt_cost

		assert _fmt_cost(1.5) == "$1.50"
		assert _fmt_cost(0) == "$0.00"

	def test_trunc(self) -> None:
		from swarm_control.dashboard.tui import _trunc

		assert _trunc("short") == "short"
		assert _trunc("x" * 50, 10) == "xxxxxxx..."

	def test_budget_text_colour(self) -> None:
		from swarm_control.budget import BudgetSummary
		from swarm_control.dashboard.tui import _budget_text

		snap = DashboardSnapshot(budget=BudgetSummary(daily_total=10.0, remaining=1.0, health=BudgetHealth.CRITICAL))
		text = _budget_text(snap)
		assert "[red]$1.00[/red]" in text
		assert "of $10.00" in text

	def test_detail_text(self) -> None:
		from swarm_control.dashboard.tui import _detail_text

		assert "Select a mission" in _detail_text(None)
		running = make_mission(status=MissionStatus.RUNNING)
		assert "running" in _detail_text(running)
		failed = make_mission(status=MissionStatus.ERROR, synthesis="Launch failed: 500")
		assert "Launch failed: 500" in _detail_text(failed)
		done = make_mission(
			synthesis="Report body",
			domain="health_science",
			model_costs=[ModelCost("GPT-4o", "critic", 300, 0.05)],
		)
		text = _detail_text(done)
		assert "Report body" in text
		assert "Health / Science" in text
		assert "GPT-4o" in text

	def test_app_constructs_offline(self) -> None:
		from swarm_control.dashboard.tui import DashboardApp

		app = DashboardApp(config=SwarmConfig())
		assert app.TITLE == "Swarm Control"
