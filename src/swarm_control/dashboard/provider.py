"""Data provider for the TUI dashboard.

Owns a MissionRegistry plus the pollers watching its running missions and
turns both into DashboardSnapshots. Everything runs on the caller's event
loop, so the textual app can subscribe directly without thread hops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from swarm_control.budget import BudgetHealth, BudgetLedger, BudgetSummary
from swarm_control.client import BackendConfigError, BackendRequestError
from swarm_control.models import Mission
from swarm_control.poller import PollerSet, watch_in_registry
from swarm_control.registry import MissionRegistry

if TYPE_CHECKING:
	from swarm_control.client import SwarmClient
	from swarm_control.config import SwarmConfig

log = logging.getLogger(__name__)


@dataclass
class DashboardSnapshot:
	"""Complete state for rendering a dashboard frame."""

	timestamp: str = ""
	online: bool = False
	error: str = ""
	missions: list[Mission] = field(default_factory=list)
	selected: Mission | None = None
	budget: BudgetSummary = field(default_factory=BudgetSummary)
	history_total: float = 0.0
	watching: int = 0

	@property
	def running(self) -> int:
		return sum(1 for m in self.missions if not m.is_terminal)

	@property
	def health(self) -> BudgetHealth:
		return self.budget.health


class DashboardProvider:
	"""Loads missions, keeps running ones polled, and publishes snapshots."""

	def __init__(self, client: SwarmClient, config: SwarmConfig) -> None:
		self._client = client
		self._ledger = BudgetLedger(config.budget.daily_total_usd)
		self.registry = MissionRegistry()
		self._pollers: PollerSet[str] = PollerSet(client, interval=config.polling.interval)
		self._callbacks: list[Callable[[DashboardSnapshot], None]] = []
		self._selected_id: str | None = None
		self._error = ""
		self._snapshot = DashboardSnapshot()
		self.registry.subscribe(self._on_mission)

	def get_snapshot(self) -> DashboardSnapshot:
		return self._snapshot

	def subscribe(self, callback: Callable[[DashboardSnapshot], None]) -> None:
		self._callbacks.append(callback)

	async def load(self) -> DashboardSnapshot:
		"""Bulk-load missions from the backend and watch the running ones."""
		try:
			missions = await self._client.list_missions()
		except BackendConfigError as exc:
			self._error = str(exc)
			return self.refresh()
		except BackendRequestError as exc:
			log.warning("Mission load failed: %s", exc)
			self._error = str(exc)
			return self.refresh()

		self._error = ""
		self.registry.load_all(missions)
		watched = set(self._pollers.active_keys())
		for m in self.registry:
			if not m.is_terminal and m.id not in watched:
				watch_in_registry(self._pollers, self.registry, m.id)
		if self._selected_id not in self.registry:
			self._selected_id = None
		return self.refresh()

	def select(self, mission_id: str | None) -> DashboardSnapshot:
		self._selected_id = mission_id if mission_id in self.registry else None
		return self.refresh()

	def select_next(self, step: int = 1) -> DashboardSnapshot:
		"""Move the selection up or down the mission list, wrapping around."""
		missions = self.registry.snapshot()
		if not missions:
			return self.select(None)
		ids = [m.id for m in missions]
		if self._selected_id not in ids:
			idx = 0 if step > 0 else len(ids) - 1
		else:
			idx = (ids.index(self._selected_id) + step) % len(ids)
		return self.select(ids[idx])

	def refresh(self) -> DashboardSnapshot:
		"""Rebuild the snapshot from the registry and notify subscribers."""
		snapshot = self._build_snapshot()
		self._snapshot = snapshot
		for cb in self._callbacks:
			try:
				cb(snapshot)
			except Exception:
				log.exception("Dashboard callback error")
		return snapshot

	async def close(self) -> None:
		self.registry.unsubscribe(self._on_mission)
		await self._pollers.close()

	def _on_mission(self, _mission: Mission) -> None:
		self.refresh()

	def _build_snapshot(self) -> DashboardSnapshot:
		missions = self.registry.snapshot()
		selected = self.registry.get(self._selected_id) if self._selected_id else None
		return DashboardSnapshot(
			timestamp=datetime.now(timezone.utc).isoformat(),
			online=self._client.online,
			error=self._error,
			missions=missions,
			selected=selected,
			budget=self._ledger.summary(missions),
			history_total=self._ledger.history_total(missions),
			watching=len(self._pollers.active_keys()),
		)
