"""Fan one prompt out to every SDK provider and track each independently.

Results live in per-provider slots owned by the runner, separate from the
main mission registry. A provider that fails to launch only affects its own
slot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from swarm_control.client import BackendError
from swarm_control.constants import POLL_INTERVAL, SDK_PROVIDERS
from swarm_control.models import Mission, MissionType, Provider, SwarmOutput, validate_topic
from swarm_control.poller import PollerSet

if TYPE_CHECKING:
	from swarm_control.client import SwarmClient

logger = logging.getLogger(__name__)


class SlotStatus(str, Enum):
	IDLE = "idle"
	RUNNING = "running"
	COMPLETE = "complete"
	ERROR = "error"


@dataclass
class ProviderSlot:
	"""Comparison state for one provider."""

	provider: Provider
	status: SlotStatus = SlotStatus.IDLE
	mission_id: str = ""
	swarm_output: SwarmOutput | None = None
	cost: float | None = None
	error: str | None = None

	@property
	def is_terminal(self) -> bool:
		return self.status in (SlotStatus.COMPLETE, SlotStatus.ERROR)


def _record_cost(record: Mission) -> float:
	if record.cost:
		return record.cost
	if record.swarm_output is not None and record.swarm_output.total_cost:
		return record.swarm_output.total_cost
	return 0.0


class ComparisonRunner:
	"""Runs the same topic against every SDK provider in parallel."""

	def __init__(
		self,
		client: SwarmClient,
		providers: tuple[Provider, ...] = SDK_PROVIDERS,
		interval: float = POLL_INTERVAL,
	) -> None:
		if Provider.SWARM in providers:
			raise ValueError("The swarm provider is not part of the comparison roster")
		self._client = client
		self.providers = providers
		self._pollers: PollerSet[Provider] = PollerSet(client, interval=interval)
		self._listeners: list[Callable[[ProviderSlot], None]] = []
		self.slots: dict[Provider, ProviderSlot] = {p: ProviderSlot(p) for p in providers}
		self.topic = ""
		self.mission_type = MissionType.RESEARCH
		self.is_running = False
		self._generation = 0
		self._changed = asyncio.Event()

	# -- aggregation --

	@property
	def total(self) -> int:
		return len(self.providers)

	@property
	def complete_count(self) -> int:
		return sum(1 for s in self.slots.values() if s.status is SlotStatus.COMPLETE)

	@property
	def finished_count(self) -> int:
		return sum(1 for s in self.slots.values() if s.is_terminal)

	@property
	def all_done(self) -> bool:
		return all(s.is_terminal for s in self.slots.values())

	@property
	def has_results(self) -> bool:
		return any(s.status is not SlotStatus.IDLE for s in self.slots.values())

	def active_pollers(self) -> list[Provider]:
		return self._pollers.active_keys()

	def on_update(self, listener: Callable[[ProviderSlot], None]) -> None:
		self._listeners.append(listener)

	def _update(self, slot: ProviderSlot) -> None:
		self.slots[slot.provider] = slot
		self._changed.set()
		for listener in list(self._listeners):
			try:
				listener(slot)
			except Exception as exc:
				logger.error("Comparison listener failed: %s", exc)

	# -- execution --

	async def run_all(self, topic: str, mission_type: MissionType = MissionType.RESEARCH) -> None:
		"""Launch every provider concurrently. Returns once all launches settle."""
		cleaned = validate_topic(topic)
		self._client.ensure_configured()
		if self.is_running:
			raise RuntimeError("Comparison launch already in progress")

		self._pollers.stop_all()
		self._generation += 1
		self.topic = cleaned
		self.mission_type = mission_type
		for provider in self.providers:
			self._update(ProviderSlot(provider))

		self.is_running = True
		logger.info("Launching %d providers for %r", self.total, cleaned)
		try:
			await asyncio.gather(*(self._launch(p) for p in self.providers))
		finally:
			self.is_running = False

	async def _launch(self, provider: Provider) -> None:
		generation = self._generation
		self._update(ProviderSlot(provider, status=SlotStatus.RUNNING))
		try:
			mission_id = await self._client.launch_provider(provider, self.topic, self.mission_type)
		except BackendError as exc:
			logger.warning("Launch on %s failed: %s", provider.value, exc)
			self._update(ProviderSlot(provider, status=SlotStatus.ERROR, error=str(exc) or "Launch failed"))
			return

		self._update(ProviderSlot(provider, status=SlotStatus.RUNNING, mission_id=mission_id))

		# Late callbacks from a previous run must not touch the new slots
		def _complete(record: Mission) -> None:
			if generation != self._generation:
				return
			self._update(ProviderSlot(
				provider,
				status=SlotStatus.COMPLETE,
				mission_id=mission_id,
				swarm_output=record.swarm_output,
				cost=_record_cost(record),
			))

		def _error(message: str) -> None:
			if generation != self._generation:
				return
			self._update(ProviderSlot(
				provider,
				status=SlotStatus.ERROR,
				mission_id=mission_id,
				error=message,
			))

		poller = self._pollers.start(provider, mission_id, _complete, _error)
		poller.on_exit(self._changed.set)

	async def wait_all(self, timeout: float | None = None) -> bool:
		"""Wait until every slot is terminal. Returns all_done."""
		loop = asyncio.get_running_loop()
		deadline = None if timeout is None else loop.time() + timeout
		while not self.all_done:
			if not self.is_running and not self.active_pollers():
				break
			remaining = None if deadline is None else deadline - loop.time()
			if remaining is not None and remaining <= 0:
				break
			# Woken by every slot update and by teardown
			self._changed.clear()
			try:
				await asyncio.wait_for(self._changed.wait(), timeout=remaining)
			except asyncio.TimeoutError:
				break
		return self.all_done

	def teardown(self) -> None:
		"""Stop every provider poller. Launched missions keep running remotely."""
		self._pollers.stop_all()
		self._changed.set()

	async def close(self) -> None:
		await self._pollers.close()
