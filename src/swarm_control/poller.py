"""Mission status polling.

A MissionPoller is one asyncio task that checks a mission's status on a fixed
interval until it sees a terminal state, then fetches the full record exactly
once and stops for good. PollerSet keeps at most one poller per key and is
what owners (registry views, the comparison runner) tear down in one call.

Stopping a poller only prevents future ticks. A status request already in
flight is allowed to finish and its result is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable
from dataclasses import replace
from typing import TYPE_CHECKING, Generic, TypeVar

from swarm_control.client import BackendError
from swarm_control.constants import POLL_INTERVAL
from swarm_control.models import Mission, MissionStatus

if TYPE_CHECKING:
	from swarm_control.client import SwarmClient
	from swarm_control.registry import MissionRegistry

logger = logging.getLogger(__name__)

CompleteCallback = Callable[[Mission], None]
ErrorCallback = Callable[[str], None]

MISSION_FAILED = "Mission failed"
RECORD_FETCH_FAILED = "Mission complete but record fetch failed"

K = TypeVar("K", bound=Hashable)


class MissionPoller:
	"""Polls one mission id until it reaches a terminal state."""

	def __init__(
		self,
		client: SwarmClient,
		mission_id: str,
		on_complete: CompleteCallback,
		on_error: ErrorCallback,
		interval: float = POLL_INTERVAL,
	) -> None:
		self.mission_id = mission_id
		self._client = client
		self._on_complete = on_complete
		self._on_error = on_error
		self._interval = interval
		self._task: asyncio.Task[None] | None = None
		self._stop_event = asyncio.Event()
		self._finished = False
		self.status_checks = 0
		self.final_status: MissionStatus | None = None

	@property
	def is_active(self) -> bool:
		return (
			self._task is not None
			and not self._task.done()
			and not self._stop_event.is_set()
		)

	@property
	def finished(self) -> bool:
		"""True once a terminal status was observed."""
		return self._finished

	def start(self) -> None:
		if self._task is not None or self._finished:
			return
		self._task = asyncio.create_task(self._run(), name=f"poll-{self.mission_id}")

	def stop(self) -> None:
		"""Prevent any further ticks."""
		self._stop_event.set()

	def on_exit(self, callback: Callable[[], None]) -> None:
		"""Run callback once the poll task has exited."""
		if self._task is None:
			callback()
			return
		self._task.add_done_callback(lambda _task: callback())

	async def wait(self, timeout: float | None = None) -> None:
		"""Wait for the poll task to exit, cancelling it if timeout expires."""
		if self._task is None:
			return
		try:
			await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
		except asyncio.TimeoutError:
			self._task.cancel()
			try:
				await self._task
			except asyncio.CancelledError:
				pass

	async def _sleep(self) -> bool:
		"""Sleep one interval. Returns False if stopped meanwhile."""
		try:
			await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
		except asyncio.TimeoutError:
			return True
		return False

	async def _run(self) -> None:
		try:
			while await self._sleep():
				if await self._tick():
					return
		except asyncio.CancelledError:
			logger.debug("Poller for %s cancelled", self.mission_id)
			raise
		except Exception as exc:
			logger.error("Poller for %s crashed: %s", self.mission_id, exc)

	async def _tick(self) -> bool:
		"""One status check. Returns True when polling is over."""
		self.status_checks += 1
		try:
			status = await self._client.mission_status(self.mission_id)
		except BackendError as exc:
			logger.debug("Status check for %s failed, will retry: %s", self.mission_id, exc)
			return False
		if self._stop_event.is_set():
			return True
		if status is MissionStatus.RUNNING:
			return False

		self._finished = True
		self.final_status = status
		if status is MissionStatus.ERROR:
			logger.info("Mission %s reported error", self.mission_id)
			self._on_error(MISSION_FAILED)
			return True

		logger.info("Mission %s complete, fetching record", self.mission_id)
		try:
			record = await self._client.get_mission(self.mission_id)
		except BackendError as exc:
			logger.warning("Record fetch for %s failed: %s", self.mission_id, exc)
			self._on_error(RECORD_FETCH_FAILED)
			return True
		if not record.is_terminal:
			record = replace(record, status=status)
		self._on_complete(record)
		return True


class PollerSet(Generic[K]):
	"""Keyed pollers, never more than one per key.

	A poller leaves the set once its task exits.
	"""

	def __init__(self, client: SwarmClient, interval: float = POLL_INTERVAL) -> None:
		self._client = client
		self._interval = interval
		self._pollers: dict[K, MissionPoller] = {}

	def start(
		self,
		key: K,
		mission_id: str,
		on_complete: CompleteCallback,
		on_error: ErrorCallback,
	) -> MissionPoller:
		"""Start polling under `key`, stopping any poller already there first."""
		self.stop(key)
		poller = MissionPoller(
			self._client, mission_id, on_complete, on_error, interval=self._interval,
		)
		self._pollers[key] = poller
		poller.start()
		poller.on_exit(lambda: self._discard(key, poller))
		return poller

	def _discard(self, key: K, poller: MissionPoller) -> None:
		# A restart under the same key may already have replaced this poller
		if self._pollers.get(key) is poller:
			del self._pollers[key]

	def __len__(self) -> int:
		return len(self._pollers)

	def get(self, key: K) -> MissionPoller | None:
		return self._pollers.get(key)

	def stop(self, key: K) -> bool:
		poller = self._pollers.get(key)
		if poller is None:
			return False
		poller.stop()
		return True

	def stop_all(self) -> None:
		for poller in self._pollers.values():
			poller.stop()

	def active_keys(self) -> list[K]:
		return [k for k, p in self._pollers.items() if p.is_active]

	async def close(self, timeout: float = 5.0) -> None:
		"""Stop every poller and wait for their tasks to exit."""
		self.stop_all()
		pollers = list(self._pollers.values())
		self._pollers.clear()
		if pollers:
			await asyncio.gather(*(p.wait(timeout) for p in pollers))


def watch_in_registry(
	pollers: PollerSet[str],
	registry: MissionRegistry,
	mission_id: str,
) -> MissionPoller:
	"""Poll a mission and write its terminal state into the registry."""

	def _complete(record: Mission) -> None:
		registry.upsert(record)

	def _error(message: str) -> None:
		registry.mark_error(mission_id, message)

	return pollers.start(mission_id, mission_id, _complete, _error)
