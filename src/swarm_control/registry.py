"""In-memory mission registry: the single source of truth for views."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace

from swarm_control.models import Mission, MissionStatus

logger = logging.getLogger(__name__)

RegistryListener = Callable[[Mission], None]


def normalize(mission: Mission) -> Mission:
	"""Replace missing optional fields with empty defaults."""
	return replace(
		mission,
		synthesis=mission.synthesis or "",
		raw_outputs=dict(mission.raw_outputs or {}),
		model_costs=list(mission.model_costs or []),
	)


class MissionRegistry:
	"""Ordered, deduplicated mission collection, most recent first.

	Mutated only by replace-by-id, so interleaved async updates for
	different missions never interfere. There is no delete.
	"""

	def __init__(self) -> None:
		self._missions: list[Mission] = []
		self._index: dict[str, int] = {}
		self._listeners: list[RegistryListener] = []
		self._handoffs: dict[str, asyncio.Event] = {}

	def __len__(self) -> int:
		return len(self._missions)

	def __contains__(self, mission_id: object) -> bool:
		return mission_id in self._index

	def __iter__(self) -> Iterator[Mission]:
		return iter(list(self._missions))

	def get(self, mission_id: str) -> Mission | None:
		idx = self._index.get(mission_id)
		if idx is None:
			return None
		return self._missions[idx]

	def snapshot(self) -> list[Mission]:
		return list(self._missions)

	def _reindex(self) -> None:
		self._index = {m.id: i for i, m in enumerate(self._missions)}

	def upsert(self, mission: Mission) -> Mission:
		"""Insert a new mission at the front, or replace the record with the same id."""
		mission = normalize(mission)
		idx = self._index.get(mission.id)
		if idx is None:
			self._missions.insert(0, mission)
			self._reindex()
			logger.debug("Registered mission %s (%s)", mission.id, mission.status.value)
		else:
			current = self._missions[idx]
			if current.is_terminal and not mission.is_terminal:
				logger.debug(
					"Ignoring running update for mission %s already %s",
					mission.id, current.status.value,
				)
				return current
			self._missions[idx] = mission
		self._notify(mission)
		return mission

	def load_all(self, missions: Iterable[Mission]) -> None:
		"""Replace the collection with a bulk load, keeping the given order.

		A record already terminal here is kept over a running one from the
		load, so a stale listing never moves a mission back to running.
		"""
		loaded: list[Mission] = []
		seen: set[str] = set()
		for m in missions:
			if m.id in seen:
				logger.warning("Duplicate mission id %s in bulk load, keeping first", m.id)
				continue
			seen.add(m.id)
			current = self.get(m.id)
			if current is not None and current.is_terminal and not m.is_terminal:
				logger.debug("Keeping %s record for mission %s over bulk load", current.status.value, m.id)
				loaded.append(current)
				continue
			loaded.append(normalize(m))
		self._missions = loaded
		self._reindex()
		logger.info("Loaded %d missions", len(loaded))
		for m in loaded:
			self._notify(m)

	def mark_error(self, mission_id: str, message: str = "") -> Mission | None:
		"""Flag an existing mission as failed, keeping its other fields."""
		current = self.get(mission_id)
		if current is None:
			logger.warning("Cannot mark unknown mission %s as error", mission_id)
			return None
		if current.is_terminal:
			return current
		updated = replace(
			current,
			status=MissionStatus.ERROR,
			synthesis=current.synthesis or message,
		)
		self._missions[self._index[mission_id]] = updated
		self._notify(updated)
		return updated

	def subscribe(self, listener: RegistryListener) -> None:
		self._listeners.append(listener)

	def unsubscribe(self, listener: RegistryListener) -> None:
		if listener in self._listeners:
			self._listeners.remove(listener)

	def acknowledge(self, mission_id: str) -> asyncio.Event:
		"""Event that is set once a mission with this id is registered."""
		event = self._handoffs.get(mission_id)
		if event is None:
			event = asyncio.Event()
			if mission_id in self._index:
				event.set()
			else:
				self._handoffs[mission_id] = event
		return event

	def _notify(self, mission: Mission) -> None:
		event = self._handoffs.pop(mission.id, None)
		if event is not None:
			event.set()
		for listener in list(self._listeners):
			try:
				listener(mission)
			except Exception as exc:
				logger.error("Registry listener failed for %s: %s", mission.id, exc)
