"""Plan lifecycle controller.

Drives one activation from topic entry to dispatched mission:

	INPUT -> GENERATING -> REVIEW -> APPROVING -> (handoff) -> INPUT

REVIEW loops on itself for every refinement, and a failed generate falls back
to INPUT with the typed topic intact. Only approval writes into the registry;
everything else here is transient state that cancel() throws away.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from swarm_control.client import BackendConfigError, BackendRequestError
from swarm_control.config import ControllerConfig
from swarm_control.constants import DEFAULT_TIER
from swarm_control.models import Mission, MissionStatus, MissionType, Plan, TopicSuggestion, validate_topic
from swarm_control.poller import watch_in_registry

if TYPE_CHECKING:
	from swarm_control.client import SwarmClient
	from swarm_control.poller import PollerSet
	from swarm_control.registry import MissionRegistry

logger = logging.getLogger(__name__)


class ControllerStep(str, Enum):
	INPUT = "input"
	GENERATING = "generating"
	REVIEW = "review"
	APPROVING = "approving"


@dataclass
class ControllerState:
	"""Snapshot handed to change listeners."""

	step: ControllerStep
	mode: MissionType | None
	topic: str
	tier: str
	domain: str | None
	plan: Plan | None
	is_refining: bool
	is_approving: bool
	error: str | None


class InvalidTransitionError(RuntimeError):
	"""Operation not allowed in the controller's current step."""


class PlanLifecycleController:
	"""State machine for generating, refining and approving a plan."""

	def __init__(
		self,
		client: SwarmClient,
		registry: MissionRegistry,
		pollers: PollerSet[str],
		config: ControllerConfig | None = None,
	) -> None:
		self._client = client
		self._registry = registry
		self._pollers = pollers
		self._config = config or ControllerConfig()
		self._listeners: list[Callable[[ControllerState], None]] = []
		self.step = ControllerStep.INPUT
		self.mode: MissionType | None = None
		self.topic = ""
		self.tier = ""
		self.domain: str | None = None
		self.plan: Plan | None = None
		self.is_refining = False
		self.is_approving = False
		self.error: str | None = None

	# -- observation --

	def state(self) -> ControllerState:
		return ControllerState(
			step=self.step,
			mode=self.mode,
			topic=self.topic,
			tier=self.tier,
			domain=self.domain,
			plan=self.plan,
			is_refining=self.is_refining,
			is_approving=self.is_approving,
			error=self.error,
		)

	def on_change(self, listener: Callable[[ControllerState], None]) -> None:
		self._listeners.append(listener)

	def _changed(self) -> None:
		snap = self.state()
		for listener in list(self._listeners):
			try:
				listener(snap)
			except Exception as exc:
				logger.error("Controller listener failed: %s", exc)

	def _set_step(self, step: ControllerStep) -> None:
		if step is not self.step:
			logger.info("Controller %s -> %s", self.step.value, step.value)
		self.step = step
		self._changed()

	# -- input --

	def select_mode(self, mode: MissionType) -> None:
		"""Pick research or engineering; resets topic, tier and domain."""
		if self.step is not ControllerStep.INPUT:
			raise InvalidTransitionError(f"Cannot change mode while {self.step.value}")
		self.mode = mode
		self.topic = ""
		self.tier = DEFAULT_TIER[mode]
		self.domain = None
		self.error = None
		self._changed()

	async def check_topic(
		self,
		topic: str,
		domain: str | None = None,
		mission_type: MissionType | None = None,
	) -> TopicSuggestion:
		"""Ask the backend whether a topic is sharp enough. Does not change step."""
		cleaned = validate_topic(topic)
		mode = mission_type or self.mode or MissionType.RESEARCH
		return await self._client.suggest_topics(cleaned, domain, mode)

	# -- lifecycle --

	async def generate_plan(
		self,
		mission_type: MissionType | None,
		topic: str,
		tier: str,
		domain: str | None = None,
	) -> Plan | None:
		"""Request a plan. Returns it, or None if the request failed."""
		if self.step is not ControllerStep.INPUT:
			raise InvalidTransitionError(f"Cannot generate while {self.step.value}")
		if mission_type is None:
			raise ValueError("Select Research or Engineering first")
		cleaned = validate_topic(topic)
		# Offline is reported before any state change
		self._client.ensure_configured()

		if mission_type is not MissionType.RESEARCH:
			domain = None
		self.mode = mission_type
		self.topic = cleaned
		self.tier = tier
		self.domain = domain
		self.error = None
		self._set_step(ControllerStep.GENERATING)

		try:
			plan = await self._client.generate_plan(mission_type, cleaned, tier, domain)
		except (BackendRequestError, BackendConfigError) as exc:
			logger.warning("Plan generation failed: %s", exc)
			self.error = str(exc)
			self._set_step(ControllerStep.INPUT)
			return None

		if self.step is not ControllerStep.GENERATING:
			logger.info("Discarding plan %s generated after cancel", plan.id)
			return None
		self.plan = plan
		self._set_step(ControllerStep.REVIEW)
		return plan

	async def refine_plan(self, plan_id: str, instruction: str) -> Plan | None:
		"""Replace the held plan with a refined one. Returns None on failure."""
		if self.plan is None or self.step is not ControllerStep.REVIEW:
			raise InvalidTransitionError("No plan under review")
		instruction = (instruction or "").strip()
		if not instruction:
			raise ValueError("Refinement instruction must not be empty")
		if self.is_refining or self.is_approving:
			raise InvalidTransitionError("Another plan request is in flight")

		self.is_refining = True
		self.error = None
		self._changed()
		try:
			refined = await self._client.refine_plan(plan_id, instruction)
		except (BackendRequestError, BackendConfigError) as exc:
			logger.warning("Plan refinement failed: %s", exc)
			self.error = str(exc)
			return None
		finally:
			self.is_refining = False
			self._changed()

		# A cancel() while the request was in flight discards the result
		if self.step is not ControllerStep.REVIEW:
			return None
		if refined.id != plan_id:
			logger.info("Plan %s replaced by %s", plan_id, refined.id)
		self.plan = refined
		self._changed()
		return refined

	async def approve_and_execute(
		self,
		plan_id: str,
		mission_type: MissionType | None = None,
		topic: str | None = None,
		tier: str | None = None,
		domain: str | None = None,
	) -> Mission | None:
		"""Turn the held plan into a running mission and hand off to the registry.

		Returns the placeholder mission that was registered. With
		block_on_approval_failure set, a failed approval returns None and the
		plan stays in review.
		"""
		if self.plan is None or self.step is not ControllerStep.REVIEW:
			raise InvalidTransitionError("No plan to approve")
		if self.is_refining or self.is_approving:
			raise InvalidTransitionError("Another plan request is in flight")

		plan = self.plan
		mission_type = mission_type or plan.type
		topic = validate_topic(topic or plan.topic)
		tier = tier or plan.tier
		if mission_type is MissionType.RESEARCH:
			domain = domain if domain is not None else plan.domain
		else:
			domain = None

		self.is_approving = True
		self.error = None
		self._set_step(ControllerStep.APPROVING)

		try:
			mission_id = await self._client.approve_plan(plan_id, mission_type, topic, tier, domain)
		except (BackendRequestError, BackendConfigError) as exc:
			logger.warning("Approval of plan %s failed: %s", plan_id, exc)
			if self._config.block_on_approval_failure:
				self.is_approving = False
				self.error = str(exc)
				self._set_step(ControllerStep.REVIEW)
				return None
			placeholder = Mission(
				type=mission_type,
				topic=topic,
				status=MissionStatus.ERROR,
				synthesis=f"Launch failed: {exc}",
				tier=tier,
				domain=domain,
			)
		else:
			placeholder = Mission(
				id=mission_id,
				type=mission_type,
				topic=topic,
				status=MissionStatus.RUNNING,
				tier=tier,
				domain=domain,
			)

		handoff = self._registry.acknowledge(placeholder.id)
		registered = self._registry.upsert(placeholder)
		if placeholder.status is MissionStatus.RUNNING:
			watch_in_registry(self._pollers, self._registry, placeholder.id)
			logger.info("Mission %s launched from plan %s", placeholder.id, plan_id)

		try:
			await asyncio.wait_for(handoff.wait(), timeout=self._config.handoff_timeout)
		except asyncio.TimeoutError:
			logger.warning("No handoff acknowledgement for mission %s", placeholder.id)
		self._reset()
		return registered

	def cancel(self) -> None:
		"""Discard the plan and transient flags. Dispatched missions keep running."""
		self._reset()

	def _reset(self) -> None:
		self.plan = None
		self.mode = None
		self.topic = ""
		self.tier = ""
		self.domain = None
		self.is_refining = False
		self.is_approving = False
		self.error = None
		self._set_step(ControllerStep.INPUT)
