"""Data models for swarm-control state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, Field


class MissionType(str, Enum):
	"""Kind of work a mission performs."""

	RESEARCH = "R"
	ENGINEERING = "E"

	@property
	def label(self) -> str:
		return "Research" if self is MissionType.RESEARCH else "Engineering"


class MissionStatus(str, Enum):
	"""Mission lifecycle status. RUNNING is the only non-terminal value."""

	RUNNING = "running"
	COMPLETE = "complete"
	ERROR = "error"

	@property
	def is_terminal(self) -> bool:
		return self is not MissionStatus.RUNNING


class Provider(str, Enum):
	"""Backend execution strategy a mission is routed to."""

	SWARM = "swarm"
	OPENAI = "openai"
	CREWAI = "crewai"
	PYDANTIC = "pydantic"
	AGNO = "agno"
	LANGGRAPH = "langgraph"


LOCAL_ID_PREFIX = "local-"


def _today() -> str:
	return datetime.now(timezone.utc).date().isoformat()


def _local_id() -> str:
	return f"{LOCAL_ID_PREFIX}{uuid4().hex[:8]}"


def validate_topic(topic: str) -> str:
	"""Strip a user-supplied topic, rejecting empty input."""
	cleaned = (topic or "").strip()
	if not cleaned:
		raise ValueError("Topic must not be empty")
	return cleaned


@dataclass
class ModelCost:
	"""Per-model token and cost line of a completed mission."""

	model: str = ""
	role: str = ""
	tokens: int = 0
	cost: float = 0.0


@dataclass
class SwarmOutput:
	"""Provider-specific extras reported alongside a mission record."""

	confidence: str = ""  # high/medium/low
	key_findings: list[str] = field(default_factory=list)
	gaps: list[str] = field(default_factory=list)
	quality_score: float | None = None
	duration_sec: float | None = None
	total_cost: float | None = None


@dataclass
class Mission:
	"""A unit of orchestrated backend work."""

	id: str = field(default_factory=_local_id)
	type: MissionType = MissionType.RESEARCH
	topic: str = ""
	provider: Provider = Provider.SWARM
	status: MissionStatus = MissionStatus.RUNNING
	date: str = field(default_factory=_today)
	cost: float = 0.0
	synthesis: str = ""
	raw_outputs: dict[str, str] = field(default_factory=dict)
	model_costs: list[ModelCost] = field(default_factory=list)
	tier: str | None = None
	domain: str | None = None
	swarm_output: SwarmOutput | None = None

	@property
	def is_terminal(self) -> bool:
		return self.status.is_terminal


@dataclass
class AgentAssignment:
	"""One agent's role within a plan."""

	agent: str = ""
	role: str = ""
	focus: str = ""
	avoid: str | None = None
	rationale: str = ""


@dataclass
class Plan:
	"""A proposed, not-yet-executed mission blueprint."""

	id: str = ""
	topic: str = ""
	type: MissionType = MissionType.RESEARCH
	tier: str = ""
	domain: str | None = None
	outcome: str = ""
	goals: list[str] = field(default_factory=list)
	agent_assignments: list[AgentAssignment] = field(default_factory=list)
	budget_estimate: float = 0.0
	estimated_time_sec: int = 0


@dataclass
class SuggestionItem:
	"""A sharper rewrite of a topic proposed by the backend."""

	title: str = ""
	why_better: str = ""
	template: str = ""


@dataclass
class TopicSuggestion:
	"""Backend verdict on how well-specified a topic is."""

	quality: str = "good"  # good/vague/too_broad
	issues: list[str] = field(default_factory=list)
	suggestions: list[SuggestionItem] = field(default_factory=list)


# -- Wire schemas --


class ModelCostSchema(BaseModel, extra="ignore"):
	model: str
	role: str = ""
	tokens: int = Field(default=0, ge=0)
	cost: float = Field(default=0.0, ge=0)


class SwarmOutputSchema(BaseModel, extra="ignore"):
	confidence: str = ""
	key_findings: list[str] = []
	gaps: list[str] = []
	quality_score: float | None = None
	duration_sec: float | None = None
	total_cost: float | None = None


class MissionRecordSchema(BaseModel, extra="ignore"):
	"""Pydantic schema for a full mission record returned by the backend."""

	id: str = Field(validation_alias=AliasChoices("id", "mission_id"))
	type: MissionType = MissionType.RESEARCH
	topic: str = ""
	provider: Provider | None = None
	status: MissionStatus = MissionStatus.RUNNING
	date: str | None = None
	cost: float | None = Field(default=None, ge=0)
	synthesis: str | None = None
	raw_outputs: dict[str, str] | None = Field(
		default=None, validation_alias=AliasChoices("raw_outputs", "rawOutputs"),
	)
	model_costs: list[ModelCostSchema] | None = Field(
		default=None, validation_alias=AliasChoices("model_costs", "modelCosts"),
	)
	tier: str | None = None
	domain: str | None = None
	swarm_output: SwarmOutputSchema | None = Field(
		default=None, validation_alias=AliasChoices("swarm_output", "swarmOutput"),
	)

	def to_mission(self) -> Mission:
		"""Convert to a Mission, filling absent optional fields with empty defaults."""
		output = None
		if self.swarm_output is not None:
			output = SwarmOutput(**self.swarm_output.model_dump())
		return Mission(
			id=self.id,
			type=self.type,
			topic=self.topic,
			provider=self.provider or Provider.SWARM,
			status=self.status,
			date=self.date or _today(),
			cost=self.cost or 0.0,
			synthesis=self.synthesis or "",
			raw_outputs=dict(self.raw_outputs or {}),
			model_costs=[ModelCost(**mc.model_dump()) for mc in self.model_costs or []],
			tier=self.tier,
			domain=self.domain,
			swarm_output=output,
		)


class AgentAssignmentSchema(BaseModel, extra="ignore"):
	agent: str
	role: str = ""
	focus: str = ""
	avoid: str | None = None
	rationale: str = ""


class PlanSchema(BaseModel, extra="ignore"):
	"""Pydantic schema for a generated or refined plan."""

	id: str = Field(validation_alias=AliasChoices("id", "plan_id"))
	topic: str
	type: MissionType
	tier: str
	domain: str | None = None
	outcome: str = ""
	goals: list[str] = []
	agent_assignments: list[AgentAssignmentSchema] = []
	budget_estimate: float = Field(default=0.0, ge=0)
	estimated_time_sec: int = Field(default=0, ge=0)

	def to_plan(self) -> Plan:
		return Plan(
			id=self.id,
			topic=self.topic,
			type=self.type,
			tier=self.tier,
			domain=self.domain if self.type is MissionType.RESEARCH else None,
			outcome=self.outcome,
			goals=list(self.goals),
			agent_assignments=[AgentAssignment(**a.model_dump()) for a in self.agent_assignments],
			budget_estimate=self.budget_estimate,
			estimated_time_sec=self.estimated_time_sec,
		)


class MissionStatusSchema(BaseModel, extra="ignore"):
	status: MissionStatus


class LaunchResponseSchema(BaseModel, extra="ignore"):
	mission_id: str = Field(validation_alias=AliasChoices("mission_id", "missionId", "id"))


class SuggestionItemSchema(BaseModel, extra="ignore"):
	title: str = ""
	why_better: str = ""
	template: str = ""


class SuggestResponseSchema(BaseModel, extra="ignore"):
	quality: Literal["good", "vague", "too_broad"] = "good"
	issues: list[str] = []
	suggestions: list[SuggestionItemSchema] = []

	def to_suggestion(self) -> TopicSuggestion:
		return TopicSuggestion(
			quality=self.quality,
			issues=list(self.issues),
			suggestions=[SuggestionItem(**s.model_dump()) for s in self.suggestions],
		)


def mission_to_dict(mission: Mission) -> dict[str, Any]:
	"""Flatten a Mission into JSON-friendly primitives."""
	data: dict[str, Any] = {
		"id": mission.id,
		"type": mission.type.value,
		"topic": mission.topic,
		"provider": mission.provider.value,
		"status": mission.status.value,
		"date": mission.date,
		"cost": mission.cost,
		"synthesis": mission.synthesis,
		"raw_outputs": dict(mission.raw_outputs),
		"model_costs": [
			{"model": mc.model, "role": mc.role, "tokens": mc.tokens, "cost": mc.cost}
			for mc in mission.model_costs
		],
		"tier": mission.tier,
		"domain": mission.domain,
	}
	if mission.swarm_output is not None:
		so = mission.swarm_output
		data["swarm_output"] = {
			"confidence": so.confidence,
			"key_findings": list(so.key_findings),
			"gaps": list(so.gaps),
			"quality_score": so.quality_score,
			"duration_sec": so.duration_sec,
			"total_cost": so.total_cost,
		}
	return data
