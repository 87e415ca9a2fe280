"""Centralized tier tables, provider roster and default limits."""

from __future__ import annotations

from swarm_control.models import MissionType, Provider

# Seconds between status checks for an in-flight mission
POLL_INTERVAL: float = 3.0

DEFAULT_DAILY_BUDGET_USD: float = 10.0

# Remaining-budget thresholds: > HEALTHY is healthy, >= WARNING is warning, else critical
BUDGET_HEALTHY_ABOVE: float = 5.0
BUDGET_WARNING_FROM: float = 2.0

# Estimated cost per tier, used until a mission reports its actual cost
TIER_COSTS: dict[str, float] = {
	"Budget": 0.10,
	"Deep": 1.20,
	"Heavy": 6.00,
}
STANDARD_TIER_COSTS: dict[MissionType, float] = {
	MissionType.RESEARCH: 0.40,
	MissionType.ENGINEERING: 3.00,
}
FALLBACK_TIER_COST: float = 0.40

TIERS_BY_TYPE: dict[MissionType, tuple[str, ...]] = {
	MissionType.RESEARCH: ("Budget", "Standard", "Deep"),
	MissionType.ENGINEERING: ("Standard", "Heavy"),
}

DEFAULT_TIER: dict[MissionType, str] = {
	MissionType.RESEARCH: "Budget",
	MissionType.ENGINEERING: "Standard",
}

# Research-only specializations; None is the general pack
DOMAIN_PACKS: dict[str | None, str] = {
	None: "General",
	"health_science": "Health / Science",
	"trading_finance": "Trading / Finance",
}

# External SDK providers fired side by side by the comparison runner
SDK_PROVIDERS: tuple[Provider, ...] = (
	Provider.OPENAI,
	Provider.CREWAI,
	Provider.PYDANTIC,
	Provider.AGNO,
	Provider.LANGGRAPH,
)

PROVIDER_LABELS: dict[Provider, str] = {
	Provider.SWARM: "Swarm",
	Provider.OPENAI: "OpenAI",
	Provider.CREWAI: "CrewAI",
	Provider.PYDANTIC: "Pydantic AI",
	Provider.AGNO: "Agno",
	Provider.LANGGRAPH: "LangGraph",
}
