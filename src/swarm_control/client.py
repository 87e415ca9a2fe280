"""Async HTTP client for the swarm execution/planning service.

All backend traffic goes through SwarmClient. Responses are validated with
the pydantic wire schemas in models.py before they reach the rest of the
package. Every failure is mapped onto the BackendError hierarchy:

- BackendConfigError: base URL missing or not http(s). Raised before any network
  activity and never worth retrying.
- BackendRequestError: transport failure, non-2xx response, or a payload the
  schemas reject. Carries a message fit for showing to the operator.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from swarm_control.models import (
	LaunchResponseSchema,
	Mission,
	MissionRecordSchema,
	MissionStatus,
	MissionStatusSchema,
	MissionType,
	Plan,
	PlanSchema,
	Provider,
	SuggestResponseSchema,
	TopicSuggestion,
)

if TYPE_CHECKING:
	from swarm_control.config import BackendConfig

logger = logging.getLogger(__name__)

API_PREFIX = "/api/swarm"


class BackendError(Exception):
	"""Base class for swarm backend failures."""


class BackendConfigError(BackendError):
	"""The backend URL is not configured; the client is offline."""

	def __init__(self, message: str = "API not configured. Set backend.api_url or SWARM_API_URL.") -> None:
		super().__init__(message)


class BackendRequestError(BackendError):
	"""A request to the backend failed or returned an unusable payload."""

	def __init__(self, message: str, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code


def _error_detail(resp: httpx.Response) -> str:
	"""Pull a human-readable reason out of an error response."""
	try:
		body = resp.json()
	except ValueError:
		body = None
	if isinstance(body, dict):
		for key in ("detail", "error", "message"):
			value = body.get(key)
			if isinstance(value, str) and value:
				return value
	text = resp.text.strip()
	if text:
		return text[:200]
	return resp.reason_phrase or "request failed"


class SwarmClient:
	"""Backend client using httpx.

	The base URL is injected through BackendConfig. An empty or malformed
	URL puts the client in offline mode: every call raises BackendConfigError.
	"""

	def __init__(
		self,
		config: BackendConfig,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self._config = config
		self._transport = transport
		self._client: httpx.AsyncClient | None = None

	@property
	def online(self) -> bool:
		return self._config.online

	@property
	def base_url(self) -> str:
		return self._config.api_url.rstrip("/")

	def ensure_configured(self) -> None:
		"""Raise BackendConfigError when the backend URL is missing or malformed."""
		if self.online:
			return
		url = self._config.api_url.strip()
		if url:
			raise BackendConfigError(f"Invalid backend URL {url!r}: expected an http(s) URL")
		raise BackendConfigError()

	def _ensure_client(self) -> httpx.AsyncClient:
		if self._client is None:
			self._client = httpx.AsyncClient(
				base_url=self.base_url,
				timeout=self._config.timeout,
				transport=self._transport,
			)
		return self._client

	async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
		self.ensure_configured()
		client = self._ensure_client()
		url = f"{API_PREFIX}{path}"
		try:
			resp = await client.request(method, url, json=json)
		except httpx.HTTPError as exc:
			raise BackendRequestError(f"Backend unreachable: {exc}") from exc
		if resp.is_error:
			detail = _error_detail(resp)
			raise BackendRequestError(
				f"{method} {url} failed ({resp.status_code}): {detail}",
				status_code=resp.status_code,
			)
		try:
			return resp.json()
		except ValueError as exc:
			raise BackendRequestError(f"{method} {url} returned invalid JSON") from exc

	@staticmethod
	def _invalid(what: str, exc: ValidationError) -> BackendRequestError:
		return BackendRequestError(f"Backend returned an invalid {what}: {exc.error_count()} validation error(s)")

	async def generate_plan(
		self,
		mission_type: MissionType,
		topic: str,
		tier: str,
		domain: str | None = None,
	) -> Plan:
		"""Ask the planner for a new plan."""
		data = await self._request("POST", "/plan", json={
			"type": mission_type.value,
			"topic": topic,
			"tier": tier,
			"domain": domain,
		})
		try:
			return PlanSchema.model_validate(data).to_plan()
		except ValidationError as exc:
			raise self._invalid("plan", exc) from exc

	async def refine_plan(self, plan_id: str, instruction: str) -> Plan:
		"""Re-plan with a free-text adjustment. The returned id may differ."""
		data = await self._request("POST", f"/plan/{plan_id}/refine", json={"instruction": instruction})
		try:
			return PlanSchema.model_validate(data).to_plan()
		except ValidationError as exc:
			raise self._invalid("plan", exc) from exc

	async def approve_plan(
		self,
		plan_id: str,
		mission_type: MissionType | None = None,
		topic: str = "",
		tier: str = "",
		domain: str | None = None,
	) -> str:
		"""Convert a plan into a running mission. Returns the mission id."""
		body: dict[str, Any] = {}
		if mission_type is not None:
			body = {"type": mission_type.value, "topic": topic, "tier": tier, "domain": domain}
		data = await self._request("POST", f"/plan/{plan_id}/approve", json=body)
		try:
			return LaunchResponseSchema.model_validate(data).mission_id
		except ValidationError as exc:
			raise self._invalid("approval response", exc) from exc

	async def launch_provider(self, provider: Provider, topic: str, mission_type: MissionType) -> str:
		"""Start a mission on one provider directly. Returns the mission id."""
		data = await self._request("POST", "/activate", json={
			"provider": provider.value,
			"topic": topic,
			"type": mission_type.value,
		})
		try:
			return LaunchResponseSchema.model_validate(data).mission_id
		except ValidationError as exc:
			raise self._invalid("launch response", exc) from exc

	async def mission_status(self, mission_id: str) -> MissionStatus:
		"""Lightweight status check for an in-flight mission."""
		data = await self._request("GET", f"/status/{mission_id}")
		try:
			return MissionStatusSchema.model_validate(data).status
		except ValidationError as exc:
			raise self._invalid("status", exc) from exc

	async def get_mission(self, mission_id: str) -> Mission:
		"""Fetch the full mission record. Only meaningful once terminal."""
		data = await self._request("GET", f"/missions/{mission_id}")
		try:
			return MissionRecordSchema.model_validate(data).to_mission()
		except ValidationError as exc:
			raise self._invalid("mission record", exc) from exc

	async def list_missions(self) -> list[Mission]:
		"""Bulk-load every mission known to the backend."""
		data = await self._request("GET", "/missions")
		if isinstance(data, dict):
			data = data.get("missions", [])
		if not isinstance(data, list):
			raise BackendRequestError("Backend returned an invalid mission list")
		missions: list[Mission] = []
		for item in data:
			try:
				missions.append(MissionRecordSchema.model_validate(item).to_mission())
			except ValidationError as exc:
				logger.warning("Skipping malformed mission record: %s", exc.errors()[:1])
		return missions

	async def suggest_topics(
		self,
		topic: str,
		domain: str | None = None,
		mission_type: MissionType = MissionType.RESEARCH,
	) -> TopicSuggestion:
		"""Ask the backend whether a topic is specific enough to run."""
		data = await self._request("POST", "/suggest", json={
			"topic": topic,
			"domain": domain,
			"type": mission_type.value,
		})
		try:
			return SuggestResponseSchema.model_validate(data).to_suggestion()
		except ValidationError as exc:
			raise self._invalid("suggestion", exc) from exc

	async def close(self) -> None:
		"""Close the underlying HTTP client."""
		if self._client is not None:
			await self._client.aclose()
			self._client = None

	async def __aenter__(self) -> SwarmClient:
		return self

	async def __aexit__(self, *exc: object) -> None:
		await self.close()
