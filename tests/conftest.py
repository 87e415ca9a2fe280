"""Shared pytest fixtures and factory functions for swarm-control tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from swarm_control.client import SwarmClient
from swarm_control.config import BackendConfig
from swarm_control.models import Mission, MissionStatus, MissionType, Plan

API_URL = "http://swarm.test"
FAST_INTERVAL = 0.01


def make_mission(**overrides: Any) -> Mission:
	"""Create a Mission with sensible defaults, overridable via kwargs."""
	defaults: dict[str, Any] = {
		"id": "m1",
		"type": MissionType.RESEARCH,
		"topic": "Test topic",
		"status": MissionStatus.COMPLETE,
		"date": "2026-01-15",
		"cost": 0.5,
	}
	defaults.update(overrides)
	return Mission(**defaults)


def make_plan(**overrides: Any) -> Plan:
	"""Create a Plan with sensible defaults, overridable via kwargs."""
	defaults: dict[str, Any] = {
		"id": "p1",
		"topic": "Test topic",
		"type": MissionType.RESEARCH,
		"tier": "Budget",
		"goals": ["Survey the field"],
		"budget_estimate": 0.1,
	}
	defaults.update(overrides)
	return Plan(**defaults)


def plan_payload(**overrides: Any) -> dict[str, Any]:
	"""Plan JSON as the backend returns it."""
	payload: dict[str, Any] = {
		"id": "p1",
		"topic": "Test topic",
		"type": "R",
		"tier": "Budget",
		"domain": None,
		"outcome": "A short report",
		"goals": ["Survey the field"],
		"agent_assignments": [
			{"agent": "Claude Sonnet", "role": "lead", "focus": "synthesis", "rationale": "best writer"},
		],
		"budget_estimate": 0.1,
		"estimated_time_sec": 120,
	}
	payload.update(overrides)
	return payload


def mission_payload(**overrides: Any) -> dict[str, Any]:
	"""Full mission record JSON as the backend returns it."""
	payload: dict[str, Any] = {
		"id": "m1",
		"type": "R",
		"topic": "Test topic",
		"status": "complete",
		"date": "2026-01-15",
		"cost": 0.42,
		"synthesis": "Findings...",
		"rawOutputs": {"Claude Sonnet": "raw text"},
		"modelCosts": [{"model": "Claude Sonnet", "role": "lead", "tokens": 1200, "cost": 0.42}],
	}
	payload.update(overrides)
	return payload


class FakeBackend:
	"""In-process swarm service served through httpx.MockTransport.

	Status checks walk through `statuses[mission_id]`, repeating the last
	entry. `failures[(method, path)]` forces an error response for a route.
	"""

	def __init__(self) -> None:
		self.requests: list[httpx.Request] = []
		self.statuses: dict[str, list[str]] = {}
		self.records: dict[str, dict[str, Any]] = {}
		self.missions: Any = []
		self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
		self.launch_failures: dict[str, tuple[int, Any]] = {}
		self.plan: dict[str, Any] | None = None
		self.refined: dict[str, Any] | None = None
		self.approve_id = "m-100"
		self.suggestion: dict[str, Any] = {"quality": "good", "issues": [], "suggestions": []}
		self.on_request: Callable[[httpx.Request], None] | None = None

	@property
	def transport(self) -> httpx.MockTransport:
		return httpx.MockTransport(self.handle)

	def count(self, method: str, path: str) -> int:
		full = f"/api/swarm{path}"
		return sum(1 for r in self.requests if r.method == method and r.url.path == full)

	def body(self, index: int = -1) -> dict[str, Any]:
		return json.loads(self.requests[index].content or b"{}")

	def last_body(self, method: str, path: str) -> dict[str, Any]:
		"""JSON body of the most recent request to `path`."""
		full = f"/api/swarm{path}"
		for r in reversed(self.requests):
			if r.method == method and r.url.path == full:
				return json.loads(r.content or b"{}")
		raise AssertionError(f"no {method} {path} request recorded")

	def handle(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		if self.on_request is not None:
			self.on_request(request)
		path = request.url.path.removeprefix("/api/swarm")
		method = request.method

		failure = self.failures.get((method, path))
		if failure is not None:
			code, body = failure
			return httpx.Response(code, json=body)

		body = json.loads(request.content) if request.content else {}
		parts = path.strip("/").split("/")

		if method == "POST" and path == "/plan":
			plan = self.plan or plan_payload(
				type=body.get("type"),
				topic=body.get("topic"),
				tier=body.get("tier"),
				domain=body.get("domain"),
			)
			return httpx.Response(200, json=plan)
		if method == "POST" and parts[0] == "plan" and parts[-1] == "refine":
			refined = self.refined or plan_payload(
				id=parts[1],
				goals=["Survey the field", body.get("instruction", "")],
			)
			return httpx.Response(200, json=refined)
		if method == "POST" and parts[0] == "plan" and parts[-1] == "approve":
			return httpx.Response(200, json={"mission_id": self.approve_id})
		if method == "POST" and path == "/activate":
			launch_failure = self.launch_failures.get(body["provider"])
			if launch_failure is not None:
				return httpx.Response(launch_failure[0], json=launch_failure[1])
			return httpx.Response(200, json={"mission_id": f"{body['provider']}-1"})
		if method == "GET" and parts[0] == "status":
			seq = self.statuses.get(parts[1], ["running"])
			status = seq.pop(0) if len(seq) > 1 else seq[0]
			return httpx.Response(200, json={"status": status})
		if method == "GET" and path == "/missions":
			return httpx.Response(200, json=self.missions)
		if method == "GET" and parts[0] == "missions":
			record = self.records.get(parts[1])
			if record is None:
				return httpx.Response(404, json={"detail": "Mission not found"})
			return httpx.Response(200, json=record)
		if method == "POST" and path == "/suggest":
			return httpx.Response(200, json=self.suggestion)
		return httpx.Response(404, json={"detail": f"No route {method} {path}"})


def make_client(backend: FakeBackend, api_url: str = API_URL, **overrides: Any) -> SwarmClient:
	"""SwarmClient wired to a FakeBackend."""
	return SwarmClient(BackendConfig(api_url=api_url, **overrides), transport=backend.transport)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
	"""Spin the loop until predicate() holds, failing the test on timeout."""
	loop = asyncio.get_running_loop()
	deadline = loop.time() + timeout
	while not predicate():
		if loop.time() >= deadline:
			pytest.fail("condition not met before timeout")
		await asyncio.sleep(0.005)


@pytest.fixture()
def backend() -> FakeBackend:
	return FakeBackend()
