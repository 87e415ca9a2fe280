"""TOML configuration loader for swarm-control."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from swarm_control.constants import DEFAULT_DAILY_BUDGET_USD, POLL_INTERVAL

API_URL_ENV = "SWARM_API_URL"
CONFIG_FILENAME = "swarm-control.toml"


def is_http_url(url: str) -> bool:
	"""True for an absolute http(s) URL with a host."""
	parsed = urlparse(url)
	return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass
class BackendConfig:
	"""Remote execution/planning service settings."""

	api_url: str = ""  # empty or malformed means offline mode
	timeout: float = 30.0

	@property
	def online(self) -> bool:
		return is_http_url(self.api_url.strip())


@dataclass
class PollingConfig:
	"""Mission status polling settings."""

	interval: float = POLL_INTERVAL  # seconds between status checks


@dataclass
class BudgetConfig:
	"""Daily spend settings."""

	daily_total_usd: float = DEFAULT_DAILY_BUDGET_USD


@dataclass
class ControllerConfig:
	"""Plan lifecycle settings."""

	# Keep the plan in review when approval fails instead of registering an error mission
	block_on_approval_failure: bool = False
	handoff_timeout: float = 5.0  # seconds to wait for the registry handoff signal


@dataclass
class SwarmConfig:
	"""Top-level swarm-control configuration."""

	backend: BackendConfig = field(default_factory=BackendConfig)
	polling: PollingConfig = field(default_factory=PollingConfig)
	budget: BudgetConfig = field(default_factory=BudgetConfig)
	controller: ControllerConfig = field(default_factory=ControllerConfig)


def _build_backend(data: dict[str, Any]) -> BackendConfig:
	bc = BackendConfig()
	if "api_url" in data:
		bc.api_url = str(data["api_url"])
	if "timeout" in data:
		bc.timeout = float(data["timeout"])
	return bc


def _build_polling(data: dict[str, Any]) -> PollingConfig:
	pc = PollingConfig()
	if "interval" in data:
		pc.interval = float(data["interval"])
	return pc


def _build_budget(data: dict[str, Any]) -> BudgetConfig:
	bc = BudgetConfig()
	if "daily_total_usd" in data:
		bc.daily_total_usd = float(data["daily_total_usd"])
	return bc


def _build_controller(data: dict[str, Any]) -> ControllerConfig:
	cc = ControllerConfig()
	if "block_on_approval_failure" in data:
		cc.block_on_approval_failure = bool(data["block_on_approval_failure"])
	if "handoff_timeout" in data:
		cc.handoff_timeout = float(data["handoff_timeout"])
	return cc


def _apply_env(sc: SwarmConfig) -> SwarmConfig:
	# Allow env var as fallback for the backend URL
	if not sc.backend.api_url:
		sc.backend.api_url = os.environ.get(API_URL_ENV, "")
	sc.backend.api_url = sc.backend.api_url.strip().rstrip("/")
	return sc


def load_config(path: str | Path) -> SwarmConfig:
	"""Load a swarm-control.toml config file.

	Args:
		path: Path to the TOML config file.

	Returns:
		Parsed SwarmConfig.

	Raises:
		FileNotFoundError: If config file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	config_path = Path(path)
	if not config_path.exists():
		raise FileNotFoundError(f"Config file not found: {config_path}")

	with open(config_path, "rb") as f:
		data = tomllib.load(f)

	sc = SwarmConfig()
	if "backend" in data:
		sc.backend = _build_backend(data["backend"])
	if "polling" in data:
		sc.polling = _build_polling(data["polling"])
	if "budget" in data:
		sc.budget = _build_budget(data["budget"])
	if "controller" in data:
		sc.controller = _build_controller(data["controller"])
	return _apply_env(sc)


def load_config_or_default(path: str | Path | None = None) -> SwarmConfig:
	"""Load the config file if present, else defaults plus environment."""
	config_path = Path(path or CONFIG_FILENAME)
	if config_path.exists():
		return load_config(config_path)
	return _apply_env(SwarmConfig())


def validate_config(config: SwarmConfig) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded SwarmConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []

	url = config.backend.api_url
	if not url:
		issues.append(("warning", f"backend.api_url is not set (and {API_URL_ENV} is empty): running offline"))
	else:
		if not is_http_url(url):
			issues.append(("error", f"backend.api_url must be an http(s) URL: {url}"))

	if config.backend.timeout <= 0:
		issues.append(("error", f"backend.timeout must be positive: {config.backend.timeout}"))

	if config.polling.interval <= 0:
		issues.append(("error", f"polling.interval must be positive: {config.polling.interval}"))
	elif config.polling.interval < 1.0:
		issues.append(("warning", f"polling.interval is very low: {config.polling.interval}s"))

	if config.budget.daily_total_usd < 0:
		issues.append(("error", f"budget.daily_total_usd is negative: {config.budget.daily_total_usd}"))

	if config.controller.handoff_timeout <= 0:
		issues.append(("error", f"controller.handoff_timeout must be positive: {config.controller.handoff_timeout}"))

	return issues
