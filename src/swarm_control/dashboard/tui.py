"""Textual TUI dashboard for swarm-control.

Displays the mission list, the selected mission's output, and the daily
budget, fed by DashboardProvider. Running missions are polled in the
background and update in place.
"""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Footer, Header, Static

from swarm_control.budget import BudgetHealth
from swarm_control.client import SwarmClient
from swarm_control.config import SwarmConfig, load_config_or_default
from swarm_control.constants import DOMAIN_PACKS
from swarm_control.dashboard.provider import DashboardProvider, DashboardSnapshot
from swarm_control.models import Mission, MissionStatus

_STATUS_ICON = {
	MissionStatus.RUNNING: "[yellow]●[/yellow]",
	MissionStatus.COMPLETE: "[green]✓[/green]",
	MissionStatus.ERROR: "[red]✗[/red]",
}

_HEALTH_COLOR = {
	BudgetHealth.HEALTHY: "green",
	BudgetHealth.WARNING: "yellow",
	BudgetHealth.CRITICAL: "red",
}


def _fmt_cost(value: float) -> str:
	"""Format a USD cost value."""
	return f"${value:.2f}"


def _trunc(text: str, length: int = 36) -> str:
	if len(text) <= length:
		return text
	return text[: length - 3] + "..."


def _budget_text(snap: DashboardSnapshot) -> str:
	b = snap.budget
	color = _HEALTH_COLOR[b.health]
	line = (
		f"[bold]Budget:[/bold] [{color}]{_fmt_cost(b.remaining)}[/{color}]"
		f" of {_fmt_cost(b.daily_total)} remaining"
	)
	if b.running_missions:
		line += f" | {b.running_missions} running (~{_fmt_cost(b.pending_estimate)} pending)"
	return line


def _mission_line(m: Mission, selected: bool) -> str:
	icon = _STATUS_ICON.get(m.status, "○")
	marker = "[reverse]" if selected else ""
	end = "[/reverse]" if selected else ""
	cost = _fmt_cost(m.cost) if m.is_terminal else "--"
	return f" {marker}{icon} {m.type.value} {_trunc(m.topic)} {cost}{end}"


def _detail_text(m: Mission | None) -> str:
	if m is None:
		return "[dim]Select a mission with j/k[/dim]"
	domain = DOMAIN_PACKS.get(m.domain, m.domain) if m.domain else DOMAIN_PACKS[None]
	header = (
		f"[bold]{m.topic}[/bold]\n"
		f"{m.id} | {m.type.label} | {domain} | {m.tier or '--'} | {m.date}"
	)
	if m.status is MissionStatus.RUNNING:
		return f"{header}\n\n[yellow]Mission running...[/yellow]"
	if m.status is MissionStatus.ERROR:
		return f"{header}\n\n[red]{m.synthesis or 'Mission failed'}[/red]"

	lines = [header, "", m.synthesis or "[dim]No synthesis[/dim]"]
	if m.model_costs:
		lines += ["", "[bold]Cost breakdown[/bold]"]
		for mc in m.model_costs:
			lines.append(f" {mc.model:<16} {mc.role:<12} {mc.tokens:>8,} {_fmt_cost(mc.cost):>8}")
		lines.append(f" {'Total':<38} {_fmt_cost(m.cost):>8}")
	return "\n".join(lines)


class StatusBar(Static):
	"""Top section: connection state and budget."""

	def render(self) -> str:
		snap: DashboardSnapshot = self.app.snapshot  # type: ignore[attr-defined]
		if not snap.online:
			conn = "[red]OFFLINE[/red]"
		elif snap.error:
			conn = f"[red]{_trunc(snap.error, 60)}[/red]"
		else:
			conn = f"[green]online[/green] | watching {snap.watching}"
		return f"{conn}\n{_budget_text(snap)}"


class MissionList(Static):
	"""Left panel: all missions, most recent first."""

	def render(self) -> str:
		snap: DashboardSnapshot = self.app.snapshot  # type: ignore[attr-defined]
		header = f"[bold]Missions ({len(snap.missions)}, {snap.running} running)[/bold]"
		if not snap.missions:
			return f"{header}\n[dim]No missions[/dim]"
		selected_id = snap.selected.id if snap.selected else None
		lines = [header]
		lines += [_mission_line(m, m.id == selected_id) for m in snap.missions]
		lines.append(f"\n History total: {_fmt_cost(snap.history_total)}")
		return "\n".join(lines)


class MissionDetail(Static):
	"""Right panel: synthesis and per-model costs of the selected mission."""

	def render(self) -> str:
		snap: DashboardSnapshot = self.app.snapshot  # type: ignore[attr-defined]
		return _detail_text(snap.selected)


class DashboardApp(App):
	"""Swarm Control TUI dashboard."""

	TITLE = "Swarm Control"

	CSS = """
	Screen {
		layout: vertical;
	}

	#status-bar {
		dock: top;
		height: auto;
		min-height: 2;
		padding: 0 1;
		border-bottom: solid $accent;
	}

	#middle {
		height: 1fr;
	}

	#mission-list {
		width: 1fr;
		padding: 0 1;
		border-right: solid $accent;
	}

	#mission-detail {
		width: 2fr;
		padding: 0 1;
	}
	"""

	BINDINGS = [
		Binding("q", "quit", "Quit"),
		Binding("r", "refresh", "Reload"),
		Binding("j", "select_next", "Next"),
		Binding("k", "select_prev", "Previous"),
	]

	snapshot: reactive[DashboardSnapshot] = reactive(DashboardSnapshot, recompose=False)

	def __init__(self, config: SwarmConfig | None = None, **kwargs) -> None:
		super().__init__(**kwargs)
		self._config = config or load_config_or_default()
		self._client = SwarmClient(self._config.backend)
		self._provider = DashboardProvider(self._client, self._config)

	def compose(self) -> ComposeResult:
		yield Header()
		yield StatusBar(id="status-bar")
		with Horizontal(id="middle"):
			yield MissionList(id="mission-list")
			yield MissionDetail(id="mission-detail")
		yield Footer()

	async def on_mount(self) -> None:
		"""Subscribe for updates and do the first load."""
		self._provider.subscribe(self._apply_snapshot)
		await self._provider.load()

	async def on_unmount(self) -> None:
		"""Stop pollers and close the client when the app exits."""
		await self._provider.close()
		await self._client.close()

	def _apply_snapshot(self, snap: DashboardSnapshot) -> None:
		self.snapshot = snap
		for widget in self.query(Static):
			widget.refresh()

	async def action_refresh(self) -> None:
		await self._provider.load()

	def action_select_next(self) -> None:
		self._provider.select_next(1)

	def action_select_prev(self) -> None:
		self._provider.select_next(-1)


def main(config_path: str | None = None) -> None:
	"""Entry point for the TUI dashboard."""
	app = DashboardApp(config=load_config_or_default(config_path))
	app.run()


if __name__ == "__main__":
	main()
