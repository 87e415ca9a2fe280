"""CLI interface for swarm-control."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from swarm_control.budget import BudgetLedger
from swarm_control.client import BackendConfigError, BackendRequestError, SwarmClient
from swarm_control.comparison import ComparisonRunner, SlotStatus
from swarm_control.config import CONFIG_FILENAME, SwarmConfig, load_config_or_default, validate_config
from swarm_control.constants import DEFAULT_TIER, DOMAIN_PACKS, PROVIDER_LABELS, TIERS_BY_TYPE
from swarm_control.controller import PlanLifecycleController
from swarm_control.models import Mission, MissionStatus, MissionType, Plan, mission_to_dict
from swarm_control.poller import PollerSet, watch_in_registry
from swarm_control.registry import MissionRegistry


INIT_TEMPLATE = """\
[backend]
# Base URL of the swarm service; leave empty to run offline (or set SWARM_API_URL)
api_url = "{api_url}"
timeout = 30.0

[polling]
interval = 3.0

[budget]
daily_total_usd = 10.0

[controller]
block_on_approval_failure = false
"""

_STATUS_ICON = {
	MissionStatus.RUNNING: "~",
	MissionStatus.COMPLETE: "+",
	MissionStatus.ERROR: "x",
}


def _mission_type(value: str) -> MissionType:
	key = value.strip().upper()[:1]
	try:
		return MissionType(key)
	except ValueError:
		raise argparse.ArgumentTypeError(f"invalid mission type: {value} (use research or engineering)")


def _add_launch_args(p: argparse.ArgumentParser) -> None:
	p.add_argument("topic", help="What to research or build")
	p.add_argument("--type", type=_mission_type, default=MissionType.RESEARCH, dest="mission_type",
		help="research (R) or engineering (E)")
	p.add_argument("--tier", default=None, help="Budget/Standard/Deep (research), Standard/Heavy (engineering)")
	p.add_argument("--domain", default=None, choices=[k for k in DOMAIN_PACKS if k],
		help="Domain specialization (research only)")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="swarm",
		description="Swarm Control - launch, watch and cost-track AI missions",
	)
	parser.add_argument("--config", default=CONFIG_FILENAME, help="Config file path")
	parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
	sub = parser.add_subparsers(dest="command")

	# swarm init
	init_cmd = sub.add_parser("init", help="Write a swarm-control config")
	init_cmd.add_argument("path", nargs="?", default=".")
	init_cmd.add_argument("--api-url", default="", help="Backend base URL")

	# swarm validate-config
	sub.add_parser("validate-config", help="Validate config file semantically")

	# swarm missions
	missions = sub.add_parser("missions", help="List missions known to the backend")
	missions.add_argument("--json", action="store_true", dest="json_output", help="JSON output")

	# swarm show
	show = sub.add_parser("show", help="Show a mission's output and cost breakdown")
	show.add_argument("mission_id")
	show.add_argument("--raw", default=None, metavar="MODEL", help="Show one model's raw output")
	show.add_argument("--json", action="store_true", dest="json_output", help="JSON output")

	# swarm budget
	sub.add_parser("budget", help="Show daily budget and run history")

	# swarm plan
	plan = sub.add_parser("plan", help="Generate a plan, optionally refine and approve it")
	_add_launch_args(plan)
	plan.add_argument("--refine", action="append", default=[], metavar="INSTRUCTION",
		help="Refinement instruction (repeatable)")
	plan.add_argument("--approve", action="store_true", help="Approve and execute the final plan")
	plan.add_argument("--watch", action="store_true", help="Poll the launched mission until it finishes")

	# swarm launch
	launch = sub.add_parser("launch", help="Plan, approve and watch a mission in one go")
	_add_launch_args(launch)

	# swarm compare
	compare = sub.add_parser("compare", help="Run one topic on every SDK provider side by side")
	compare.add_argument("topic")
	compare.add_argument("--type", type=_mission_type, default=MissionType.RESEARCH, dest="mission_type")
	compare.add_argument("--timeout", type=float, default=None, help="Stop waiting after N seconds")

	# swarm suggest
	suggest = sub.add_parser("suggest", help="Check whether a topic is specific enough")
	suggest.add_argument("topic")
	suggest.add_argument("--type", type=_mission_type, default=MissionType.RESEARCH, dest="mission_type")
	suggest.add_argument("--domain", default=None, choices=[k for k in DOMAIN_PACKS if k])

	# swarm watch
	watch = sub.add_parser("watch", help="Poll running missions until they finish")
	watch.add_argument("mission_ids", nargs="*", help="Mission IDs (default: all running)")

	# swarm dashboard
	sub.add_parser("dashboard", help="Launch TUI dashboard")

	return parser


# -- formatting --


def _fmt_cost(value: float) -> str:
	return f"${value:.2f}"


def _budget_line(ledger: BudgetLedger, missions: list[Mission]) -> str:
	summary = ledger.summary(missions)
	return (
		f"Daily budget remaining: {_fmt_cost(summary.remaining)} of {_fmt_cost(summary.daily_total)}"
		f" [{summary.health.value}]"
	)


def _print_plan(plan: Plan) -> None:
	domain = f" | {DOMAIN_PACKS.get(plan.domain, plan.domain)}" if plan.domain else ""
	print(f"\nPlan {plan.id} [{plan.type.label}{domain}] tier={plan.tier}")
	print(f"Topic: {plan.topic}")
	if plan.outcome:
		print(f"Outcome: {plan.outcome}")
	for i, goal in enumerate(plan.goals, 1):
		print(f"  {i:02d}. {goal}")
	if plan.agent_assignments:
		print("Agents:")
		for a in plan.agent_assignments:
			avoid = f" (avoid: {a.avoid})" if a.avoid else ""
			print(f"  - {a.agent} [{a.role}] {a.focus}{avoid}")
	print(f"Estimate: ~{_fmt_cost(plan.budget_estimate)}, ~{plan.estimated_time_sec}s")


def _print_mission_row(m: Mission) -> None:
	icon = _STATUS_ICON.get(m.status, "?")
	topic = m.topic[:48] + ".." if len(m.topic) > 50 else m.topic
	cost = _fmt_cost(m.cost) if m.is_terminal else "   --"
	print(f"[{icon}] {m.id:<14} {m.date:<10} {m.type.value} {cost:>8}  {topic}")


def _offline(exc: BackendConfigError) -> int:
	print(f"OFFLINE: {exc}")
	return 1


# -- commands --


def cmd_init(args: argparse.Namespace) -> int:
	"""Write a swarm-control config."""
	target = Path(args.path).resolve()
	config_path = target / CONFIG_FILENAME

	if config_path.exists():
		print(f"Config already exists: {config_path}")
		return 1

	config_path.write_text(INIT_TEMPLATE.format(api_url=args.api_url))
	print(f"Created {config_path}")
	return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
	"""Validate config file semantically."""
	config = load_config_or_default(args.config)
	issues = validate_config(config)

	errors = [(lvl, msg) for lvl, msg in issues if lvl == "error"]
	warnings = [(lvl, msg) for lvl, msg in issues if lvl == "warning"]

	for level, msg in issues:
		print(f"[{level.upper()}] {msg}")

	if not issues:
		print("Config OK")

	print(f"\n{len(errors)} error(s), {len(warnings)} warning(s)")
	return 1 if errors else 0


async def _load_registry(client: SwarmClient) -> MissionRegistry:
	registry = MissionRegistry()
	registry.load_all(await client.list_missions())
	return registry


async def _missions(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		registry = await _load_registry(client)
	missions = registry.snapshot()
	if args.json_output:
		print(json.dumps([mission_to_dict(m) for m in missions], indent=2))
		return 0
	if not missions:
		print("No missions yet. Launch one with 'swarm launch'.")
		return 0
	for m in missions:
		_print_mission_row(m)
	print(f"\n{len(missions)} missions | {_budget_line(BudgetLedger(config.budget.daily_total_usd), missions)}")
	return 0


async def _show(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		mission = await client.get_mission(args.mission_id)
	if args.json_output:
		print(json.dumps(mission_to_dict(mission), indent=2))
		return 0

	print(f"{mission.id} [{mission.type.label}] {mission.status.value} {_fmt_cost(mission.cost)}")
	print(f"Topic: {mission.topic}\n")
	if mission.status is MissionStatus.RUNNING:
		print("Mission is still running.")
		return 0
	if mission.status is MissionStatus.ERROR:
		print(mission.synthesis or "Unknown error")
		return 1

	if args.raw:
		if args.raw not in mission.raw_outputs:
			print(f"No raw output for {args.raw}. Models: {', '.join(mission.raw_outputs) or 'none'}")
			return 1
		print(mission.raw_outputs[args.raw])
	else:
		print(mission.synthesis)

	rows = BudgetLedger.cost_breakdown(mission)
	if rows:
		print(f"\n{'Model':<16} {'Role':<12} {'Tokens':>8} {'Cost':>8}")
		for mc in rows:
			print(f"{mc.model:<16} {mc.role:<12} {mc.tokens:>8,} {_fmt_cost(mc.cost):>8}")
	return 0


async def _budget(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		registry = await _load_registry(client)
	missions = registry.snapshot()
	ledger = BudgetLedger(config.budget.daily_total_usd)
	summary = ledger.summary(missions)
	print(_budget_line(ledger, missions))
	print(f"Used: {_fmt_cost(summary.used)} across {summary.finished_missions} finished missions")
	if summary.running_missions:
		print(
			f"Running: {summary.running_missions} "
			f"(estimated {_fmt_cost(summary.pending_estimate)} pending)"
		)
	print(f"\n{'Date':<10} {'Type':<4} {'Total':>8}  Topic")
	for m in missions:
		print(f"{m.date:<10} {m.type.value:<4} {_fmt_cost(m.cost):>8}  {m.topic[:50]}")
	print(f"{'History total':<15} {_fmt_cost(ledger.history_total(missions)):>8}")
	return 0


async def _watch_until_done(registry: MissionRegistry, pollers: PollerSet[str]) -> None:
	def _report(m: Mission) -> None:
		if m.is_terminal:
			print(f"[{_STATUS_ICON[m.status]}] {m.id} {m.status.value} {_fmt_cost(m.cost)}")

	registry.subscribe(_report)
	try:
		while pollers.active_keys():
			await asyncio.sleep(0.2)
	finally:
		registry.unsubscribe(_report)
		await pollers.close()


async def _plan(args: argparse.Namespace, config: SwarmConfig, approve: bool, watch: bool) -> int:
	mission_type: MissionType = args.mission_type
	tier = args.tier or DEFAULT_TIER[mission_type]
	if tier not in TIERS_BY_TYPE[mission_type]:
		print(f"Tier {tier} not offered for {mission_type.label}; choose from {', '.join(TIERS_BY_TYPE[mission_type])}")
		return 1

	async with SwarmClient(config.backend) as client:
		registry = MissionRegistry()
		pollers: PollerSet[str] = PollerSet(client, interval=config.polling.interval)
		controller = PlanLifecycleController(client, registry, pollers, config.controller)
		controller.select_mode(mission_type)

		plan = await controller.generate_plan(mission_type, args.topic, tier, args.domain)
		if plan is None:
			print(f"Plan generation failed: {controller.error}")
			return 1
		_print_plan(plan)

		for instruction in getattr(args, "refine", []):
			assert controller.plan is not None
			refined = await controller.refine_plan(controller.plan.id, instruction)
			if refined is None:
				print(f"Re-plan failed: {controller.error}")
				return 1
			_print_plan(refined)

		if not approve:
			controller.cancel()
			return 0

		assert controller.plan is not None
		mission = await controller.approve_and_execute(
			controller.plan.id, mission_type, args.topic, tier, args.domain,
		)
		if mission is None:
			print(f"Launch failed: {controller.error}")
			return 1
		if mission.status is MissionStatus.ERROR:
			print(f"[x] {mission.id}: {mission.synthesis}")
			return 1
		print(f"\nMission {mission.id} running")
		if watch:
			await _watch_until_done(registry, pollers)
			final = registry.get(mission.id)
			return 0 if final is not None and final.status is MissionStatus.COMPLETE else 1
		await pollers.close()
	return 0


async def _compare(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		runner = ComparisonRunner(client, interval=config.polling.interval)
		last_reported = -1

		def _progress(_slot: object) -> None:
			nonlocal last_reported
			if runner.finished_count != last_reported and runner.has_results:
				last_reported = runner.finished_count
				print(f"{runner.complete_count}/{runner.total} complete ({runner.finished_count} finished)")

		runner.on_update(_progress)
		try:
			await runner.run_all(args.topic, args.mission_type)
			await runner.wait_all(args.timeout)
		finally:
			runner.teardown()
			await runner.close()

	print(f"\n{'SDK':<12} {'Status':<9} {'Conf':<7} {'Find':>4} {'Gaps':>4} {'Cost':>8}")
	for provider, slot in runner.slots.items():
		out = slot.swarm_output
		cost = f"${slot.cost:.3f}" if slot.cost else "--"
		print(
			f"{PROVIDER_LABELS[provider]:<12} {slot.status.value:<9} "
			f"{(out.confidence if out else '--'):<7} "
			f"{(len(out.key_findings) if out else '--'):>4} "
			f"{(len(out.gaps) if out else '--'):>4} {cost:>8}"
		)
		if slot.status is SlotStatus.ERROR and slot.error:
			print(f"    {slot.error}")
	return 0 if runner.all_done else 1


async def _suggest(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		result = await client.suggest_topics(args.topic.strip(), args.domain, args.mission_type)
	print(f"Quality: {result.quality}")
	if result.issues:
		print("Issues: " + " · ".join(result.issues))
	if result.quality == "good" and not result.suggestions:
		print("Your topic is well-specified.")
	for s in result.suggestions:
		print(f"\n* {s.title}\n  {s.why_better}\n  {s.template}")
	return 0


async def _watch(args: argparse.Namespace, config: SwarmConfig) -> int:
	async with SwarmClient(config.backend) as client:
		registry = await _load_registry(client)
		pollers: PollerSet[str] = PollerSet(client, interval=config.polling.interval)
		ids = args.mission_ids or [m.id for m in registry if not m.is_terminal]
		if not ids:
			print("No running missions.")
			return 0
		for mission_id in ids:
			if mission_id not in registry:
				registry.upsert(Mission(id=mission_id))
			watch_in_registry(pollers, registry, mission_id)
		print(f"Watching {len(ids)} mission(s)...")
		await _watch_until_done(registry, pollers)
	return 0


def _run_async(coro_fn, args: argparse.Namespace, *extra: object) -> int:
	config = load_config_or_default(args.config)
	try:
		return asyncio.run(coro_fn(args, config, *extra))
	except BackendConfigError as exc:
		return _offline(exc)
	except BackendRequestError as exc:
		print(f"Error: {exc}")
		return 1
	except ValueError as exc:
		print(f"Error: {exc}")
		return 1
	except KeyboardInterrupt:
		print("Interrupted")
		return 130


def cmd_missions(args: argparse.Namespace) -> int:
	"""List missions."""
	return _run_async(_missions, args)


def cmd_show(args: argparse.Namespace) -> int:
	"""Show one mission."""
	return _run_async(_show, args)


def cmd_budget(args: argparse.Namespace) -> int:
	"""Show the budget ledger."""
	return _run_async(_budget, args)


def cmd_plan(args: argparse.Namespace) -> int:
	"""Generate, refine and optionally approve a plan."""
	return _run_async(_plan, args, args.approve, args.watch)


def cmd_launch(args: argparse.Namespace) -> int:
	"""Plan, approve and watch."""
	return _run_async(_plan, args, True, True)


def cmd_compare(args: argparse.Namespace) -> int:
	"""Fan a topic out to every SDK provider."""
	return _run_async(_compare, args)


def cmd_suggest(args: argparse.Namespace) -> int:
	"""Topic quality check."""
	return _run_async(_suggest, args)


def cmd_watch(args: argparse.Namespace) -> int:
	"""Poll missions until terminal."""
	return _run_async(_watch, args)


def cmd_dashboard(args: argparse.Namespace) -> int:
	"""Launch the TUI dashboard."""
	try:
		from swarm_control.dashboard.tui import DashboardApp
	except ImportError:
		print("Dashboard dependencies not installed. Run: pip install -e '.[dashboard]'")
		return 1

	app = DashboardApp(config=load_config_or_default(args.config))
	app.run()
	return 0


COMMANDS = {
	"init": cmd_init,
	"validate-config": cmd_validate_config,
	"missions": cmd_missions,
	"show": cmd_show,
	"budget": cmd_budget,
	"plan": cmd_plan,
	"launch": cmd_launch,
	"compare": cmd_compare,
	"suggest": cmd_suggest,
	"watch": cmd_watch,
	"dashboard": cmd_dashboard,
}


def main(argv: list[str] | None = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
		force=True,
	)

	if args.command is None:
		parser.print_help()
		return 0

	handler = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1

	return handler(args)


if __name__ == "__main__":
	sys.exit(main())
