"""CLI for ai-tasks: serve, doctor and orphans commands."""

import argparse
import asyncio
import json
import platform
import sys

from importlib.metadata import version as pkg_version

from .config import TRANSPORTS, Config, load_config
from .errors import StoreError
from .storage import create_client, ping
from .stores import Stores

CORE_DEPS = ["mcp", "redis", "pydantic", "platformdirs"]


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server."""
	from .server import run

	config = load_config()
	if args.transport:
		config.transport = args.transport
	run(config)


async def _check_valkey(config: Config) -> tuple[str, str | None]:
	"""Ping Valkey and count orphaned tasks. Returns (status, issue_or_none)."""
	stores = Stores.from_client(create_client(config))
	try:
		await ping(stores.redis)
		orphans = await stores.tasks.list_orphaned_tasks()
	except StoreError as e:
		return f"UNREACHABLE ({e})", f"Valkey at {config.valkey_host}:{config.valkey_port} unavailable: {e}"
	finally:
		await stores.close()

	status = f"OK ({config.valkey_host}:{config.valkey_port}, {len(orphans)} orphaned tasks)"
	issue = f"{len(orphans)} orphaned task(s); run 'ai-tasks orphans' to list them" if orphans else None
	return status, issue


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation, configuration and Valkey."""
	print("ai-tasks doctor")
	print(f"{'=' * 40}")

	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	try:
		config = load_config()
	except (ValueError, OSError) as e:
		print(f"  Config:       INVALID ({e})")
		issues.append(f"config invalid: {e}")
		config = None

	if config is not None:
		print("  Config:")
		print(f"    config dir:          {config.config_dir}")
		print(f"    transport:           {config.transport}")
		print()

		print("  Valkey:")
		valkey_status, valkey_issue = asyncio.run(_check_valkey(config))
		print(f"    {valkey_status}")
		if valkey_issue:
			issues.append(valkey_issue)

	print()
	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


async def _list_orphans(config: Config) -> list[dict]:
	stores = Stores.from_client(create_client(config))
	try:
		tasks = await stores.tasks.list_orphaned_tasks()
	finally:
		await stores.close()
	return [t.model_dump(mode="json") for t in tasks]


def cmd_orphans(args: argparse.Namespace) -> None:
	"""Print tasks whose plan no longer exists, as JSON."""
	config = load_config()
	try:
		orphans = asyncio.run(_list_orphans(config))
	except StoreError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	print(json.dumps(orphans, indent=2))


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="ai-tasks",
		description="MCP server for plans and ordered tasks stored in Valkey",
	)
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server")
	serve_parser.add_argument(
		"--transport",
		choices=TRANSPORTS,
		default=None,
		help="Override the configured transport",
	)
	serve_parser.set_defaults(func=cmd_serve)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# orphans
	orphans_parser = subparsers.add_parser("orphans", help="List tasks whose plan was deleted")
	orphans_parser.set_defaults(func=cmd_orphans)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
