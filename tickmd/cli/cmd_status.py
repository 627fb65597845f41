"""
tick status and validate command implementations.

status displays tasks grouped by status, optionally filtered or as JSON.
validate reports every document problem in one pass.
"""

import argparse
import json
import sys

from tickmd.cli.output import format_task, print_error
from tickmd.core.exceptions import TickError
from tickmd.core.models import VALID_STATUSES


def cmd_status(cli_instance, args: argparse.Namespace) -> int:
    """Display project status.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: id (optional),
            status (optional), json (optional)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        tick_file = cli_instance.project.read()
    except TickError as e:
        return print_error(e)

    tasks = tick_file.tasks
    if args.id:
        tasks = [t for t in tasks if t.id == args.id]
        if not tasks:
            print(f"No task found with id: {args.id}", file=sys.stderr)
            return 1
    if args.status:
        tasks = [t for t in tasks if t.status == args.status]

    if args.json:
        output = {
            "project": tick_file.meta.project,
            "tasks": [dict(t.to_dict(), title=t.title, description=t.description) for t in tasks],
            "agents": [
                {
                    "name": a.name,
                    "type": a.type,
                    "roles": a.roles,
                    "status": a.status,
                    "working_on": a.working_on,
                    "last_active": a.last_active,
                    "trust_level": a.trust_level,
                }
                for a in tick_file.agents
            ],
        }
        print(json.dumps(output, indent=2))
        return 0

    print(f"Project: {tick_file.meta.project}")
    workflow = list(tick_file.meta.default_workflow)
    order = workflow + [s for s in VALID_STATUSES if s not in workflow]
    for status in order:
        group = [t for t in tasks if t.status == status]
        if group:
            print(f"\n{status.upper()} ({len(group)}):")
            for task in group:
                print(f"  {format_task(task)}")

    working = [a for a in tick_file.agents if a.status == "working"]
    if working:
        print("\nAGENTS WORKING:")
        for agent in working:
            print(f"  {agent.name} → {agent.working_on or '-'}")
    return 0


def cmd_validate(cli_instance, args: argparse.Namespace) -> int:
    """Validate the document.

    Returns:
        Exit code (0 if there are no errors, 1 otherwise)
    """
    try:
        result = cli_instance.project.validate()
    except TickError as e:
        return print_error(e)

    if args.json:
        print(json.dumps(
            {
                "valid": result.valid,
                "errors": [vars(issue) for issue in result.errors],
                "warnings": [vars(issue) for issue in result.warnings],
            },
            indent=2,
        ))
        return 0 if result.valid else 1

    for issue in result.errors + result.warnings:
        location = f" [{issue.location}]" if issue.location else ""
        print(f"{issue.level.upper()}{location}: {issue.message}")
        if issue.fix:
            print(f"  fix: {issue.fix}")

    if result.valid:
        print(f"TICK.md is valid ({len(result.warnings)} warning(s))")
        return 0
    print(f"\n{len(result.errors)} error(s), {len(result.warnings)} warning(s)")
    return 1
