"""
tick agent command implementation.

Registers agents and lists the roster.
"""

import argparse

from tickmd.cli.output import print_error, split_csv
from tickmd.core.exceptions import TickError


def cmd_agent(cli_instance, args: argparse.Namespace) -> int:
    """Register or list agents.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: agent_command and, for
            register, name, type, roles, trust, by

    Returns:
        Exit code (0 on success, 1 on error)
    """
    project = cli_instance.project
    try:
        if args.agent_command == "register":
            agent = project.register_agent(
                args.name,
                args.by or args.name,
                agent_type=args.type,
                roles=split_csv(args.roles),
                trust_level=args.trust,
            )
            print(f"Registered {agent.name} ({agent.type}, {', '.join(agent.roles)}, {agent.trust_level})")
            return 0

        agents = project.read().agents
    except (TickError, ValueError) as e:
        return print_error(e)

    if args.status:
        agents = [a for a in agents if a.status == args.status]
    if not agents:
        print("No agents registered")
        return 0
    for agent in agents:
        working = f" → {agent.working_on}" if agent.working_on else ""
        print(f"  {agent.name} ({agent.type}) {agent.status}{working}  roles: {', '.join(agent.roles)}")
    return 0
