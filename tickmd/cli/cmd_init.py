"""
tick init command implementation.

Creates TICK.md, .tick/config.yml and an empty lock file.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError


def cmd_init(cli_instance, args: argparse.Namespace) -> int:
    """Initialize a project in the CLI's root directory.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: name, prefix, title, force

    Returns:
        Exit code (0 on success, 1 on error)
    """
    project = cli_instance.project
    try:
        tick_file = project.init(
            project=args.name,
            id_prefix=args.prefix,
            title=args.title,
            force=args.force,
        )
    except FileExistsError:
        return print_error(
            TickError(f"{project.paths.tick_file} already exists", ["Use --force to overwrite it"])
        )
    except (TickError, ValueError, OSError) as e:
        return print_error(e)

    print(f"Initialized project '{tick_file.meta.project}' in {project.paths.root}")
    print(f"  Task IDs: {tick_file.meta.id_prefix}-001, {tick_file.meta.id_prefix}-002, ...")
    return 0
