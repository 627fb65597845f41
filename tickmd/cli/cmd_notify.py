"""
tick notify command implementation.

Queues ad-hoc notifications and manages the webhook retry queue.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError


def cmd_notify(cli_instance, args: argparse.Namespace) -> int:
    """Send, deliver, inspect, or reset queued notifications.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: notify_command and its options

    Returns:
        Exit code (0 on success, 1 on error)
    """
    notifier = cli_instance.project.notifier
    queue = notifier.queue
    command = args.notify_command

    try:
        if command == "send":
            if not notifier.config.matching(args.event):
                print(f"No webhooks configured for event: {args.event}")
                return 0
            queued = notifier.dispatch(args.event, args.message)
            print(f"Queued {len(queued)} notification(s)")
            if not args.queue_only:
                counts = notifier.process_queue(include_pending=True)
                print(f"Delivered {counts['delivered']}, failed {counts['failed']}")
            return 0

        if command == "process":
            counts = notifier.process_queue(include_pending=args.all)
            print(f"Delivered {counts['delivered']}, failed {counts['failed']}")
            return 0 if counts["failed"] == 0 else 1

        if command == "status":
            stats = queue.get_queue_stats()
            print(f"Pending: {stats['pending']}  Failed: {stats['failed']}  Total: {stats['total']}")
            if stats["next_retry"]:
                print(f"Next retry: {stats['next_retry']}")
            for item in queue.get_failed_items():
                print(f"  [failed] {item['id']} {item['webhook_name']} {item['event']}: {item.get('last_error')}")
            return 0

        if command == "retry-failed":
            print(f"Requeued {queue.retry_failed_items()} failed notification(s)")
            return 0

        if command == "remove":
            if not queue.remove(args.id):
                print(f"No queued notification with id: {args.id}")
                return 1
            print(f"Removed {args.id}")
            return 0

        if command == "clear":
            print(f"Cleared {queue.clear()} notification(s)")
            return 0

        if command == "list":
            if not notifier.config.webhooks:
                print("No notification webhooks configured. Create .tick/notify.json")
                return 0
            for webhook in notifier.config.webhooks:
                events = ", ".join(webhook.events) if webhook.events else "all"
                print(f"  {webhook.name} ({webhook.type}) events: {events}")
            return 0
    except (TickError, ValueError) as e:
        return print_error(e)

    return print_error(ValueError(f"Unknown notify command: {command}"))
