#!/usr/bin/env python3
"""
One-off script to send invitations that were never delivered.

Lists every invitee still marked as not notified, grouped by event, and
sends their invitations.

Usage:
    python scripts/notify_pending_invitees.py [--dry-run]

Options:
    --dry-run    Show who would be notified without sending anything
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from post_event.core.database import create_db_and_tables, session_scope
from post_event.events.pipeline import PostEventService


def main(dry_run: bool = False):
    """Report pending invitees and notify them."""
    create_db_and_tables()

    with session_scope() as session:
        service = PostEventService(session)
        pending = service.repository.pending_invitees()

        if not pending:
            print("No pending invitees.")
            return

        by_event = {}
        for invitee in pending:
            by_event.setdefault(invitee.post_id, []).append(invitee.user_id)

        print(f"Found {len(pending)} pending invitees on {len(by_event)} events:\n")
        for event_id, user_ids in by_event.items():
            event = service.repository.get(event_id)
            title = event.name or event.topic_title if event else "(missing event)"
            print(f"Event {event_id}: {title}")
            print(f"  Users: {user_ids}")

        if dry_run:
            print("\n--- DRY RUN: No notifications sent ---")
            return

        result = service.dispatch_pending()
        print(f"\nComplete: {result.sent} sent, {result.skipped} skipped, {len(result.failed)} failed")
        if result.failed:
            print(f"  Failed users: {result.failed}")


if __name__ == "__main__":
    dry_run = "--dry-run" in sys.argv
    main(dry_run=dry_run)
