#!/usr/bin/env python3
"""Clear stored notifications — purge per-user notification feeds.

Operational counterpart of the one-time cleanup the notification pipeline
runs on load. Removes notifications_<user_id> keys from the durable store
and, with --reset-flags, the notification_cleanup_done_<user_id> flags so
the pipeline purges again on next load.

Usage:
    python scripts/clear_notifications.py [--user ID] [--reset-flags] [--dry-run]

Without --user every notifications_* key is removed.
"""

import argparse
import os
import sys

# Must set up path before tourcompanion imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from loguru import logger

from tourcompanion.cache.notification_store import NotificationStore, get_notification_store
from tourcompanion.logging_config import setup_logging
from tourcompanion.services.notification_service import (
    CLEANUP_FLAG_PREFIX,
    NOTIFICATIONS_PREFIX,
    cleanup_flag_key,
    notifications_key,
)


def target_keys(store: NotificationStore, user_id: str | None, reset_flags: bool) -> list[str]:
    if user_id:
        keys = [notifications_key(user_id)]
        if reset_flags:
            keys.append(cleanup_flag_key(user_id))
        return [k for k in keys if store.get(k) is not None]

    keys = store.keys(NOTIFICATIONS_PREFIX)
    if reset_flags:
        keys += store.keys(CLEANUP_FLAG_PREFIX)
    return keys


def clear_notifications(
    store: NotificationStore, user_id: str | None = None, reset_flags: bool = False, dry_run: bool = False
) -> list[str]:
    keys = target_keys(store, user_id, reset_flags)
    for key in keys:
        if dry_run:
            logger.info("[dry-run] would remove {}", key)
        else:
            store.remove(key)
            logger.info("Removed {}", key)
    return keys


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Purge stored notification feeds")
    parser.add_argument("--user", help="only this user id")
    parser.add_argument("--reset-flags", action="store_true", help="also remove cleanup-done flags")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    setup_logging()
    keys = clear_notifications(get_notification_store(), args.user, args.reset_flags, args.dry_run)
    logger.info("{} {} keys", "Would remove" if args.dry_run else "Removed", len(keys))
    return 0


if __name__ == "__main__":
    sys.exit(main())
