"""Per-user count of concurrently open sessions.

One file per encoded user identity, holding the number of sessions that user
has open. The ILS increments it at login; reconciliation decrements it when a
station is cleaned up and deletes the file once the count reaches zero, so
the directory always lists exactly the users that are logged in somewhere.
"""

import logging
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class CounterLedger:
    """File-backed per-user session counters."""

    def __init__(self, ledger_dir: str):
        self.ledger_dir = ledger_dir

    def entry_path(self, encoded_identity: str) -> str:
        return os.path.join(self.ledger_dir, encoded_identity)

    def count(self, encoded_identity: str) -> Optional[int]:
        """Return the stored count, or None if the entry is missing or unreadable."""
        path = self.entry_path(encoded_identity)
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"could not read ledger entry '{path}': {e}")
            return None
        try:
            return int(content.splitlines()[0].strip())
        except (ValueError, IndexError):
            logger.warning(f"ledger entry '{path}' does not hold a count: '{content}'")
            return None

    def decrement(self, encoded_identity: str) -> Optional[int]:
        """
        Decrement the user's session count.

        Deletes the entry when the count would drop to zero or below.
        :return: the new count (0 when deleted), or None if nothing was changed.
        """
        path = self.entry_path(encoded_identity)
        current = self.count(encoded_identity)
        if current is None:
            logger.info(f"no usable session count for '{encoded_identity}', nothing to decrement")
            return None

        remaining = current - 1
        if remaining <= 0:
            try:
                os.remove(path)
            except OSError as e:
                logger.error(f"could not remove ledger entry '{path}': {e}")
                return None
            logger.info(f"'{encoded_identity}' has no more open sessions, removed {path}")
            return 0

        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(f"{remaining}\n")
        except OSError as e:
            logger.error(f"could not update ledger entry '{path}': {e}")
            return None
        logger.info(f"'{encoded_identity}' session count {current} -> {remaining}")
        return remaining

    def active_users(self) -> Dict[str, int]:
        """Return {encoded_identity: count} for every readable entry."""
        if not os.path.isdir(self.ledger_dir):
            return {}
        active = {}
        for fname in sorted(os.listdir(self.ledger_dir)):
            if not os.path.isfile(self.entry_path(fname)):
                continue
            value = self.count(fname)
            if value is not None:
                active[fname] = value
        return active
