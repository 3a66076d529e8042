"""
Credential Store
================
Writes a freshly captured snapshot back into the env file it came from.

The env file must already hold a ``CLAUDE_AUTH_STATE=...`` line (the key is
configurable).  Only that line is replaced; every other line keeps its text
and position, line endings included.  A missing line raises, because silently skipping would make
a run look cached when it is not.

Concurrency:
    Two processes persisting into the same file race on the
    read-modify-write.  Only one interactive login per env file is
    expected at a time, so this is not guarded.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Union

from ..errors import PersistenceTargetMissingError

logger = logging.getLogger(__name__)

_DEFAULT_KEY = "CLAUDE_AUTH_STATE"


class CredentialPersister:
    """Replaces the ``KEY=value`` marker line of a plain-text env file."""

    def __init__(self, key: str = _DEFAULT_KEY):
        self.key = key
        # [^\r\n] keeps a CRLF terminator on the marker line
        self._pattern = re.compile(rf"^{re.escape(key)}=[^\r\n]*", re.MULTILINE)

    def persist(
        self, encoded: str, target_path: Optional[Union[str, Path]]
    ) -> bool:
        """Write *encoded* into *target_path*.

        Returns:
            True if the file was written, False if persistence is not
            configured (``target_path`` is None).

        Raises:
            PersistenceTargetMissingError: the marker line is absent.
            OSError: the file cannot be read or written.
        """
        if not target_path:
            logger.info("[STORE] No env file configured — snapshot not persisted")
            return False

        path = Path(target_path)
        # newline="" keeps line endings exactly as they are on disk
        with open(path, encoding="utf-8", newline="") as f:
            content = f.read()

        if not self._pattern.search(content):
            raise PersistenceTargetMissingError(
                f"{self.key}= line not found in {path}"
            )

        # Callable replacement inserts the value literally
        updated = self._pattern.sub(lambda _m: f"{self.key}={encoded}", content, count=1)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
        logger.info(f"[STORE] Auth state saved to {path} ({len(encoded)} chars)")
        return True
