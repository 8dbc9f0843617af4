"""
Token Store
===========

Keeps the OAuth token set in a single JSON file so a login survives restarts.

- Login completes = token saved to file
- Token refreshed = file overwritten (never merged)
- Restart server = token loaded back once at startup

A corrupt file is backed up next to the original and treated as "no token",
so the worst case is having to log in again.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from tado_collector.models import TokenSet

logger = logging.getLogger(__name__)


class TokenStore:
    """File-backed store for the current TokenSet."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[TokenSet]:
        """Load the token set, or None if there is no usable file."""
        if not self.path.exists():
            logger.info(f"No token file found at {self.path}")
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            token = TokenSet.model_validate(data)
            logger.info(f"Loaded token set from {self.path}")
            return token
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Token file {self.path} is corrupt: {e}")
            self._backup_corrupt_file()
        except OSError as e:
            logger.error(f"Could not read token file {self.path}: {e}")
        return None

    def save(self, token: TokenSet):
        """
        Persist the token set (atomic write).

        Returns only once the file is in place; OSError propagates.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file first, then rename
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            f.write(token.model_dump_json(indent=2, exclude_none=True))
        temp_file.replace(self.path)
        logger.debug(f"Saved token set to {self.path}")

    def _backup_corrupt_file(self):
        backup_path = self.path.with_suffix(self.path.suffix + ".backup")
        try:
            shutil.copy2(self.path, backup_path)
            logger.warning(f"Corrupted token file backed up to {backup_path}")
        except OSError as backup_err:
            logger.error(f"Failed to backup corrupted token file: {backup_err}")
