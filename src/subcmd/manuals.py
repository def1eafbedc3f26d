"""Manual (usage text) lookup for commands.

Manual files live in a flat directory, one file per command, named exactly
like the command. Some man-page renderers fake bold text with
"character, backspace" pairs; Windows consoles print those literally, so they
are removed there.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

__all__ = ["ManualLoader", "strip_bold_pairs"]

# Any character followed by a backspace
BOLD_PAIR_RE = re.compile(".\b")


def strip_bold_pairs(text: str) -> str:
    """Remove overstrike bold pairs from text."""
    return BOLD_PAIR_RE.sub("", text)


class ManualLoader:
    """Reads usage text for commands from a manuals directory."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory).resolve() if directory else None

    def path_for(self, name: str) -> Optional[Path]:
        """Return where the manual for ``name`` would live, or None."""
        if self.directory is None:
            return None
        return self.directory / str(name)

    def load(self, name: str) -> Optional[str]:
        """
        Load the manual for ``name``.

        Returns:
            The file's UTF-8 contents, or None if no manuals directory is
            configured or no such file exists.
        """
        path = self.path_for(name)
        if path is None:
            return None
        try:
            if not path.is_file():
                return None
        except OSError as e:
            logger.debug("No manual for %r: %s", name, e)
            return None

        usage = path.read_text(encoding="utf-8")
        if sys.platform == "win32":
            usage = strip_bold_pairs(usage)

        logger.debug("Loaded manual for %s from %s", name, path)
        return usage
