"""Execution context shared between the dispatcher and the commands it runs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_ENV_VAR", "ExecutionContext"]

DEFAULT_ENV_VAR = "SUBCMD_COMMAND"


@dataclass
class ExecutionContext:
    """Name of the command being dispatched, for commands and their children.

    The dispatcher sets ``command`` right before each invocation and never
    clears it, so after a run it names the last command dispatched. Commands
    that spawn processes pass ``child_env()`` as the subprocess environment.
    """

    env_var: str = DEFAULT_ENV_VAR
    command: Optional[str] = None

    def enter(self, name: str) -> None:
        """Record ``name`` as the command about to run."""
        self.command = name

    def child_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Environment for a child process, with the command name published."""
        env = dict(os.environ if base is None else base)
        if self.command is not None:
            env[self.env_var] = self.command
        return env

    def publish(self) -> None:
        """Write the command name into this process's own environment."""
        if self.command is None:
            return
        os.environ[self.env_var] = self.command
        logger.debug("Published %s=%s", self.env_var, self.command)
