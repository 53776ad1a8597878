from __future__ import annotations

import logging
from typing import Literal

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Implements application.ports.collaborators.Notifier by writing to the log."""

    def notify(
        self,
        title: str,
        description: str,
        variant: Literal["default", "destructive"] = "default",
    ) -> None:
        level = logging.WARNING if variant == "destructive" else logging.INFO
        logger.log(level, "%s: %s", title, description)
