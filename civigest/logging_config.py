from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `civigest` logger tree.

    Notes:
    - Stdlib logging only; uvicorn installs the handlers.
    - Set `CIVIGEST_LOG_LEVEL=DEBUG` to see every allow/deny decision.
    """

    normalized = level.upper()
    logging.getLogger("civigest").setLevel(normalized)
    logging.getLogger("civigest").propagate = True
