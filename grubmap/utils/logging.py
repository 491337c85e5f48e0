import logging
from typing import Optional, Any

logger = logging.getLogger("grubmap.actions")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def log_action(
    action: str,
    user_id: Optional[str] = None,
    details: Optional[Any] = None,
    level: int = logging.WARNING,
):
    """
    Record a side effect that failed without failing the action around it
    (profile bootstrap after a successful sign-in, for instance).
    """
    logger.log(level, "%s failed for user=%s: %s", action, user_id or "-", details)
