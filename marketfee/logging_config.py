import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from loguru import logger

from marketfee.config import Settings, get_settings

# Context variables for the order currently being priced
order_id_var: ContextVar[Optional[str]] = ContextVar("order_id", default=None)
shop_id_var: ContextVar[Optional[str]] = ContextVar("shop_id", default=None)

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<blue>order_id={extra[order_id]}</blue> | <yellow>shop_id={extra[shop_id]}</yellow> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | "
    "order_id={extra[order_id]} | shop_id={extra[shop_id]} | {message}"
)


def _inject_context(record: Dict[str, Any]) -> None:
    extra = record["extra"]
    extra.setdefault("order_id", order_id_var.get())
    extra.setdefault("shop_id", shop_id_var.get())


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure loguru sinks with context-aware formatting."""
    settings = settings or get_settings()

    logger.remove()
    logger.configure(patcher=_inject_context)

    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=settings.log_level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if not settings.log_to_file:
        return

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_dir / "app.log",
        format=_FILE_FORMAT,
        level="DEBUG",
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        compression="zip",
    )

    logger.add(
        log_dir / "errors.log",
        format=_FILE_FORMAT,
        level="ERROR",
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        compression="zip",
    )


def get_logger(name: Optional[str] = None):
    """Logger bound to the calling component; order context is patched in per record."""
    if name:
        return logger.bind(component=name)
    return logger


def set_context(order_id: Optional[str] = None, shop_id: Optional[str] = None) -> None:
    """Set context variables for logging."""
    if order_id is not None:
        order_id_var.set(order_id)
    if shop_id is not None:
        shop_id_var.set(shop_id)


def clear_context() -> None:
    """Clear all logging context variables."""
    order_id_var.set(None)
    shop_id_var.set(None)


@contextmanager
def log_context(order_id: Optional[str] = None, shop_id: Optional[str] = None) -> Iterator[None]:
    """Scoped variant of set_context: restores the previous values on exit."""
    order_token = order_id_var.set(order_id)
    shop_token = shop_id_var.set(shop_id)
    try:
        yield
    finally:
        order_id_var.reset(order_token)
        shop_id_var.reset(shop_token)
