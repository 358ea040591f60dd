import logging
import sys
import contextvars
from typing import Optional

# Context variable to carry the current backup run id across the call chain.
# Worker threads start with a fresh context, so stages copy it in explicitly.
_RUN_ID: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")


class _RunIdFilter(logging.Filter):
    """Logging filter that injects the run_id from contextvars into the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.run_id = _RUN_ID.get()
        except Exception:
            record.run_id = "-"
        return True


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | run=%(run_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_root_logger(level: Optional[str] = None) -> None:
    """
    Configure root logger and the clusterbackup-specific logger.

    Logs go to stderr: stdout is reserved for the YAML stream sink.
    Root logger stays at WARNING to suppress library noise (httpx, httpcore).
    Only the clusterbackup namespace is set to the requested level.

    Safe to call multiple times; it will not duplicate handlers (idempotent).
    """
    root = logging.getLogger()

    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and any(isinstance(f, _RunIdFilter) for f in h.filters):
            if level:
                logging.getLogger("clusterbackup").setLevel(getattr(logging, level.upper(), logging.INFO))
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_build_formatter())
    handler.addFilter(_RunIdFilter())
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("clusterbackup").setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))


def get_logger(name: str = "clusterbackup") -> logging.Logger:
    """
    Get a module-specific logger under the shared root configuration.

    The level is inherited from the ``clusterbackup`` logger so that a single
    ``configure_root_logger("DEBUG")`` call affects every module.
    """
    configure_root_logger()
    return logging.getLogger(name)


def current_run_id() -> str:
    return _RUN_ID.get()


def push_run_id(run_id: Optional[str]) -> Optional[contextvars.Token]:
    """Set the current run id in context and return a token for later reset."""
    if not run_id:
        return None
    return _RUN_ID.set(run_id)


def reset_run_id(token: Optional[contextvars.Token]) -> None:
    """Reset the run id context using the provided token (if any)."""
    if token is None:
        return
    try:
        _RUN_ID.reset(token)
    except ValueError:
        # Token created in another context (e.g. a worker thread)
        pass
