"""
Optional MLflow telemetry for upstream model calls.

Telemetry is active only when a tracking URI is configured and the
process is not running under tests. MLflow failures never reach callers.
"""

from contextlib import contextmanager
from typing import Any, Callable, Optional

import mlflow

from app.patient_service.config import settings
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)


def mlflow_enabled() -> bool:
    """True when runs should be recorded."""
    return bool(settings.MLFLOW_TRACKING_URI) and settings.ENV != "test"


@contextmanager
def mlflow_context(run_name: str | None = None):
    """
    MLflow run lifecycle handler.

    Starts a run if none is active, reuses an active one otherwise, and
    ends only the runs it started. Yields None when telemetry is disabled
    or the run could not be started.
    """
    if not mlflow_enabled():
        yield None
        return

    run = None
    started_here = False

    try:
        run = mlflow.active_run()
        if run is None:
            run = mlflow.start_run(run_name=run_name)
            started_here = True
    except Exception:
        logger.warning("MLflow run could not be started", exc_info=True)

    try:
        yield run
    finally:
        if started_here:
            try:
                mlflow.end_run()
            except Exception:
                logger.warning("Failed to end MLflow run", exc_info=True)


def mlflow_safe(
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> Optional[Any]:
    """
    Execute an MLflow call, logging and suppressing any failure.

    Args:
        func: MLflow function, e.g. mlflow.log_metric.
        *args: Positional arguments for func.
        **kwargs: Keyword arguments for func.

    Returns:
        The function's return value, or None if skipped or failed.
    """
    if not mlflow_enabled():
        return None

    try:
        return func(*args, **kwargs)
    except Exception:
        logger.warning(
            "MLflow call failed: %s",
            getattr(func, "__name__", repr(func)),
            exc_info=True,
        )
        return None
