import logging
import os

try:  # Optional dependency
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration
except ImportError:  # pragma: no cover - optional
    sentry_sdk = None
    FastApiIntegration = None
    LoggingIntegration = None
    StarletteIntegration = None


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def init_error_reporting(service_name: str, enable_fastapi: bool = False) -> bool:
    """Send ERROR-level log records and unhandled exceptions to Sentry.

    Per-workout parse warnings stay breadcrumbs; only failures that abort an
    ingest call become events. Returns False when no DSN is configured.
    """
    dsn = os.getenv("RUNLOG_SENTRY_DSN")
    if not dsn or sentry_sdk is None:
        return False

    integrations = []
    if LoggingIntegration is not None:
        integrations.append(LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR))
    if enable_fastapi and FastApiIntegration is not None and StarletteIntegration is not None:
        integrations.extend([FastApiIntegration(), StarletteIntegration()])

    sentry_sdk.init(
        dsn=dsn,
        environment=os.getenv("RUNLOG_ENV", os.getenv("RUN_MODE", "prod")),
        release=os.getenv("RUNLOG_RELEASE"),
        traces_sample_rate=_float_env("RUNLOG_SENTRY_TRACES_SAMPLE_RATE", 0.0),
        integrations=integrations,
        send_default_pii=False,
    )
    sentry_sdk.set_tag("service", service_name)
    return True
