"""
Startup Security Validation.

Checks security invariants before the application accepts traffic. In
production any failed check blocks startup; elsewhere the failures are
logged and requests without a configured API key get a 500.

Called during FastAPI lifespan initialization.
"""

from backlog.backend.core.config import get_app_config, get_settings
from backlog.backend.core.logging import get_logger

logger = get_logger(__name__)

API_KEY_MIN_LENGTH = 16


class StartupSecurityError(RuntimeError):
    """Raised when a startup security check fails."""

    pass


def run_startup_checks() -> None:
    """
    Validate security invariants at startup.

    Raises:
        StartupSecurityError: If any check fails in production
    """
    app_config = get_app_config()
    settings = get_settings()
    environment = app_config.application.environment
    is_production = environment == "production"

    errors: list[str] = []

    _check_api_key(settings.api_key, errors)
    _check_production_safety(app_config, is_production, errors)

    if errors and is_production:
        for error in errors:
            logger.error("Startup security check failed", extra={"check": error})
        raise StartupSecurityError(
            f"Startup blocked: {len(errors)} security check(s) failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    for error in errors:
        logger.warning("Startup security check failed", extra={"check": error})

    logger.info(
        "Startup security checks finished",
        extra={"environment": environment, "failures": len(errors)},
    )


def _check_api_key(api_key: str | None, errors: list[str]) -> None:
    if not api_key:
        errors.append("API_KEY is not set; every authenticated request will fail with 500")
    elif len(api_key) < API_KEY_MIN_LENGTH:
        errors.append(f"API_KEY is {len(api_key)} chars, minimum is {API_KEY_MIN_LENGTH}")


def _check_production_safety(app_config, is_production: bool, errors: list[str]) -> None:
    """Validate production environment safety constraints."""
    if not is_production:
        return

    app = app_config.application
    if app.debug:
        errors.append("debug is true in production environment")

    localhost_origins = [o for o in app.cors.origins if "localhost" in o]
    if localhost_origins:
        errors.append(f"CORS origins contain localhost in production: {localhost_origins}")
