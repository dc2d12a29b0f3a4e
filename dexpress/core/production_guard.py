"""Production configuration guard — enforces hard constraints in production.

The guard validates that production-critical settings are correctly
configured before the API starts serving.  It runs once at app construction
and fails hard (raises ``ProductionConfigError``) if any constraint is
violated.
"""

from __future__ import annotations

import logging

from dexpress.config import ProdConfig

logger = logging.getLogger(__name__)


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    The process cannot safely serve in production mode with the current
    configuration and should exit.
    """


def enforce_production_constraints(config: ProdConfig) -> None:
    """Validate all production-critical configuration constraints.

    No-op outside production.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. The store backend must be Supabase, with URL and key configured.
    3. Static development tokens must not be configured.

    Raises
    ------
    ProductionConfigError
        Listing every violated constraint.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append("debug mode must be disabled in production")

    if config.store_backend != "supabase":
        violations.append(
            f"store_backend must be 'supabase' in production (got {config.store_backend!r})"
        )
    if not config.supabase_url or not config.supabase_key:
        violations.append("SUPABASE_URL and SUPABASE_KEY must be set in production")

    if config.dev_tokens:
        violations.append("dev_tokens must be empty in production")

    if violations:
        message = "Production configuration invalid: " + "; ".join(violations)
        logger.critical(message)
        raise ProductionConfigError(message)

    logger.info("Production constraints satisfied.")
