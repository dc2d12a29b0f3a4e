"""Adversarial tests for production configuration guard.

These tests assert that production mode enforces hard constraints
and that permissive development settings cannot leak into a
production deployment.
"""

from __future__ import annotations

import pytest

from dexpress.api.app import create_app
from dexpress.config import ProdConfig
from dexpress.core.production_guard import ProductionConfigError, enforce_production_constraints

# A production config that satisfies every constraint.
_PROD = {
    "_env_file": None,
    "environment": "production",
    "store_backend": "supabase",
    "supabase_url": "https://xyz.supabase.co",
    "supabase_key": "service-role-key",
}


def _config(**overrides) -> ProdConfig:
    return ProdConfig(**{**_PROD, **overrides})


# ---------------------------------------------------------------------------
# Test: a complete production config passes
# ---------------------------------------------------------------------------


class TestProductionGuardBaseline:
    def test_valid_production_config_passes(self):
        enforce_production_constraints(_config())  # should not raise

    def test_development_is_unchecked(self):
        config = ProdConfig(_env_file=None, debug=True, dev_tokens={"t": "u"})
        enforce_production_constraints(config)  # guard only applies in production


# ---------------------------------------------------------------------------
# Test: each permissive setting is rejected in production
# ---------------------------------------------------------------------------


class TestProductionGuardViolations:
    def test_debug_mode(self):
        with pytest.raises(ProductionConfigError, match="debug mode"):
            enforce_production_constraints(_config(debug=True))

    def test_sqlite_backend(self):
        with pytest.raises(ProductionConfigError, match="store_backend"):
            enforce_production_constraints(_config(store_backend="sqlite"))

    @pytest.mark.parametrize("missing", ["supabase_url", "supabase_key"])
    def test_missing_supabase_credentials(self, missing):
        with pytest.raises(ProductionConfigError, match="SUPABASE_URL and SUPABASE_KEY"):
            enforce_production_constraints(_config(**{missing: ""}))

    def test_dev_tokens(self):
        with pytest.raises(ProductionConfigError, match="dev_tokens"):
            enforce_production_constraints(_config(dev_tokens={"token": "admin"}))

    def test_all_violations_reported_together(self):
        config = ProdConfig(_env_file=None, environment="production", debug=True,
                            dev_tokens={"t": "u"})
        with pytest.raises(ProductionConfigError) as excinfo:
            enforce_production_constraints(config)
        message = str(excinfo.value)
        for fragment in ("debug mode", "store_backend", "SUPABASE_URL", "dev_tokens"):
            assert fragment in message


# ---------------------------------------------------------------------------
# Test: the app refuses to build with a bad production config
# ---------------------------------------------------------------------------


class TestAppFactoryGuard:
    def test_create_app_fails_fast(self, tmp_path):
        config = ProdConfig(_env_file=None, environment="production",
                            db_path=tmp_path / "never.db")
        with pytest.raises(ProductionConfigError):
            create_app(config)
        assert not (tmp_path / "never.db").exists()
