"""Unit tests for project scaffolding and configuration.

Covers pyproject.toml requirements, package/subpackage docstrings, the
``__version__`` constant, and :class:`~bountyhub.config.AppConfig`
environment handling.  No network calls are made.
"""

from __future__ import annotations

import ast
import importlib
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import BaseModel, ValidationError

PROJECT_ROOT = Path(__file__).parent.parent.parent
PYPROJECT = PROJECT_ROOT / "pyproject.toml"
SRC_ROOT = PROJECT_ROOT / "src"

_CONFIG_ENV_VARS = (
    "DATA_DIR",
    "DB_PATH",
    "LEDGER_DB_PATH",
    "LOG_LEVEL",
    "TRANSACTION_MAX_WAIT_SECONDS",
    "TRANSACTION_TIMEOUT_SECONDS",
    "SYSTEM_ACCOUNT_ID",
)


# ---------------------------------------------------------------------------
# pyproject.toml
# ---------------------------------------------------------------------------


class TestPyprojectToml:
    """Tests targeting pyproject.toml content requirements."""

    def test_pyproject_exists(self) -> None:
        """pyproject.toml must exist at the project root."""
        assert PYPROJECT.exists(), "pyproject.toml not found at project root"

    def test_python_requires_present(self) -> None:
        """pyproject.toml must declare requires-python = '>=3.10'."""
        content = PYPROJECT.read_text(encoding="utf-8")
        assert 'requires-python = ">=3.10"' in content

    def test_pytest_testpaths_configured(self) -> None:
        """[tool.pytest.ini_options] must point testpaths at 'tests'."""
        content = PYPROJECT.read_text(encoding="utf-8")
        assert 'testpaths = ["tests"]' in content

    def test_runtime_dependencies_declared(self) -> None:
        """Every third-party runtime import must be declared."""
        content = PYPROJECT.read_text(encoding="utf-8")
        for dist in ("fastapi", "pydantic", "pydantic-settings"):
            assert f'"{dist}' in content, f"{dist} missing from pyproject.toml"

    def test_no_orm_in_pyproject(self) -> None:
        """Storage is plain sqlite3; no ORM is declared."""
        content = PYPROJECT.read_text(encoding="utf-8").lower()
        for lib in ("sqlalchemy", "tortoise", "peewee", "piccolo"):
            assert lib not in content


class TestPythonVersion:
    """Ensure the interpreter meets the minimum version requirement."""

    def test_python_version_at_least_3_10(self) -> None:
        """The running Python interpreter must be >= 3.10."""
        assert sys.version_info >= (3, 10)


# ---------------------------------------------------------------------------
# Module docstrings
# ---------------------------------------------------------------------------


class TestModuleDocstrings:
    """All package __init__.py files must carry a module-level docstring."""

    MODULES = [
        "bountyhub",
        "bountyhub.api",
        "bountyhub.db",
        "bountyhub.ledger",
        "bountyhub.services",
        "bountyhub.store",
    ]

    @pytest.mark.parametrize("module_name", MODULES)
    def test_module_has_docstring(self, module_name: str) -> None:
        """Each subpackage __init__ must expose a non-empty module docstring."""
        doc = importlib.import_module(module_name).__doc__
        assert doc and doc.strip(), f"Module '{module_name}' is missing a docstring"


# ---------------------------------------------------------------------------
# AppConfig
# ---------------------------------------------------------------------------


class TestAppConfigIsPydantic:
    """AppConfig must derive from pydantic.BaseModel via BaseSettings."""

    def test_appconfig_is_basemodel_subclass(self) -> None:
        """AppConfig must be a subclass of pydantic.BaseModel."""
        from bountyhub.config import AppConfig  # noqa: PLC0415

        assert issubclass(AppConfig, BaseModel)


class TestGetConfig:
    """Tests for environment variable handling."""

    def test_defaults_without_env(self) -> None:
        """AppConfig() must return defaults when no env vars are set."""
        env_clean = {k: v for k, v in os.environ.items() if k not in _CONFIG_ENV_VARS}
        with patch.dict(os.environ, env_clean, clear=True):
            from bountyhub.config import AppConfig  # noqa: PLC0415

            cfg = AppConfig()
        assert cfg.data_dir == Path("data")
        assert cfg.db_path == Path("data/bounties.db")
        assert cfg.ledger_db_path == Path("data/ledger.db")
        assert cfg.log_level == "INFO"
        assert cfg.transaction_max_wait_seconds == 5.0
        assert cfg.transaction_timeout_seconds == 10.0
        assert cfg.system_account_id == 0

    def test_db_paths_follow_data_dir(self) -> None:
        """DATA_DIR relocates both databases unless their paths are set."""
        env_clean = {k: v for k, v in os.environ.items() if k not in _CONFIG_ENV_VARS}
        env_clean["DATA_DIR"] = "/srv/bounties"
        with patch.dict(os.environ, env_clean, clear=True):
            from bountyhub.config import AppConfig  # noqa: PLC0415

            cfg = AppConfig()
        assert cfg.db_path == Path("/srv/bounties/bounties.db")
        assert cfg.ledger_db_path == Path("/srv/bounties/ledger.db")

    def test_explicit_db_path_wins_over_data_dir(self) -> None:
        """An explicit db_path is kept; the ledger still follows data_dir."""
        from bountyhub.config import AppConfig  # noqa: PLC0415

        env_clean = {k: v for k, v in os.environ.items() if k not in _CONFIG_ENV_VARS}
        with patch.dict(os.environ, env_clean, clear=True):
            cfg = AppConfig(data_dir=Path("/srv/x"), db_path=Path("/tmp/b.db"))
        assert cfg.db_path == Path("/tmp/b.db")
        assert cfg.ledger_db_path == Path("/srv/x/ledger.db")

    def test_db_path_from_env(self) -> None:
        """DB_PATH env var must override db_path."""
        with patch.dict(os.environ, {"DB_PATH": "/tmp/b.db"}, clear=False):
            from bountyhub.config import AppConfig  # noqa: PLC0415

            cfg = AppConfig()
        assert cfg.db_path == Path("/tmp/b.db")

    def test_transaction_budgets_from_env(self) -> None:
        """Transaction budgets are read as floats."""
        env = {"TRANSACTION_MAX_WAIT_SECONDS": "1.5", "TRANSACTION_TIMEOUT_SECONDS": "3"}
        with patch.dict(os.environ, env, clear=False):
            from bountyhub.config import AppConfig  # noqa: PLC0415

            cfg = AppConfig()
        assert cfg.transaction_max_wait_seconds == 1.5
        assert cfg.transaction_timeout_seconds == 3.0

    def test_non_positive_timeout_raises(self) -> None:
        """A zero transaction timeout is rejected."""
        from bountyhub.config import AppConfig  # noqa: PLC0415

        with patch.dict(os.environ, {"TRANSACTION_TIMEOUT_SECONDS": "0"}, clear=False):
            with pytest.raises(ValidationError):
                AppConfig()

    def test_log_level_case_insensitive(self) -> None:
        """LOG_LEVEL must be normalised to uppercase."""
        with patch.dict(os.environ, {"LOG_LEVEL": "warning"}, clear=False):
            from bountyhub.config import AppConfig  # noqa: PLC0415

            cfg = AppConfig()
        assert cfg.log_level == "WARNING"

    def test_invalid_log_level_raises(self) -> None:
        """An invalid LOG_LEVEL must raise a validation error."""
        from bountyhub.config import AppConfig  # noqa: PLC0415

        with patch.dict(os.environ, {"LOG_LEVEL": "VERBOSE"}, clear=False):
            with pytest.raises(ValidationError):
                AppConfig()

    def test_get_config_returns_appconfig(self) -> None:
        """get_config() must return an AppConfig instance."""
        from bountyhub.config import AppConfig, get_config  # noqa: PLC0415

        assert isinstance(get_config(), AppConfig)


# ---------------------------------------------------------------------------
# Package version
# ---------------------------------------------------------------------------


class TestPackageVersion:
    """The package root must expose a semver __version__ string."""

    def test_version_semver_format(self) -> None:
        """bountyhub.__version__ should follow major.minor.patch format."""
        import bountyhub  # noqa: PLC0415

        parts = bountyhub.__version__.split(".")
        assert len(parts) == 3
        assert all(part.isdigit() for part in parts)


# ---------------------------------------------------------------------------
# Source hygiene
# ---------------------------------------------------------------------------


class TestNoAssertInSource:
    """Runtime checks in the package must survive ``python -O``."""

    @pytest.mark.parametrize(
        "path",
        sorted((SRC_ROOT / "bountyhub").rglob("*.py")),
        ids=lambda p: str(p.relative_to(SRC_ROOT)),
    )
    def test_no_assert_statements(self, path: Path) -> None:
        """Package modules raise exceptions instead of using assert."""
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        lines = [node.lineno for node in ast.walk(tree) if isinstance(node, ast.Assert)]
        assert lines == [], f"assert statements in {path.name} at lines {lines}"
