"""Application configuration for bountyhub.

Reads runtime settings from environment variables with sensible defaults.
All configuration is centralised here; no other module reads os.environ directly.
"""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Application-wide configuration loaded from environment variables.

    Attributes:
        data_dir: Directory holding the SQLite database files.
        db_path: Path to the bounty database (bounties, entries, benefactors,
            files).  Defaults to ``data_dir / "bounties.db"``.
        ledger_db_path: Path to the BUZZ ledger database.  Defaults to
            ``data_dir / "ledger.db"``.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        transaction_max_wait_seconds: How long a unit of work may wait to start.
        transaction_timeout_seconds: How long a unit of work may run before it
            is rolled back.
        system_account_id: Ledger account that funds bounty payouts.
    """

    data_dir: Path = Path("data")
    db_path: Path = Path("data/bounties.db")
    ledger_db_path: Path = Path("data/ledger.db")
    log_level: str = "INFO"
    transaction_max_wait_seconds: float = 5.0
    transaction_timeout_seconds: float = 10.0
    system_account_id: int = 0

    model_config = {"env_prefix": "", "case_sensitive": False}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is one of the accepted Python logging levels.

        Args:
            v: The raw log level string from the environment.

        Returns:
            The uppercased log level string if valid.

        Raises:
            ValueError: If the value is not a recognised logging level.
        """
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}; got {v!r}")
        return upper

    @field_validator("transaction_max_wait_seconds", "transaction_timeout_seconds")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Reject zero or negative transaction budgets.

        Args:
            v: The configured number of seconds.

        Returns:
            The value unchanged.

        Raises:
            ValueError: If the value is not strictly positive.
        """
        if v <= 0:
            raise ValueError(f"transaction budgets must be positive; got {v!r}")
        return v

    @model_validator(mode="after")
    def derive_db_paths(self) -> "AppConfig":
        """Place database files under data_dir unless their paths were given.

        Returns:
            The config with ``db_path`` and ``ledger_db_path`` resolved.
        """
        if "db_path" not in self.model_fields_set:
            self.db_path = self.data_dir / "bounties.db"
        if "ledger_db_path" not in self.model_fields_set:
            self.ledger_db_path = self.data_dir / "ledger.db"
        return self


def get_config() -> AppConfig:
    """Return the application configuration, resolved from environment variables.

    Environment variables read (case-insensitive):
        DATA_DIR: Path to the data directory (default: ``data/``).
        DB_PATH: Path to the bounty database (default: ``$DATA_DIR/bounties.db``).
        LEDGER_DB_PATH: Path to the ledger database (default: ``$DATA_DIR/ledger.db``).
        LOG_LEVEL: Logging verbosity level (default: ``INFO``).
        TRANSACTION_MAX_WAIT_SECONDS: Start budget for a unit of work (default: ``5``).
        TRANSACTION_TIMEOUT_SECONDS: Run budget for a unit of work (default: ``10``).
        SYSTEM_ACCOUNT_ID: Ledger account paying out awards (default: ``0``).

    Returns:
        An :class:`AppConfig` instance populated from the environment.
    """
    return AppConfig(
        _env_file=".env",
        _env_file_encoding="utf-8",
    )
