"""
Configuration module for the HireFlow MCP servers.

Provides centralized configuration management with support for:
- Environment variables
- Default values
- Path resolution
- Logging configuration
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from utils.portal_tokens import DEFAULT_PORTAL_SECRET

# Load environment variables from .env file at project root
# config.py is in mcp-server-python/, so .env is in parent directory
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

SURFACES = ("console", "portal")


def _parse_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Parse an integer from env, falling back to the default on bad input."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-integer %s=%r", env_var, value)
        return default
    return max(parsed, minimum)


class Config:
    """
    Configuration class for MCP server settings.

    Supports configuration via environment variables (and .env file) with sensible defaults.
    All paths are resolved relative to the repository root.
    """

    def __init__(self):
        """Initialize configuration from environment variables and defaults."""
        self._repo_root = self._find_repo_root()

        # Database configuration
        self.db_path = self._resolve_db_path()

        # Logging configuration
        self.log_level = os.getenv("HIREFLOW_LOG_LEVEL", "INFO").upper()
        self.log_file = self._resolve_log_path()

        # Server configuration
        self.server_name = os.getenv("HIREFLOW_SERVER_NAME", "hireflow-console")
        self.portal_server_name = os.getenv("HIREFLOW_PORTAL_SERVER_NAME", "hireflow-portal")
        self.surface = os.getenv("HIREFLOW_SURFACE", "console").strip().lower()

        # Candidate portal
        self.portal_secret = os.getenv("HIREFLOW_PORTAL_SECRET") or DEFAULT_PORTAL_SECRET

        # Pipeline defaults
        self.side_effect_workers = _parse_int("HIREFLOW_SIDE_EFFECT_WORKERS", 2, minimum=1)
        self.stale_stage_days = _parse_int("HIREFLOW_STALE_STAGE_DAYS", 7)
        self.default_actor = os.getenv("HIREFLOW_DEFAULT_ACTOR", "system").strip() or "system"
        self.default_currency = os.getenv("HIREFLOW_DEFAULT_CURRENCY", "INR").strip().upper() or "INR"

    def _find_repo_root(self) -> Path:
        # config.py is in mcp-server-python/, so parent is repo root
        return Path(__file__).resolve().parent.parent

    def _resolve_db_path(self) -> Path:
        """
        Resolve the database path from environment or default.

        Resolution order:
        1. HIREFLOW_DB environment variable (absolute or relative to repo root)
        2. HIREFLOW_ROOT/data/hireflow.db
        3. Default: <repo_root>/data/hireflow.db
        """
        db_env = os.getenv("HIREFLOW_DB")
        if db_env:
            db_path = Path(db_env)
            if db_path.is_absolute():
                return db_path
            return self._repo_root / db_path

        root_env = os.getenv("HIREFLOW_ROOT")
        if root_env:
            return Path(root_env) / "data" / "hireflow.db"

        return self._repo_root / "data" / "hireflow.db"

    def _resolve_log_path(self) -> Optional[Path]:
        """
        Resolve the log file path from environment.

        If HIREFLOW_LOG_FILE is set, logs will be written to that file.
        Otherwise, logs go to stderr only.
        """
        log_env = os.getenv("HIREFLOW_LOG_FILE")
        if not log_env:
            return None

        log_path = Path(log_env)
        if log_path.is_absolute():
            return log_path
        return self._repo_root / log_path

    def setup_logging(self):
        """
        Configure logging based on configuration settings.

        Sets up logging to stderr and optionally to a file.
        Log level is controlled by HIREFLOW_LOG_LEVEL.
        """
        numeric_level = getattr(logging, self.log_level, logging.INFO)

        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)

        # Remove existing handlers to avoid duplicates
        root_logger.handlers.clear()

        # stdout carries the MCP stdio transport, so logs go to stderr
        stderr_handler = logging.StreamHandler()
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(formatter)
        root_logger.addHandler(stderr_handler)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            logging.info(f"Logging to file: {self.log_file}")

        logging.info(f"Log level set to: {self.log_level}")
        logging.info(f"Surface: {self.surface}")
        logging.info(f"Database path: {self.db_path}")

    def get_db_path_str(self) -> str:
        """Get database path as string for use in tool handlers."""
        return str(self.db_path)

    def validate(self) -> list[str]:
        """
        Validate configuration and return any warnings.

        Returns:
            List of warning messages (empty if all valid)
        """
        warnings = []

        if self.surface not in SURFACES:
            warnings.append(
                f"Unknown HIREFLOW_SURFACE '{self.surface}'; expected one of: {', '.join(SURFACES)}. "
                "Falling back to console."
            )

        if not self.db_path.exists():
            warnings.append(
                f"Database file not found: {self.db_path}. "
                "It will be created with an empty schema on start-up."
            )

        if self.portal_secret == DEFAULT_PORTAL_SECRET:
            warnings.append(
                "HIREFLOW_PORTAL_SECRET is not set; portal tokens use the built-in default secret."
            )

        if self.log_file:
            log_dir = self.log_file.parent
            if not log_dir.exists():
                try:
                    log_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    warnings.append(f"Cannot create log directory {log_dir}: {e}")
            elif not os.access(log_dir, os.W_OK):
                warnings.append(f"Log directory not writable: {log_dir}")

        return warnings


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config
