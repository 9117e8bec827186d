"""
Configuration loader with environment variable mapping.

Values come from three layers, lowest precedence first: model defaults,
`DELIMLOAD_*` / `POSTGRES_*` environment variables (optionally from a .env
file), and explicit overrides handed in by the CLI.
"""

from typing import Any, Dict, Optional
import logging
import os

from dotenv import load_dotenv
from pydantic import ValidationError

from ...exceptions import ConfigurationError
from .models import AppConfig, DatabaseConfig, Environment, IngestionConfig

logger = logging.getLogger(__name__)

# IngestionConfig field -> environment variable
INGESTION_ENV = {
    "schema_text": "DELIMLOAD_SCHEMA",
    "delimiter": "DELIMLOAD_DELIMITER",
    "delimiter_in_quotes": "DELIMLOAD_DELIMITER_IN_QUOTES",
    "null_string": "DELIMLOAD_NULL_STRING",
    "date_format": "DELIMLOAD_DATE_FORMAT",
    "bool_style": "DELIMLOAD_BOOL_STYLE",
    "decimal_delimiter": "DELIMLOAD_DECIMAL_DELIMITER",
    "skip_rows": "DELIMLOAD_SKIP_ROWS",
    "max_rows": "DELIMLOAD_MAX_ROWS",
    "max_errors": "DELIMLOAD_MAX_ERRORS",
    "bad_dir": "DELIMLOAD_BAD_DIR",
    "num_futures": "DELIMLOAD_NUM_FUTURES",
    "num_threads": "DELIMLOAD_NUM_THREADS",
    "write_timeout": "DELIMLOAD_WRITE_TIMEOUT",
    "count_write_failures": "DELIMLOAD_COUNT_WRITE_FAILURES",
    "abort_scope": "DELIMLOAD_ABORT_SCOPE",
}

DATABASE_ENV = {
    "dsn": "DELIMLOAD_DSN",
    "host": "POSTGRES_HOST",
    "port": "POSTGRES_PORT",
    "user": "POSTGRES_USER",
    "password": "POSTGRES_PASSWORD",
    "database_name": "POSTGRES_DBNAME",
    "command_timeout": "DELIMLOAD_COMMAND_TIMEOUT",
    "async_pool_min_size": "DELIMLOAD_ASYNC_POOL_MIN_SIZE",
    "async_pool_max_size": "DELIMLOAD_ASYNC_POOL_MAX_SIZE",
}


class ConfigLoader:
    """Configuration loader with environment variable mapping and validation."""

    def __init__(self, env_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Args:
            env_file: Path to .env file (defaults to .env in current directory)
            environ: Mapping to read variables from (defaults to os.environ)
        """
        self.env_file = env_file or ".env"
        self._environ = environ

    def load_configuration(
        self,
        ingestion_overrides: Optional[Dict[str, Any]] = None,
        database_overrides: Optional[Dict[str, Any]] = None,
    ) -> AppConfig:
        """
        Build a validated AppConfig.

        Overrides whose value is None are ignored so that unset CLI options fall
        back to the environment and then to model defaults.

        Raises:
            ConfigurationError: If the merged values fail validation.
        """
        if self._environ is None:
            self._load_env_file()

        ingestion_values = self._from_env(INGESTION_ENV)
        ingestion_values.update(_drop_unset(ingestion_overrides))
        database_values = self._from_env(DATABASE_ENV)
        database_values.update(_drop_unset(database_overrides))

        env_str = self._getenv("ENVIRONMENT", Environment.DEVELOPMENT.value).lower()
        environment = Environment(env_str) if env_str in Environment.__members__.values() else Environment.DEVELOPMENT

        try:
            config = AppConfig(
                environment=environment,
                log_dir=self._getenv("DELIMLOAD_LOG_DIR"),
                database=DatabaseConfig(**database_values),
                ingestion=IngestionConfig(**ingestion_values),
            )
        except ValidationError as e:
            raise ConfigurationError(_format_validation_error(e)) from e

        return config

    def _load_env_file(self):
        if os.path.exists(self.env_file):
            load_dotenv(self.env_file, override=False)
            logger.debug(f"Loaded environment variables from {self.env_file}")

    def _getenv(self, name: str, default: Optional[str] = None) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        return environ.get(name, default)

    def _from_env(self, mapping: Dict[str, str]) -> Dict[str, Any]:
        values = {}
        for field_name, env_name in mapping.items():
            raw = self._getenv(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw
        return values


def _drop_unset(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (values or {}).items() if v is not None}


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        messages.append(f"{location}: {item['msg']}")
    return "; ".join(messages)
