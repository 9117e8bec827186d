"""
Pydantic configuration models with validation.

IngestionConfig: everything a worker needs to turn lines into writes; frozen and
    shared by value across all workers of a run.
DatabaseConfig: connection and pool settings for the asyncpg pool.
AppConfig: top-level container handed to the dispatcher by the CLI.
"""

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class BoolStyle(str, Enum):
    """Textual encodings accepted for boolean columns, as `<true>_<false>`."""
    TRUE_FALSE = "TRUE_FALSE"
    ONE_ZERO = "1_0"
    T_F = "T_F"
    Y_N = "Y_N"
    YES_NO = "YES_NO"

    @property
    def tokens(self) -> tuple:
        true_token, false_token = self.value.split("_")
        return true_token.lower(), false_token.lower()

    @classmethod
    def options(cls) -> str:
        return ", ".join(style.value for style in cls)


class AbortScope(str, Enum):
    """How far an exhausted error budget reaches."""
    SOURCE = "source"
    RUN = "run"


# Sentinel used on the command line and in the environment for "no limit".
UNBOUNDED = -1


class DatabaseConfig(BaseModel):
    """Database connection configuration with validation."""

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    user: Optional[str] = Field(default=None, description="Database username")
    password: Optional[str] = Field(default=None, description="Database password")
    database_name: str = Field(default="postgres", description="Database name")
    dsn: Optional[str] = Field(default=None, description="Full connection string; overrides the fields above")
    command_timeout: float = Field(default=60.0, gt=0, description="Per-statement timeout in seconds")
    async_pool_min_size: int = Field(default=1, ge=1, le=50, description="Minimum size of async connection pool")
    async_pool_max_size: Optional[int] = Field(
        default=None,
        ge=1,
        le=200,
        description="Maximum size of async connection pool (derived from num_threads when unset)",
    )

    @field_validator('host')
    @classmethod
    def validate_host(cls, v):
        if not v.strip():
            raise ValueError('Host cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_credentials(self):
        if self.user is None and self.password is not None:
            raise ValueError('If you supply the password, you must supply the username')
        if self.user is not None and self.password is None:
            raise ValueError('If you supply the username, you must supply the password')
        return self

    def get_connection_string(self) -> str:
        """Get PostgreSQL connection string."""
        if self.dsn:
            return self.dsn
        if self.user:
            return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database_name}"
        return f"postgresql://{self.host}:{self.port}/{self.database_name}"

    def pool_max_size(self, num_threads: int) -> int:
        """Pool ceiling: explicit setting, else one connection per worker plus headroom."""
        if self.async_pool_max_size is not None:
            return self.async_pool_max_size
        return max(num_threads + 2, 5)

    def redacted(self) -> str:
        return self.get_connection_string().split('@')[-1]


class IngestionConfig(BaseModel):
    """Immutable per-run ingestion settings shared by every worker."""

    model_config = ConfigDict(frozen=True)

    schema_text: str = Field(description="Table declaration, e.g. 'public.t(a int, b text)'")
    delimiter: str = Field(default=",", description="Field delimiter")
    delimiter_in_quotes: bool = Field(default=False, description="Delimiter may appear inside quoted fields")
    null_string: Optional[str] = Field(default=None, description="Token that stands for NULL")
    date_format: Optional[str] = Field(default=None, description="strptime format for date/timestamp columns")
    bool_style: BoolStyle = Field(default=BoolStyle.TRUE_FALSE, description="Boolean encoding")
    decimal_delimiter: Literal[".", ","] = Field(default=".", description="Decimal separator of numeric fields")

    skip_rows: int = Field(default=0, ge=0, description="Leading data lines to skip per source")
    max_rows: Optional[int] = Field(default=None, gt=0, description="Parse attempts per source (None: all)")
    max_errors: Optional[int] = Field(default=10, ge=0, description="Tolerated errors per source (None: unbounded)")
    bad_dir: Optional[Path] = Field(default=None, description="Directory for <source>.BAD files")

    num_futures: int = Field(default=1000, gt=0, description="Outstanding writes between drains")
    num_threads: int = Field(default=5, ge=1, description="Sources loaded concurrently")
    write_timeout: Optional[float] = Field(default=120.0, gt=0, description="Seconds a drain waits (None: forever)")
    count_write_failures: bool = Field(default=True, description="Write failures count toward the error budget")
    abort_scope: AbortScope = Field(default=AbortScope.SOURCE, description="Reach of an exhausted error budget")

    @field_validator('schema_text')
    @classmethod
    def validate_schema_text(cls, v):
        if not v or not v.strip():
            raise ValueError('Must provide a schema')
        return v.strip()

    @field_validator('delimiter', mode='before')
    @classmethod
    def validate_delimiter(cls, v):
        if v == "\\t":
            v = "\t"
        if not isinstance(v, str) or len(v) != 1:
            raise ValueError('Delimiter must be a single character')
        if v in ('\r', '\n'):
            raise ValueError('Delimiter cannot be a line terminator')
        return v

    @field_validator('max_rows', 'max_errors', mode='before')
    @classmethod
    def map_unbounded(cls, v):
        if v in (UNBOUNDED, str(UNBOUNDED)):
            return None
        return v

    @field_validator('bad_dir')
    @classmethod
    def validate_bad_dir(cls, v):
        if v is not None and not v.is_dir():
            raise ValueError(f'Bad-row directory does not exist: {v}')
        return v

    @model_validator(mode='after')
    def validate_null_string(self):
        if self.null_string is not None and self.delimiter in self.null_string:
            raise ValueError('Null string cannot contain the delimiter')
        return self


class AppConfig(BaseModel):
    """Top-level application configuration."""

    environment: Environment = Field(default=Environment.DEVELOPMENT)
    log_dir: Optional[str] = Field(default=None, description="Root directory for JSON log files")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ingestion: IngestionConfig
