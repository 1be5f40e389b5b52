"""Configuration models for copyloader."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from copyloader.exceptions import ConfigValidationError


class LoadMode(str, Enum):
    """How the loaded data relates to the existing target table.

    Values:
    * `overwrite` - Load into a staging table, then swap it in for the target.
    * `append` - Copy straight into the existing target table.
    """

    OVERWRITE = "overwrite"
    APPEND = "append"


class PartitionStrategy(str, Enum):
    """How a single partition write is made atomic.

    Values:
    * `staging_table` - Autocommit COPY into a shared staging table (overwrite mode)
      or the target (append mode). Whole-load atomicity comes from the final rename.
    * `transaction` - Each partition runs CREATE + COPY inside one transaction
      with a negotiated isolation level. Atomic per partition only.
    """

    STAGING_TABLE = "staging_table"
    TRANSACTION = "transaction"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


ISOLATION_LEVELS = ("SERIALIZABLE", "REPEATABLE READ", "READ COMMITTED", "READ UNCOMMITTED")


class PostgresConnectionConfig(BaseModel):
    """Connection parameters for a PostgreSQL or Greenplum server."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(
        default="postgres", description="Registered connection type (postgres, greenplum, ...)"
    )
    host: str = Field(description="Server hostname")
    port: int = Field(default=5432, description="Server port")
    database: str = Field(description="Database name")
    username: Optional[str] = Field(default=None, description="Login role")
    password: Optional[str] = Field(default=None, description="Login password", repr=False)
    sslmode: Optional[str] = Field(
        default=None, description="libpq sslmode (disable, require, verify-full, ...)"
    )
    connect_timeout: int = Field(default=30, description="Connection timeout in seconds")
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Extra keyword arguments passed to the driver"
    )

    @field_validator("host", "database")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class LoadOptions(BaseModel):
    """Options for one COPY load. Read-only for the whole load."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str = Field(description="Target table, optionally schema-qualified")
    connection: PostgresConnectionConfig = Field(description="Database connection")
    mode: LoadMode = Field(default=LoadMode.OVERWRITE, description="Load mode")
    delimiter: str = Field(default="\t", description="Single-character field delimiter")
    date_format: str = Field(default="%Y-%m-%d", description="strftime pattern for DATE values")
    timestamp_format: str = Field(
        default="%Y-%m-%d %H:%M:%S.%f", description="strftime pattern for TIMESTAMP values"
    )
    timezone: str = Field(
        default="UTC", description="Zone used to render epoch-microsecond timestamps"
    )
    create_table_options: str = Field(
        default="", description="SQL appended to CREATE TABLE (e.g. DISTRIBUTED BY (id))"
    )
    create_table_column_types: Optional[str] = Field(
        default=None,
        description="Column type overrides for CREATE TABLE, e.g. 'name VARCHAR(64), id BIGINT'",
    )
    partition_strategy: PartitionStrategy = Field(
        default=PartitionStrategy.STAGING_TABLE, description="Atomic partition write strategy"
    )
    isolation_levels: List[str] = Field(
        default_factory=lambda: ["SERIALIZABLE", "REPEATABLE READ", "READ COMMITTED"],
        description="Isolation levels tried in order by the transaction strategy",
    )
    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Parallel partition tasks (default: one per partition)"
    )
    max_task_attempts: int = Field(
        default=1, ge=1, description="Attempts per partition task before it is given up"
    )
    spill_dir: Optional[str] = Field(
        default=None, description="Directory for local spill files (default: system temp dir)"
    )

    @field_validator("table")
    @classmethod
    def table_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("table must not be empty")
        return v.strip()

    @field_validator("delimiter")
    @classmethod
    def single_character_delimiter(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError(f"The delimiter should be a single character, got {v!r}")
        return v

    @field_validator("isolation_levels")
    @classmethod
    def known_isolation_levels(cls, v: List[str]) -> List[str]:
        normalized = [" ".join(level.upper().replace("_", " ").split()) for level in v]
        unknown = [level for level in normalized if level not in ISOLATION_LEVELS]
        if unknown:
            raise ValueError(f"Unknown isolation levels: {unknown}")
        if not normalized:
            raise ValueError("isolation_levels must not be empty")
        return normalized

    @model_validator(mode="after")
    def transaction_strategy_appends_only(self):
        """Transactions commit straight into the target, so they cannot overwrite it."""
        if self.partition_strategy == PartitionStrategy.TRANSACTION and not self.is_append:
            raise ValueError(
                "partition_strategy='transaction' requires mode='append'; "
                "use the staging_table strategy to overwrite a table"
            )
        return self

    @property
    def is_append(self) -> bool:
        return self.mode == LoadMode.APPEND

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "LoadOptions":
        """Validate a raw config dict, raising ConfigValidationError on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(str(e), file=source) from e

    @classmethod
    def from_yaml(
        cls,
        path: str,
        env: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "LoadOptions":
        """Load options from a YAML file with ``${VAR}`` substitution.

        The options may sit at the top level or under a ``load:`` key.
        ``overrides`` replace keys before validation.
        """
        from copyloader.utils.config_loader import load_yaml_with_env

        data = load_yaml_with_env(path, env=env)
        if "load" in data and isinstance(data["load"], dict):
            data = data["load"]
        if overrides:
            data = {**data, **overrides}
        return cls.from_dict(data, source=path)
