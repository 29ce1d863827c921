# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading engine configuration.

Three groups of settings, each read from its own environment prefix:
- DB_*: the school database the repository reads from
- GRADING_*: weights and thresholds of the grading policy
- REPORTING_*: concurrency and timeouts of report fan-out

get_settings() caches one Settings instance per process; tests call
clear_settings_cache() after patching the environment.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.grading.pass_threshold)
    Decimal('3.7')
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Grading constants. The pass boundary and the early-warning boundary are
# different policies and must stay separate values.
QUIZ_WEIGHT = Decimal("0.70")
EVALUATION_WEIGHT = Decimal("0.30")
PASS_THRESHOLD = Decimal("3.7")
LOW_PERFORMANCE_THRESHOLD = Decimal("3.0")
GRADE_SCALE_MAX = Decimal("5.0")

DEFAULT_DB_PASSWORD = "grading_password"


class DatabaseSettings(BaseSettings):
    """Relational store configuration.

    The engine only reads from this database; the tables are owned and
    mutated by the administration CRUD layer.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "grading"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "school"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """asyncpg connection URL."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class GradingSettings(BaseSettings):
    """Grading policy configuration.

    Attributes:
        quiz_weight: Weight of the quiz average in the final grade.
        evaluation_weight: Weight of the evaluation grade in the final grade.
        pass_threshold: Final grades at or above this value pass.
        low_performance_threshold: Subject averages strictly below this value
            raise a low-performance alert.
        grade_scale_max: Upper bound of the grade scale.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRADING_",
        extra="ignore",
    )

    quiz_weight: Decimal = QUIZ_WEIGHT
    evaluation_weight: Decimal = EVALUATION_WEIGHT
    pass_threshold: Decimal = PASS_THRESHOLD
    low_performance_threshold: Decimal = LOW_PERFORMANCE_THRESHOLD
    grade_scale_max: Decimal = GRADE_SCALE_MAX

    @model_validator(mode="after")
    def validate_policy(self) -> Self:
        """Validate weights and thresholds.

        Raises:
            ValueError: If weights do not sum to 1 or a threshold falls
                outside the grade scale.
        """
        if self.quiz_weight < 0 or self.evaluation_weight < 0:
            raise ValueError("Grade weights must not be negative")
        if self.quiz_weight + self.evaluation_weight != Decimal("1"):
            raise ValueError(
                "quiz_weight and evaluation_weight must sum to 1, "
                f"got {self.quiz_weight} + {self.evaluation_weight}"
            )
        for name in ("pass_threshold", "low_performance_threshold"):
            value = getattr(self, name)
            if value < 0 or value > self.grade_scale_max:
                raise ValueError(
                    f"{name} must be within [0, {self.grade_scale_max}], got {value}"
                )
        return self


class ReportingSettings(BaseSettings):
    """Report fan-out configuration.

    Attributes:
        max_concurrency: Maximum concurrent branch reads per fan-out.
        branch_timeout_seconds: Timeout for a single branch, None disables it.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPORTING_",
        extra="ignore",
    )

    max_concurrency: int = Field(default=8, ge=1)
    branch_timeout_seconds: float | None = Field(default=30.0, gt=0)


class Settings(BaseSettings):
    """Root settings object.

    Attributes:
        environment: Deployment stage; development renders console logs.
        debug: Console logs and SQL echo regardless of environment.
        log_level: Level of the "src" logger tree.
        database: Database settings.
        grading: Grading policy settings.
        reporting: Report fan-out settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    grading: GradingSettings = Field(default_factory=GradingSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Reject the built-in database password in production.

        Raises:
            ValueError: If DB_PASSWORD was not set for a production run.
        """
        if self.is_production and self.database.password.get_secret_value() == DEFAULT_DB_PASSWORD:
            raise ValueError(
                "Database password must be changed from default in production. "
                "Set DB_PASSWORD environment variable."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Whether logs are rendered for a terminal."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Whether insecure defaults are rejected."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings of this process, read from the environment on first call."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached Settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
