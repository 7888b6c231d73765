"""Settings and target file loading for the exporter"""
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from metrics.errors import ConfigError
from metrics.models import Target


class Config(BaseSettings):
    """Process settings, read from the environment"""

    # Target definitions
    config_file: Path = Field(default=Path("config.yaml"), description="YAML file with target definitions")

    # Server settings
    metrics_port: int = Field(default=9100, ge=1, le=65535, description="Metrics server port")
    metrics_host: str = Field(default="0.0.0.0", description="Metrics server host")

    # Polling
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Ceiling for one outbound request")
    label_ttl_seconds: Optional[int] = Field(default=None, gt=0, description="Evict label combinations not seen for this long")
    skip_unresolvable_targets: bool = Field(
        default=False,
        description="Skip targets whose bearer token variable is unset instead of failing startup"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")

    # Service settings
    service_name: str = Field(default="json2prom-exporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('label_ttl_seconds', mode='before')
    @classmethod
    def empty_ttl_is_unset(cls, v):
        if v == "":
            return None
        return v


class TargetsFile(BaseModel):
    """Top-level layout of the target definitions file"""
    model_config = ConfigDict(extra="forbid")

    targets: List[Target] = Field(default_factory=list)


def load_targets(path: Path) -> List[Target]:
    """Load and validate target definitions from a YAML file.

    Raises ConfigError on unreadable files, YAML errors, schema violations
    and duplicate target names.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping with a 'targets' list")

    try:
        targets = TargetsFile.model_validate(data).targets
    except ValidationError as e:
        raise ConfigError(f"Config validation error in {path}: {e}") from e

    seen = set()
    for target in targets:
        if target.name in seen:
            raise ConfigError(f"Duplicate target name '{target.name}' in {path}")
        seen.add(target.name)

    return targets


def validate_settings(config: Config, targets: List[Target]) -> None:
    """Cross-check settings against the loaded targets"""
    if not targets:
        raise ConfigError(f"No targets defined in {config.config_file}")

    if config.label_ttl_seconds is not None:
        longest = max(target.period_seconds for target in targets)
        if config.label_ttl_seconds <= longest:
            raise ConfigError(
                f"LABEL_TTL_SECONDS ({config.label_ttl_seconds}) must be larger than the "
                f"longest periodSeconds ({longest})"
            )
