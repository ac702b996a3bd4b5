"""
Configuration: typed, validated settings from the command line,
environment and .env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to a .env file
  - Accept the same settings as command line flags (see main.parse_settings)
  - Validate types and constraints at startup

Architecture: Only AppSettings is a BaseSettings instance. Sub-settings are
plain BaseModel classes populated via env_nested_delimiter="__", so the env
var WEB__LISTEN_ADDRESS maps to web.listen_address and the flag
--web.listen-address to the same field.
"""

from __future__ import annotations

import json
import re
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from elb_trust_store_exporter import __version__

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration such as "60m", "1h30m", "90s" or "1.5h".

    A bare number is taken as seconds.
    """
    text = value.strip()
    if not text:
        raise ValueError("Duration must not be empty")
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    position = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"Invalid duration {value!r}, expected e.g. '60m', '1h30m' or '90s'")
    return timedelta(seconds=seconds)


class WebSettings(BaseModel):
    """HTTP listener for the metrics endpoint."""

    listen_address: str = Field(
        default=":9180",
        description="Address to listen on for web interface and telemetry.",
    )
    metrics_path: str = Field(
        default="/metrics",
        description="Path under which to expose metrics.",
    )

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, value: str) -> str:
        """Require host:port (host may be empty), with a numeric port."""
        host, sep, port = value.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Listen address must look like 'host:port' or ':port', got {value!r}")
        return value

    @field_validator("metrics_path")
    @classmethod
    def validate_metrics_path(cls, value: str) -> str:
        if not value.startswith("/") or value == "/":
            raise ValueError(f"Metrics path must start with '/' and not be the root, got {value!r}")
        return value

    @property
    def host(self) -> str:
        host = self.listen_address.rpartition(":")[0].strip("[]")
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self.listen_address.rpartition(":")[2])


class BuildSettings(BaseModel):
    """Build metadata reported by --version and the build_info metric."""

    version: str = __version__
    commit: str = "none"
    date: str = "unknown"
    built_by: str = "unknown"


class AppSettings(BaseSettings):
    """
    Root application settings: aggregates all sub-settings.

    Load order (highest priority first):
      1. Command line flags (only when parsed through main.parse_settings)
      2. Environment variables
      3. .env file
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        cli_prog_name="elb-trust-store-exporter",
        cli_kebab_case=True,
    )

    region: str | None = Field(
        default=None,
        description="AWS region to query. If not specified, the region will be auto-discovered.",
    )
    trust_store_arns: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="A comma-separated list of ELB trust store ARNs to monitor.",
    )
    query_interval: timedelta = Field(
        default=timedelta(minutes=60),
        description="Interval at which to query the AWS API.",
    )
    web: WebSettings = Field(default_factory=WebSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)

    bundle_timeout_seconds: float = Field(default=3.0, gt=0)
    cycle_timeout_seconds: float = Field(default=60.0, gt=0)
    run_on_startup: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    @field_validator("region", mode="before")
    @classmethod
    def empty_region_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("trust_store_arns", mode="before")
    @classmethod
    def split_arns(cls, value: Any) -> Any:
        """Accept "arn1,arn2", a JSON list or a list, each entry possibly comma-separated."""
        if value is None:
            return []
        if isinstance(value, str) and value.lstrip().startswith("["):
            value = json.loads(value)
        items = [value] if isinstance(value, str) else list(value)
        return [arn.strip() for item in items for arn in str(item).split(",") if arn.strip()]

    @field_validator("query_interval", mode="before")
    @classmethod
    def parse_query_interval(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_duration(value)
        return value

    @field_validator("query_interval")
    @classmethod
    def require_positive_interval(cls, value: timedelta) -> timedelta:
        if value.total_seconds() <= 0:
            raise ValueError("Query interval must be positive")
        return value

    @property
    def interval_seconds(self) -> float:
        return self.query_interval.total_seconds()
