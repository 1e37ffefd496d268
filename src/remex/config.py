"""Configuration loading and validation for remex fleets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jsonschema
import yaml

from remex.connection import DEFAULT_CONNECT_TIMEOUT
from remex.errors import ConfigIssue, ConfigurationError
from remex.logging import configure_logging
from remex.models import DEFAULT_SSH_PORT, HostConfig

if TYPE_CHECKING:
    from remex.commands import CommandRegistry
    from remex.engine import ExecutionEngine

__all__ = ["Configuration"]


@dataclass
class Configuration:
    """Parsed and validated fleet configuration from a YAML file."""

    hosts: list[HostConfig] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)  # Default command list for hosts without their own
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: Path) -> Configuration:
        """Load and validate configuration from YAML file.

        Args:
            path: Path to the fleet file

        Returns:
            Validated Configuration instance

        Raises:
            ConfigurationError: If YAML is invalid, schema validation fails,
                host ids repeat or a password_env variable is unset
        """
        try:
            with path.open() as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(
                "Configuration validation failed",
                [ConfigIssue(path=str(path), message=f"Configuration file not found: {path}")],
            ) from None
        except yaml.YAMLError as e:
            message = str(e)
            mark = getattr(e, "problem_mark", None)
            problem = getattr(e, "problem", None)
            if mark is not None and problem is not None:
                message = f"YAML syntax error at line {mark.line + 1}, column {mark.column + 1}: {problem}"
            raise ConfigurationError(
                "Configuration validation failed",
                [ConfigIssue(path=str(path), message=message)],
            ) from e

        return cls.from_dict(data if data is not None else {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Configuration:
        """Validate an already-parsed document and build the configuration."""
        issues: list[ConfigIssue] = []

        validator = jsonschema.Draft7Validator(_load_schema())
        for error in validator.iter_errors(data):
            path_parts = list(error.absolute_path)
            path_str = ".".join(str(p) for p in path_parts) if path_parts else "root"
            issues.append(ConfigIssue(path=path_str, message=error.message))

        if issues:
            raise ConfigurationError("Configuration validation failed", issues)

        default_commands = list(data.get("commands", []))
        hosts: list[HostConfig] = []
        seen: set[str] = set()
        for index, host_data in enumerate(data["hosts"]):
            host_id = host_data["id"]
            if host_id in seen:
                issues.append(ConfigIssue(path=f"hosts.{index}.id", message=f"Duplicate host id: {host_id}"))
                continue
            seen.add(host_id)

            password = host_data.get("password", "")
            env_name = host_data.get("password_env")
            if env_name is not None:
                if env_name not in os.environ:
                    issues.append(
                        ConfigIssue(
                            path=f"hosts.{index}.password_env",
                            message=f"Environment variable {env_name} is not set",
                        )
                    )
                    continue
                password = os.environ[env_name]

            hosts.append(
                HostConfig(
                    id=host_id,
                    address=host_data["address"],
                    username=host_data["username"],
                    password=password,
                    port=host_data.get("port", DEFAULT_SSH_PORT),
                    auto_sudo_password=host_data.get("auto_sudo_password", False),
                    commands=tuple(host_data.get("commands", default_commands)),
                    known_hosts=host_data.get("known_hosts"),
                )
            )

        if issues:
            raise ConfigurationError("Configuration validation failed", issues)

        return cls(
            hosts=hosts,
            commands=default_commands,
            connect_timeout=float(data.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
            log_level=data.get("log_level", "INFO").upper(),
        )

    def create_engine(self, registry: CommandRegistry | None = None) -> ExecutionEngine:
        """Build an ExecutionEngine for the configured hosts."""
        from remex.engine import ExecutionEngine

        return ExecutionEngine(self.hosts, registry=registry, connect_timeout=self.connect_timeout)

    def configure_logging(self, json: bool = False) -> None:
        """Set up remex logging at the configured level."""
        configure_logging(self.log_level, json=json)


def _load_schema() -> dict[str, Any]:
    """Load the config schema from package resources."""
    schema_path = Path(__file__).parent / "schemas" / "config-schema.yaml"
    with schema_path.open() as f:
        return yaml.safe_load(f)
