"""
Pydantic models for wizard settings.

These models define the schema of the settings file that tells the wizard
where its authorities live, where local state is kept, and which resource
minimums the prerequisite gate enforces.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class WizardSettings(BaseModel):
    """Runtime settings for the setup wizard."""

    api_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the wizard backend API",
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".setupwizard",
        description="Directory for local session state and pointers",
    )
    history_limit: int = Field(default=10, ge=1, description="Versions fetched for display")

    # Prerequisite minimums
    min_cpu_cores: int = Field(default=2, ge=1)
    min_memory_gb: float = Field(default=4.0, gt=0)
    min_disk_gb: float = Field(default=100.0, ge=0)
    required_ports: List[int] = Field(default_factory=lambda: [16110, 16111, 5433, 5434])

    # Profiles whose services need a database password
    database_profiles: List[str] = Field(default_factory=lambda: ["explorer", "prod"])

    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the API base URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_url must be an http(s) URL: {v}")
        return v.rstrip("/")

    @field_validator("required_ports")
    @classmethod
    def validate_ports(cls, v: List[int]) -> List[int]:
        """Validate port numbers."""
        for port in v:
            if not 0 < port < 65536:
                raise ValueError(f"Invalid port number: {port}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def state_file(self) -> Path:
        return self.state_dir / "wizard_state.json"

    @property
    def checkpoint_pointer_file(self) -> Path:
        return self.state_dir / "last_checkpoint"

    @property
    def operations_file(self) -> Path:
        return self.state_dir / "reconfiguration_history.json"
