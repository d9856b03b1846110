"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.appointment_time import CLINIC_TIMEZONE
from .domain.exceptions import SchedulingError
from .domain.identifiers import ProfessionalId

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Professional(BaseModel):
    """Professional configuration."""
    name: str  # Used as alias
    professional_id: str
    specialty: str = ""

    @field_validator("professional_id")
    @classmethod
    def validate_professional_id(cls, value: str) -> str:
        """Ensure the id is a valid professional identifier."""
        try:
            return ProfessionalId(value).value
        except SchedulingError as exc:
            raise ValueError(str(exc)) from exc

    def display_name(self) -> str:
        """Get display name."""
        if self.specialty:
            return f"{self.name} ({self.specialty})"
        return self.name


class ClinicConfig(BaseModel):
    """Application configuration."""
    clinic_name: str = "Clinic"
    timezone: str = CLINIC_TIMEZONE
    log_level: str = "INFO"
    appointments_file: Optional[Path] = None
    professionals: List[Professional] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone name is known."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the level is one of the standard logging levels."""
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("professionals")
    @classmethod
    def validate_professionals(cls, value: List[Professional]) -> List[Professional]:
        """Ensure professional aliases and ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for professional in value:
            name_key = professional.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate professional name detected: {professional.name}")
            if professional.professional_id in seen_ids:
                raise ValueError(f"Duplicate professional id detected: {professional.professional_id}")
            seen_names.add(name_key)
            seen_ids.add(professional.professional_id)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "ClinicConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            ClinicConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.appointments_file and not config.appointments_file.is_absolute():
            config.appointments_file = config_path.parent / config.appointments_file
        return config

    def find_professional_by_name(self, name: str) -> Professional | None:
        """Find a professional by their name (alias)."""
        for professional in self.professionals:
            if professional.name.lower() == name.lower():
                return professional
        return None

    def resolve_professional(self, identifier: str) -> ProfessionalId:
        """
        Resolve a professional identifier (name/alias or id).

        Args:
            identifier: Name/alias or professional UUID

        Returns:
            ProfessionalId

        Raises:
            ValueError: If identifier cannot be resolved
        """
        professional = self.find_professional_by_name(identifier)
        if professional:
            return ProfessionalId(professional.professional_id)

        try:
            return ProfessionalId(identifier)
        except SchedulingError:
            raise ValueError(
                f"Unknown professional identifier: '{identifier}'. "
                f"Use a professional id or a configured name."
            ) from None


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
