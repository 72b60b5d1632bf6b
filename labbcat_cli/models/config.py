"""
Pydantic model for client configuration.
Provides robust validation for all settings.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_TIMEOUT_SECONDS = 60


class ClientConfig(BaseModel):
    """A validated configuration model for a LaBB-CAT connection."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Server & credentials
    base_url: str
    username: str = ""
    password: str = Field("", repr=False)

    # Client behaviour
    verbose: bool = False
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    fragment_dir: Optional[str] = None

    # Internal field not loaded from INI file
    config_path: Optional[str] = Field(None, repr=False)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensures the URL is absolute and ends with a slash."""
        if not v:
            raise ValueError("Base URL cannot be empty.")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://, got: {v}")
        if not v.endswith("/"):
            v += "/"
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Ensures a reasonable request timeout."""
        if v < 1 or v > 600:
            raise ValueError("Timeout must be between 1 and 600 seconds.")
        return v

    @field_validator("fragment_dir")
    @classmethod
    def validate_fragment_dir(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def validate_credentials(self) -> "ClientConfig":
        """A password without a username would never be sent."""
        if self.password and not self.username:
            raise ValueError("A password was configured without a username.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
