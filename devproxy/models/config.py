"""Configuration models"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Literal forms accepted for boolean directive options
TRUE_LITERALS = ("true", "on", "yes")
FALSE_LITERALS = ("false", "off", "no")


def parse_bool_literal(value: Any) -> bool:
    """Parse a directive boolean.

    Accepts real booleans or one of the literals true/on/yes, false/off/no.
    Anything else is rejected rather than guessed.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in TRUE_LITERALS:
            return True
        if value in FALSE_LITERALS:
            return False
    raise ValueError(f"enabled must be true or false, got: {value}")


class InterceptorConfig(BaseModel):
    """FEO interceptor directive options.

    Frozen once provisioned; unknown options are rejected.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    crd_path: str = Field(
        min_length=1, description="Path to the Frontend CRD YAML file"
    )
    enabled: bool = Field(
        default=True, description="Whether the interceptor is active"
    )
    script_timeout_secs: float = Field(
        default=5.0,
        ge=0,
        description="Upper bound on a single script invocation. 0 disables the bound.",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def validate_enabled(cls, v: Any) -> bool:
        return parse_bool_literal(v)


class ServerConfig(BaseModel):
    """Server configuration"""

    host: str = "0.0.0.0"
    port: int = 1337


class AppConfig(BaseModel):
    """Application configuration"""

    interceptor: InterceptorConfig
    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream_url: str = Field(
        default="https://console.stage.redhat.com",
        description="Base URL requests are forwarded to",
    )
    verify_ssl: bool = True
    request_timeout_secs: int = Field(
        default=60,
        gt=0,
        description="Request timeout in seconds for upstream requests",
    )
