"""
Pydantic v2 configuration for the HTTP tracer.

Provides:
- TracerOptions: validated per-tracer options (sink, callback, dump settings)
- EnvironmentOverrides: ``HTTPTRACER_*`` environment switches
- resolve_options(): merge with defaults < env < explicit precedence

The sink and callback are live objects, not settings, so only the boolean
switches can be overridden from the environment.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from HTTPTracer.errors import ConfigurationError

logger = logging.getLogger(__name__)


class TracerOptions(BaseModel):
    """Options controlling how trace entries are produced and delivered."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="forbid", frozen=True, arbitrary_types_allowed=True
    )

    sink: Optional[Any] = Field(
        default=None,
        description="Destination with a write(bytes) method; None disables persistence",
    )
    on_entry: Optional[Callable[..., Any]] = Field(
        default=None, description="Callback invoked with each completed TraceEntry"
    )
    capture_bodies: bool = Field(
        default=False, description="Include request/response bodies in dumps"
    )
    split_lines: bool = Field(
        default=True, description="Store dumps as lists of lines instead of raw text"
    )
    callback_requires_sink_write: bool = Field(
        default=False,
        description="Only invoke on_entry after the sink write succeeded",
    )

    @field_validator("sink")
    @classmethod
    def validate_sink(cls, v: Any) -> Any:
        if v is not None and not callable(getattr(v, "write", None)):
            raise ValueError("sink must provide a write(bytes) method")
        return v


class EnvironmentOverrides(BaseSettings):
    capture_bodies: Optional[bool] = None
    split_lines: Optional[bool] = None
    callback_requires_sink_write: Optional[bool] = None

    model_config = SettingsConfigDict(
        env_prefix="HTTPTRACER_", case_sensitive=False, extra="ignore"
    )


def get_env_overrides() -> Dict[str, Any]:
    env = EnvironmentOverrides()
    return env.model_dump(exclude_none=True)


def resolve_options(options: Optional[TracerOptions] = None, **kwargs: Any) -> TracerOptions:
    """Build effective tracer options.

    Environment overrides apply on top of the defaults; fields explicitly set
    on ``options`` and keyword arguments win over the environment, keyword
    arguments last.

    Raises:
        ConfigurationError: If the merged values fail validation.
    """
    values: Dict[str, Any] = {}
    for key, value in get_env_overrides().items():
        values[key] = value
        logger.info("Config overridden: %s=%s", key, value, extra={"stage": "config"})
    if options is not None:
        values.update({name: getattr(options, name) for name in options.model_fields_set})
    values.update(kwargs)
    try:
        return TracerOptions(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid tracer options: {exc}") from exc
