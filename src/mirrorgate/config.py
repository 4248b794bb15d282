import os
import typing

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from mirrorgate.constants import EDGE_REQUEST_HEADERS
from mirrorgate.exceptions import ConfigurationException
from mirrorgate.utils import split_header_names


class ConfigManager:
    DEFAULT_CONFIG_PATH = ".mirrorgate/config.yml"
    DEFAULT_UPSTREAM_SCHEME = "https"
    DEFAULT_PROXY_CLIENT_TIMEOUT_SECS = 60
    DEFAULT_MAX_TEXT_BODY_BYTES = 10 * 1024 * 1024

    CONFIG_KEYS = (
        "UPSTREAM_HOST",
        "UPSTREAM_SCHEME",
        "PROXY_CLIENT_TIMEOUT_SECS",
        "MAX_TEXT_BODY_BYTES",
        "STRIP_EDGE_HEADERS",
    )

    def get(self, key, default=None):
        return os.environ.get(key, default=default)


class ProxyConfig(BaseModel):
    """Process-wide settings for the single upstream this proxy fronts."""

    model_config = ConfigDict(frozen=True)

    upstream_host: str
    upstream_scheme: str = ConfigManager.DEFAULT_UPSTREAM_SCHEME
    proxy_client_timeout_secs: float = ConfigManager.DEFAULT_PROXY_CLIENT_TIMEOUT_SECS
    max_text_body_bytes: int = ConfigManager.DEFAULT_MAX_TEXT_BODY_BYTES
    strip_edge_headers: typing.Tuple[str, ...] = ()

    @field_validator("upstream_host")
    @classmethod
    def validate_upstream_host(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("upstream_host must not be empty")
        if "://" in value or "/" in value:
            raise ValueError(f"upstream_host must be a bare hostname, got: {value}")
        if ":" in value:
            raise ValueError(f"upstream_host must not carry a port, got: {value}")
        return value

    @field_validator("upstream_scheme")
    @classmethod
    def validate_upstream_scheme(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("http", "https"):
            raise ValueError(f"Unsupported upstream_scheme: {value}")
        return value

    @field_validator("strip_edge_headers", mode="before")
    @classmethod
    def parse_strip_edge_headers(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            return split_header_names(value)
        return tuple(str(v).strip().lower() for v in value)

    @field_validator("max_text_body_bytes")
    @classmethod
    def validate_max_text_body_bytes(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_text_body_bytes must not be negative")
        return value

    @property
    def upstream_origin(self) -> str:
        return f"{self.upstream_scheme}://{self.upstream_host}"

    @property
    def stripped_request_headers(self) -> typing.FrozenSet[str]:
        return EDGE_REQUEST_HEADERS | frozenset(self.strip_edge_headers)


def _read_config_file(path: str) -> typing.Dict[str, typing.Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationException(f"Config file must contain a mapping: {path}")
    return data


def load_proxy_config(path: str | None = None, config: ConfigManager | None = None) -> ProxyConfig:
    """Build the ProxyConfig from the optional YAML file, then the environment.

    Environment variables take precedence over values from the file.
    """
    config = config or ConfigManager()
    if path is None:
        path = config.get("MIRRORGATE_CONFIG_PATH", ConfigManager.DEFAULT_CONFIG_PATH)

    values = _read_config_file(path)
    for key in ConfigManager.CONFIG_KEYS:
        env_value = config.get(key)
        if env_value is not None:
            values[key.lower()] = env_value

    if not values.get("upstream_host"):
        raise ConfigurationException("UPSTREAM_HOST is not configured.")

    try:
        return ProxyConfig(**values)
    except ValidationError as e:
        raise ConfigurationException(f"Invalid proxy configuration: {e}") from e
