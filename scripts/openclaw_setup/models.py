"""
Pydantic models for OpenClaw setup parameters.

Validates operator input before any file is generated, so malformed
domains or emails never reach the compose labels or the JSON config.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Gateway port inside the container (fixed by the Dockerfile)
GATEWAY_PORT = 18789

DEFAULT_SUBDOMAIN = 'openclaw'
DEFAULT_TIMEZONE = 'UTC'

HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$'
)
LABEL_PATTERN = re.compile(r'^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$')
EMAIL_PATTERN = re.compile(r'^[^@\s"\'`]+@[^@\s"\'`]+\.[^@\s"\'`]+$')
TIMEZONE_PATTERN = re.compile(r'^[A-Za-z0-9_+\-/]+$')


class DeploymentMode(str, Enum):
    """Where the gateway is deployed."""
    LOCAL = 'local'
    VPS = 'vps'


class RunParameters(BaseModel):
    """Everything one setup run needs, collected once and passed to every writer."""
    model_config = ConfigDict(frozen=True)

    mode: DeploymentMode = DeploymentMode.LOCAL
    domain: Optional[str] = Field(None, description="Public domain (VPS mode only)")
    email: Optional[str] = Field(None, description="ACME contact email")
    timezone: str = DEFAULT_TIMEZONE
    port: int = Field(GATEWAY_PORT, ge=1, le=65535, description="Host-side published port")
    subdomain: str = DEFAULT_SUBDOMAIN
    project_dir: Path
    data_dir: Path

    @model_validator(mode='before')
    @classmethod
    def apply_defaults(cls, data):
        """Fill blank optional answers and derive the contact email from the domain."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, default in (('timezone', DEFAULT_TIMEZONE), ('subdomain', DEFAULT_SUBDOMAIN)):
            value = data.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                data[key] = default
        domain = data.get('domain')
        if isinstance(domain, str):
            domain = domain.strip().lower() or None
            data['domain'] = domain
        email = data.get('email')
        if isinstance(email, str) and not email.strip():
            email = None
            data['email'] = None
        if email is None and domain and data.get('mode') == DeploymentMode.VPS:
            data['email'] = f'admin@{domain}'
        return data

    @field_validator('domain')
    @classmethod
    def validate_domain(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not HOSTNAME_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid domain name (e.g. example.com)")
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid email address")
        return v

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        v = v.strip()
        if not TIMEZONE_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid timezone name (e.g. Asia/Bangkok)")
        return v

    @field_validator('subdomain')
    @classmethod
    def validate_subdomain(cls, v: str) -> str:
        v = v.strip().lower()
        if not LABEL_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid subdomain label")
        return v

    @model_validator(mode='after')
    def require_domain_for_vps(self) -> 'RunParameters':
        """VPS routing and TLS cannot be generated without a domain."""
        if self.mode is DeploymentMode.VPS and not self.domain:
            raise ValueError('Domain is required for VPS mode')
        return self

    @property
    def is_vps(self) -> bool:
        return self.mode is DeploymentMode.VPS

    @property
    def host(self) -> Optional[str]:
        """Public hostname the reverse proxy routes to the gateway."""
        if not self.domain:
            return None
        return f'{self.subdomain}.{self.domain}'

    @property
    def remote_url(self) -> Optional[str]:
        return f'wss://{self.host}' if self.host else None

    @property
    def webhook_url(self) -> Optional[str]:
        return f'https://{self.host}/webhook/line' if self.host else None

    @property
    def workspace_dir(self) -> Path:
        return self.data_dir / 'workspace'

    @property
    def config_path(self) -> Path:
        return self.data_dir / 'openclaw.json'

    @property
    def traefik_dir(self) -> Path:
        return self.project_dir / 'traefik'
