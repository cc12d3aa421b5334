"""
Phase options — per-invocation configuration, one model per phase.

These models ARE the agent-mode flag schema targets: CLI flags and plan
files are validated into them before any command runs.  Field-level
checks delegate to ``vps_setup.core.validation``.

Required fields are only enforced when validating with the context
``{"agent": True}``; interactive mode starts from defaults and fills
them in through prompts.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from vps_setup.core.validation import (
    split_list,
    validate_backend,
    validate_domain,
    validate_port_rule,
    validate_ssh_public_key,
    validate_username,
)


def _raising(check):
    def _validator(value: str) -> str:
        error = check(value)
        if error:
            raise ValueError(error)
        return value

    return _validator


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return split_list(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return [str(value)]
    return value


def _as_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


Username = Annotated[str, AfterValidator(_raising(validate_username))]
Domain = Annotated[str, BeforeValidator(_lower), AfterValidator(_raising(validate_domain))]
PortRule = Annotated[str, BeforeValidator(_as_str), AfterValidator(_raising(validate_port_rule))]
Backend = Annotated[str, AfterValidator(_raising(validate_backend))]

DEFAULT_ALLOW_PORTS = ["22/tcp", "80/tcp", "443/tcp"]
DEFAULT_DENY_PORTS = ["3000", "8080"]

UFW_LOG_LEVELS = ("off", "low", "medium", "high", "full")
UfwLogLevel = Literal["off", "low", "medium", "high", "full"]


class PhaseOptions(BaseModel):
    """Common base: every phase accepts ``force``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Fields that must be supplied in agent mode.
    REQUIRED: ClassVar[tuple[str, ...]] = ()

    force: bool = False

    @model_validator(mode="after")
    def check_required(self, info: ValidationInfo) -> Self:
        if info.context and info.context.get("agent"):
            for name in self.REQUIRED:
                if getattr(self, name) in (None, "", [], ()):
                    raise ValueError(f"--{name.replace('_', '-')} is required")
        return self


class PrerequisitesOptions(PhaseOptions):
    REQUIRED: ClassVar[tuple[str, ...]] = ("user",)

    user: Username | None = None
    ssh_key: str | None = None
    sudo_nopasswd: bool = False

    @field_validator("ssh_key", mode="before")
    @classmethod
    def load_key(cls, value: Any) -> Any:
        """Accept a literal key, or a path to a ``.pub`` file."""
        if not isinstance(value, str) or not value.strip():
            return None if value in ("", None) else value
        value = value.strip()
        if value.startswith(("/", "~", "./", "../")) or value.endswith(".pub"):
            path = Path(value).expanduser()
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                raise ValueError(f"Cannot read SSH key file {value}: {e.strerror or e}") from e
            value = next((line.strip() for line in lines if line.strip()), "")
        error = validate_ssh_public_key(value)
        if error:
            raise ValueError(error)
        return value


class FirewallOptions(PhaseOptions):
    allow_ports: Annotated[list[PortRule], BeforeValidator(_as_list)] = Field(
        default_factory=lambda: list(DEFAULT_ALLOW_PORTS)
    )
    deny_ports: Annotated[list[PortRule], BeforeValidator(_as_list)] = Field(
        default_factory=lambda: list(DEFAULT_DENY_PORTS)
    )
    enable: bool = True

    @model_validator(mode="after")
    def no_overlap(self) -> Self:
        both = sorted(set(self.allow_ports) & set(self.deny_ports))
        if both:
            raise ValueError(f"Ports both allowed and denied: {', '.join(both)}")
        return self


class UpdatesOptions(PhaseOptions):
    enable: bool = True


class SshOptions(PhaseOptions):
    level: Literal["match", "harden"] = "match"
    allow_users: Annotated[list[Username], BeforeValidator(_as_list)] = Field(default_factory=list)
    restart: bool = False

    @model_validator(mode="after")
    def harden_needs_users(self) -> Self:
        # AllowUsers with no names would lock everyone out.
        if self.level == "harden" and not self.allow_users:
            raise ValueError("--allow-users is required when --level is harden")
        return self


class SudoOptions(PhaseOptions):
    remove_nopasswd: bool = True


class NginxOptions(PhaseOptions):
    REQUIRED: ClassVar[tuple[str, ...]] = ("domain",)

    domain: Domain | None = None
    extra_domains: Annotated[list[Domain], BeforeValidator(_as_list)] = Field(default_factory=list)
    backends: Annotated[list[Backend], BeforeValidator(_as_list)] = Field(default_factory=list)
    certbot: bool = True

    @model_validator(mode="after")
    def domain_for_extras(self) -> Self:
        if self.domain is None and (self.extra_domains or self.backends):
            raise ValueError("--domain is required with --extra-domains or --backends")
        return self

    @property
    def all_domains(self) -> list[str]:
        names: list[str] = []
        for name in [self.domain, *self.extra_domains]:
            if name and name not in names:
                names.append(name)
        return names


class Fail2banOptions(PhaseOptions):
    enable: bool = True


class UfwLoggingOptions(PhaseOptions):
    level: UfwLogLevel = "medium"


class MoshOptions(PhaseOptions):
    enable: bool = True
