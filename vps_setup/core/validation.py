"""
Input validation (pure).

Checks usernames, domains, port rules, backends and SSH keys before any
of them can reach a command line.  No I/O, no subprocess.

Each ``validate_*`` returns an error message, or ``None`` if valid.
"""

from __future__ import annotations

import ipaddress
import re

USERNAME_MAX = 32

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_.-]*$", re.IGNORECASE)

_LABEL = r"(?!-)[A-Za-z0-9-]{1,63}(?<!-)"
_DOMAIN_RE = re.compile(rf"^{_LABEL}(\.{_LABEL})+$")

_PORT_RULE_RE = re.compile(r"^(\d{1,5})(?::(\d{1,5}))?(?:/(tcp|udp))?$")

_SSH_KEY_RE = re.compile(
    r"^(ssh-(rsa|ed25519|dss)|ecdsa-sha2-nistp(256|384|521)|"
    r"sk-ssh-ed25519@openssh\.com|sk-ecdsa-sha2-nistp256@openssh\.com)"
    r" [A-Za-z0-9+/]+={0,3}( [^\r\n]*)?$"
)

USERNAME_FORMAT = "letters, numbers, underscore, hyphen, period; must not start with a digit or hyphen"
DOMAIN_FORMAT = "a hostname such as example.com (letters, digits, hyphens, dot-separated)"
PORT_FORMAT = "PORT, PORT/tcp|udp or LOW:HIGH/tcp|udp with ports 1-65535"
BACKEND_FORMAT = "HOST:PORT, e.g. 127.0.0.1:3000"


def split_list(value: str | None) -> list[str]:
    """Split a comma- and/or whitespace-separated string into items."""
    if not value:
        return []
    return [item for item in re.split(r"[\s,]+", value.strip()) if item]


def validate_username(name: str) -> str | None:
    if not isinstance(name, str) or not name:
        return "Must not be empty"
    if len(name) > USERNAME_MAX:
        return f"Must be at most {USERNAME_MAX} characters"
    if not _USERNAME_RE.match(name):
        return f"Invalid username {name!r}: use {USERNAME_FORMAT}"
    return None


def validate_domain(domain: str) -> str | None:
    if not isinstance(domain, str) or not domain:
        return "Must not be empty"
    if len(domain) > 253 or not _DOMAIN_RE.match(domain):
        return f"Invalid domain {domain!r}: expected {DOMAIN_FORMAT}"
    return None


def _port_in_range(value: str) -> bool:
    return 1 <= int(value) <= 65535


def validate_port_rule(rule: str) -> str | None:
    """Validate a ufw port token such as ``22``, ``443/tcp`` or ``60000:61000/udp``."""
    m = _PORT_RULE_RE.match(rule) if isinstance(rule, str) else None
    if not m:
        return f"Invalid port {rule!r}: expected {PORT_FORMAT}"
    low, high, proto = m.groups()
    if not _port_in_range(low) or (high and not _port_in_range(high)):
        return f"Port out of range in {rule!r}: expected 1-65535"
    if high:
        if int(high) <= int(low):
            return f"Invalid range {rule!r}: high port must exceed low port"
        if not proto:
            return f"Port range {rule!r} needs a protocol (/tcp or /udp)"
    return None


def validate_backend(backend: str) -> str | None:
    """Validate an upstream ``host:port`` for the reverse proxy."""
    if not isinstance(backend, str) or ":" not in backend:
        return f"Invalid backend {backend!r}: expected {BACKEND_FORMAT}"
    host, _, port = backend.rpartition(":")
    if not port.isdigit() or not _port_in_range(port):
        return f"Invalid backend port in {backend!r}: expected 1-65535"
    if host == "localhost":
        return None
    bracketed = host.startswith("[") and host.endswith("]")
    if ":" in host and not bracketed:
        return f"Invalid backend {backend!r}: IPv6 hosts must be bracketed, e.g. [::1]:3000"
    try:
        ipaddress.ip_address(host[1:-1] if bracketed else host)
        return None
    except ValueError:
        pass
    if validate_domain(host) is not None:
        return f"Invalid backend host in {backend!r}: expected {BACKEND_FORMAT}"
    return None


def validate_ssh_public_key(key: str) -> str | None:
    if not isinstance(key, str) or not key.strip():
        return "Must not be empty"
    if not _SSH_KEY_RE.match(key.strip()):
        return "Not an OpenSSH public key (expected e.g. 'ssh-ed25519 AAAA... comment')"
    return None
