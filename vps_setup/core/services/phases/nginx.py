"""
Phase F — Nginx reverse proxy and Let's Encrypt certificates.

Target state: nginx installed and active; when backends are given, a
proxy config for the domain; when certbot is requested, a live
certificate for the primary domain.

certbot --nginx edits the proxy config in place, so the config check
looks for the directives this phase owns rather than exact content.
"""

from __future__ import annotations

import logging
import re

from vps_setup.core.models.options import NginxOptions
from vps_setup.core.services.packages import all_installed, packages_for, pkg_install, pkg_update, service_state
from vps_setup.core.services.phases.base import Flag, Phase, PhaseKey, Session
from vps_setup.core.services.phases.inputs import Prompter
from vps_setup.core.validation import split_list

logger = logging.getLogger(__name__)

PROXY_CONF = "/etc/nginx/conf.d/vps-setup-{domain}.conf"
CERT_PATH = "/etc/letsencrypt/live/{domain}/fullchain.pem"

_UPSTREAM_UNSAFE = re.compile(r"[^a-z0-9_]")


def upstream_name(domain: str) -> str:
    return "vps_setup_" + _UPSTREAM_UNSAFE.sub("_", domain.lower())


def owned_directives(options: NginxOptions) -> list[str]:
    """Lines that must survive in the proxy config for it to be current."""
    return [
        f"server_name {' '.join(options.all_domains)};",
        *(f"server {backend};" for backend in options.backends),
        f"proxy_pass http://{upstream_name(options.domain or '')};",
    ]


def render_proxy_conf(options: NginxOptions) -> str:
    upstream = upstream_name(options.domain or "")
    servers = "".join(f"    server {backend};\n" for backend in options.backends)
    return (
        f"# Created by vps-setup - reverse proxy for {options.domain}\n"
        f"upstream {upstream} {{\n"
        f"{servers}"
        "}\n"
        "\n"
        "server {\n"
        "    listen 80;\n"
        "    listen [::]:80;\n"
        f"    server_name {' '.join(options.all_domains)};\n"
        "\n"
        "    location / {\n"
        f"        proxy_pass http://{upstream};\n"
        "        proxy_http_version 1.1;\n"
        "        proxy_set_header Host $host;\n"
        "        proxy_set_header X-Real-IP $remote_addr;\n"
        "        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
        "        proxy_set_header X-Forwarded-Proto $scheme;\n"
        "        proxy_set_header Upgrade $http_upgrade;\n"
        '        proxy_set_header Connection "upgrade";\n'
        "    }\n"
        "}\n"
    )


def config_current(content: str | None, options: NginxOptions) -> bool:
    if content is None:
        return False
    lines = {line.strip() for line in content.splitlines()}
    return all(directive in lines for directive in owned_directives(options))


class NginxPhase(Phase):
    key = PhaseKey.NGINX
    letter = "f"
    label = "Nginx + TLS (optional)"
    options_model = NginxOptions
    flags = (
        Flag("domain", "domain", "Primary domain (required)."),
        Flag("extra-domains", "extra_domains", "Additional names on the certificate.", kind="list"),
        Flag("backends", "backends", "HOST:PORT upstreams to reverse-proxy.", kind="list"),
        Flag("certbot", "certbot", "Obtain a Let's Encrypt certificate.", kind="switch"),
    )

    def _packages(self, session: Session, options: NginxOptions) -> list[str]:
        pkgs = packages_for(session.context.package_manager, "nginx", ["nginx", "certbot"])
        return pkgs if options.certbot else [p for p in pkgs if "certbot" not in p]

    def satisfied(self, session: Session, options: NginxOptions) -> bool:
        ex = session.executor
        if not all_installed(ex, self._packages(session, options)):
            return False
        if service_state(ex, "nginx") != "active":
            return False
        domain = options.domain
        if options.backends and domain:
            if not config_current(session.files.read_text(PROXY_CONF.format(domain=domain)), options):
                return False
        if options.certbot:
            return bool(domain) and session.files.exists(CERT_PATH.format(domain=domain))
        return True

    def prompt(self, prompter: Prompter, session: Session, options: NginxOptions) -> NginxOptions:
        prompter.show("Will: install nginx + certbot, optionally proxy to backends, obtain a Let's Encrypt cert.\n")
        prompter.confirm("Install Nginx and Certbot?", "n")
        names = split_list(
            prompter.text(
                "Domain name(s) for TLS, comma-separated (e.g. example.com,www.example.com)",
                default=" ".join(options.all_domains),
            )
        )
        if not names:
            return self.revise(options, domain=None, extra_domains=[], backends=[])
        backends = split_list(
            prompter.text(
                "Backends to proxy (HOST:PORT, comma-separated), Enter for none",
                default=" ".join(options.backends),
            )
        )
        return self.revise(options, domain=names[0], extra_domains=names[1:], backends=backends)

    def apply(self, session: Session, options: NginxOptions) -> str:
        ex = session.executor
        pkg_update(ex)
        pkg_install(ex, self._packages(session, options))

        domain = options.domain
        if domain and options.backends:
            path = PROXY_CONF.format(domain=domain)
            if options.force or not config_current(session.files.read_text(path), options):
                session.files.write_protected_file(path, render_proxy_conf(options))
                session.files.set_mode(path, "644")
                session.ok(f"Wrote {path}")

        ex.run_root(["nginx", "-t"], capture=True)
        ex.run_root(["systemctl", "enable", "--now", "nginx"])
        ex.run_root(["systemctl", "reload", "nginx"])

        if not domain:
            session.warn("No domain. Run later: sudo certbot --nginx -d yourdomain.com")
            return "Nginx installed and running."
        if options.certbot:
            self._certbot(session, options)
        session.warn("Add security headers to your HTTPS server block.")
        return f"Nginx serving {', '.join(options.all_domains)}."

    def _certbot(self, session: Session, options: NginxOptions) -> None:
        args = [arg for name in options.all_domains for arg in ("-d", name)]
        r = session.executor.run_root(
            ["certbot", "--nginx", "--non-interactive", "--agree-tos", "--register-unsafely-without-email", *args],
            capture=True,
            allow_fail=True,
        )
        if r.ok:
            session.ok("Certbot succeeded.")
        else:
            logger.info("certbot failed: %s", r.stderr.strip())
            session.warn(
                "Certbot failed (e.g. DNS not pointing here). "
                f"Run manually: sudo certbot --nginx -d {options.domain}"
            )
