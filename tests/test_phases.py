"""
Tests for the phases — satisfaction checks, apply sequences, prompts.

Every phase runs against MockExecutor + MemoryFileWriter; assertions
are on the recorded argv and the in-memory files.
"""

import textwrap

import pytest

from vps_setup.adapters.mock import MemoryFileWriter, MockExecutor
from vps_setup.core.context import ExecutionContext
from vps_setup.core.distro import PackageManager
from vps_setup.core.engine.runner import PhaseRunner
from vps_setup.core.services.phases import PHASES, AgentInput, InteractiveInput, PhaseKey, Session, get_phase
from vps_setup.core.services.phases.fail2ban import JAIL, JAIL_CONTENT
from vps_setup.core.services.phases.nginx import CERT_PATH, PROXY_CONF, render_proxy_conf
from vps_setup.core.services.phases.ssh import DROPIN
from vps_setup.core.services.phases.sudo import CLOUD_SUDOERS
from vps_setup.core.services.phases.ufw import parse_ufw_status
from vps_setup.core.services.phases.updates import AUTO_UPGRADES, auto_upgrades_content

UFW_ACTIVE = textwrap.dedent("""\
    Status: active
    Logging: on (low)
    Default: deny (incoming), allow (outgoing), deny (routed)
    New profiles: skip

    To                         Action      From
    --                         ------      ----
    22                         ALLOW IN    Anywhere
    80                         ALLOW IN    Anywhere
    443                        ALLOW IN    Anywhere
    3000                       DENY IN     Anywhere
    22 (v6)                    ALLOW IN    Anywhere (v6)
""")

INSTALLED = "install ok installed"


def run_agent(session, key, **values):
    return PhaseRunner(session).run(get_phase(key), AgentInput(values))


def run_interactive(session, key, prompter, force=False):
    return PhaseRunner(session).run(get_phase(key), InteractiveInput(prompter, force=force))


def no_side_effects(session):
    return session.executor.mutations == [] and session.files.mutation_count == 0


# ── Registry ─────────────────────────────────────────────────────


class TestRegistry:
    def test_order_and_letters(self):
        assert [p.letter for p in PHASES] == list("abcdefghi")
        assert [p.key for p in PHASES] == list(PhaseKey)

    def test_lookup_by_key_letter_and_enum(self):
        assert get_phase("firewall") is get_phase("B") is get_phase(PhaseKey.FIREWALL)

    def test_unknown(self):
        with pytest.raises(KeyError):
            get_phase("selinux")

    def test_flags_map_to_option_fields(self):
        for phase in PHASES:
            for flag in phase.flags:
                assert flag.field in phase.options_model.model_fields, (phase.key, flag.name)


# ── UFW status parsing ───────────────────────────────────────────


class TestUfwStatus:
    def test_parse_active(self):
        status = parse_ufw_status(UFW_ACTIVE)
        assert status.active
        assert status.logging == "low"
        assert status.default_incoming == "deny"
        assert status.allow == {"22", "80", "443"}
        assert status.deny == {"3000"}

    def test_parse_inactive(self):
        status = parse_ufw_status("Status: inactive\n")
        assert not status.active
        assert status.allow == set()

    def test_logging_off(self):
        assert parse_ufw_status("Status: active\nLogging: off\n").logging == "off"


# ── Firewall ─────────────────────────────────────────────────────


class TestFirewall:
    def test_skipped_when_rules_already_active(self, session):
        session.executor.set_response(["ufw", "status"], stdout=UFW_ACTIVE)
        outcome = run_agent(session, "firewall", allow_ports="22,80,443")
        assert outcome.status == "skipped"
        assert no_side_effects(session)

    def test_extra_rules_from_other_phases_keep_it_satisfied(self, session):
        status = UFW_ACTIVE + "60000:61000/udp            ALLOW IN    Anywhere\n"
        session.executor.set_response(["ufw", "status"], stdout=status)
        assert run_agent(session, "firewall", allow_ports="22 80 443").skipped

    def test_exposed_deny_port_is_unsatisfied(self, session):
        session.executor.set_response(["ufw", "status"], stdout=UFW_ACTIVE)
        outcome = run_agent(session, "firewall", allow_ports="22", deny_ports="80")
        assert outcome.status == "applied"

    def test_apply_sequence(self, session):
        session.files.files["/etc/default/ufw"] = "IPV6=no\nDEFAULT_INPUT_POLICY=\"DROP\"\n"
        outcome = run_agent(session, "firewall")
        assert outcome.status == "applied", outcome.message
        muts = session.executor.mutations
        assert ["sudo", "apt-get", "update", "-qq"] in muts
        assert ["sudo", "apt-get", "install", "-y", "ufw"] in muts
        assert ["sudo", "ufw", "default", "deny", "incoming"] in muts
        for port in ("22/tcp", "80/tcp", "443/tcp"):
            assert ["sudo", "ufw", "allow", port] in muts
        for port in ("3000", "8080"):
            assert ["sudo", "ufw", "deny", port] in muts
        assert muts[-1] == ["sudo", "ufw", "--force", "enable"]
        assert session.files.files["/etc/default/ufw"].startswith("IPV6=yes\n")

    def test_skips_install_when_present(self, session):
        session.executor.set_response(["dpkg-query"], stdout=INSTALLED)
        run_agent(session, "firewall")
        assert not any("apt-get" in m for m in session.executor.mutations)

    def test_no_enable_warns(self, session):
        outcome = run_agent(session, "firewall", enable=False)
        assert ["sudo", "ufw", "--force", "enable"] not in session.executor.mutations
        assert any("not enabled" in n for n in outcome.notes)

    def test_ssh_port_missing_warns(self, session):
        outcome = run_agent(session, "firewall", allow_ports="443/tcp")
        assert any("22/tcp" in n for n in outcome.notes)

    def test_invalid_port_touches_nothing(self, session):
        outcome = run_agent(session, "firewall", allow_ports="22,ssh")
        assert outcome.failed
        assert outcome.error_kind == "validation"
        assert session.executor.calls == []

    def test_interactive_extra_deny(self, session, scripted):
        prompter = scripted(["y", "9000 9001", "y"])
        outcome = run_interactive(session, "firewall", prompter)
        assert outcome.status == "applied"
        assert ["sudo", "ufw", "deny", "9000"] in session.executor.mutations
        assert ["sudo", "ufw", "deny", "9001"] in session.executor.mutations

    def test_interactive_decline(self, session, scripted):
        outcome = run_interactive(session, "firewall", scripted(["n"]))
        assert outcome.skipped
        assert no_side_effects(session)


# ── Prerequisites ────────────────────────────────────────────────


class TestPrerequisites:
    def test_creates_user_on_apt(self, session, ssh_key):
        session.executor.set_response(["id", "--", "deploy"], returncode=1)
        outcome = run_agent(session, "prerequisites", user="deploy", ssh_key=ssh_key)
        assert outcome.status == "applied", outcome.message

        muts = session.executor.mutations
        assert muts[0] == ["sudo", "adduser", "--disabled-password", "--gecos", "", "deploy"]
        assert ["sudo", "usermod", "-aG", "sudo", "deploy"] in muts
        assert ["sudo", "chmod", "700", "/home/deploy/.ssh"] in muts
        assert ["sudo", "chown", "deploy:", "/home/deploy/.ssh"] in muts
        assert ["sudo", "chown", "deploy:", "/home/deploy/.ssh/authorized_keys"] in muts
        tee = [c for c in session.executor.calls if c.argv[1:3] == ["tee", "-a"]]
        assert tee[0].argv[-1] == "/home/deploy/.ssh/authorized_keys"
        assert tee[0].stdin == ssh_key + "\n"

    def test_creates_user_on_rhel(self, ssh_key):
        ctx = ExecutionContext(package_manager=PackageManager.DNF, admin_group="wheel", distro_id="rocky")
        session = Session(context=ctx, executor=MockExecutor(ctx), files=MemoryFileWriter())
        session.executor.set_response(["id", "--", "deploy"], returncode=1)
        run_agent(session, "prerequisites", user="deploy")
        muts = session.executor.mutations
        assert ["sudo", "useradd", "-m", "-s", "/bin/bash", "deploy"] in muts
        assert ["sudo", "passwd", "-l", "deploy"] in muts
        assert ["sudo", "usermod", "-aG", "wheel", "deploy"] in muts

    def test_satisfied_when_user_group_and_key_present(self, session, ssh_key):
        session.executor.set_response(["id", "-nG"], stdout="deploy sudo\n")
        session.files.files["/home/deploy/.ssh/authorized_keys"] = f"ssh-rsa AAAA other\n{ssh_key}\n"
        outcome = run_agent(session, "prerequisites", user="deploy", ssh_key=ssh_key)
        assert outcome.skipped
        assert no_side_effects(session)

    def test_key_not_duplicated_on_force(self, session, ssh_key):
        session.executor.set_response(["id", "-nG"], stdout="deploy sudo\n")
        session.files.files["/home/deploy/.ssh/authorized_keys"] = f"{ssh_key}\n"
        run_agent(session, "prerequisites", user="deploy", ssh_key=ssh_key, force=True)
        assert not any(m[1:3] == ["tee", "-a"] for m in session.executor.mutations)

    def test_malicious_username_rejected_before_any_command(self, session):
        outcome = run_agent(session, "prerequisites", user="bob; rm -rf /")
        assert outcome.failed
        assert outcome.error_kind == "validation"
        assert session.executor.calls == []

    def test_user_required_in_agent_mode(self, session):
        outcome = run_agent(session, "prerequisites")
        assert outcome.failed
        assert "--user is required" in outcome.message

    def test_sudo_nopasswd_rolled_back_when_visudo_fails(self, session):
        session.executor.set_failure(["visudo"], "parse error")
        outcome = run_agent(session, "prerequisites", user="deploy", sudo_nopasswd=True)
        assert outcome.failed
        assert outcome.error_kind == "execution"
        assert "/etc/sudoers.d/90-vps-setup-deploy" in session.files.removed
        assert "/etc/sudoers.d/90-vps-setup-deploy" not in session.files.files

    def test_interactive_decline_reminds(self, session, scripted):
        outcome = run_interactive(session, "prerequisites", scripted(["n"]))
        assert outcome.skipped
        assert "Verify key login" in outcome.message


# ── Updates ──────────────────────────────────────────────────────


class TestUpdates:
    def test_apt_apply(self, session):
        session.files.files["/etc/apt/apt.conf.d/50unattended-upgrades"] = '"${distro_id}:${distro_codename}-updates";\n'
        outcome = run_agent(session, "updates")
        assert outcome.status == "applied"
        assert ["sudo", "apt-get", "install", "-y", "unattended-upgrades", "apt-listchanges"] in session.executor.mutations
        assert session.files.files[AUTO_UPGRADES] == (
            'APT::Periodic::Update-Package-Lists "1";\nAPT::Periodic::Unattended-Upgrade "1";\n'
        )
        assert any("-updates" in n for n in outcome.notes)

    def test_apt_satisfied(self, session):
        session.executor.set_response(["dpkg-query"], stdout=INSTALLED)
        session.files.files[AUTO_UPGRADES] = auto_upgrades_content(True)
        assert run_agent(session, "updates").skipped

    def test_disable_writes_zeroes(self, session):
        session.files.files[AUTO_UPGRADES] = auto_upgrades_content(True)
        run_agent(session, "updates", enable=False)
        assert session.files.files[AUTO_UPGRADES] == auto_upgrades_content(False)
        assert session.executor.mutations == []

    def test_dnf_timer(self):
        ctx = ExecutionContext(package_manager=PackageManager.DNF, admin_group="wheel")
        session = Session(context=ctx, executor=MockExecutor(ctx), files=MemoryFileWriter())
        run_agent(session, "updates")
        assert ["sudo", "systemctl", "enable", "--now", "dnf-automatic-install.timer"] in session.executor.mutations

    def test_unsupported_distro_skips(self):
        ctx = ExecutionContext(package_manager=PackageManager.PACMAN, admin_group="wheel")
        session = Session(context=ctx, executor=MockExecutor(ctx), files=MemoryFileWriter())
        outcome = run_agent(session, "updates", force=True)
        assert outcome.skipped
        assert "not configured for this distro" in outcome.message
        assert no_side_effects(session)


# ── SSH ──────────────────────────────────────────────────────────


class TestSsh:
    def test_harden_without_users_fails_before_write(self, session):
        outcome = run_agent(session, "ssh", level="harden")
        assert outcome.failed
        assert outcome.error_kind == "validation"
        assert session.files.writes == []
        assert session.executor.calls == []

    def test_match_level_drop_in(self, session):
        outcome = run_agent(session, "ssh")
        assert outcome.status == "applied"
        assert session.files.files[DROPIN] == (
            "# Created by vps-setup - match current VPS\n"
            "KbdInteractiveAuthentication no\n"
            "PermitRootLogin prohibit-password\n"
        )
        assert session.files.modes[DROPIN] == "644"
        assert session.executor.mutations == []

    def test_harden_drop_in_and_idempotence(self, session):
        first = run_agent(session, "ssh", level="harden", allow_users="deploy,admin")
        assert first.status == "applied"
        content = session.files.files[DROPIN]
        assert "PasswordAuthentication no\n" in content
        assert "PermitRootLogin no\n" in content
        assert "AllowUsers deploy admin\n" in content

        writes = len(session.files.writes)
        second = run_agent(session, "ssh", level="harden", allow_users="deploy,admin")
        assert second.skipped
        assert len(session.files.writes) == writes

    def test_force_rewrites(self, session):
        run_agent(session, "ssh")
        outcome = run_agent(session, "ssh", force=True)
        assert outcome.status == "applied"
        assert outcome.forced
        assert len(session.files.writes) == 2

    def test_restart_validates_then_falls_back_to_ssh_unit(self, session):
        session.executor.set_failure(["systemctl", "restart", "sshd"], "Unit sshd.service not found.")
        outcome = run_agent(session, "ssh", restart=True)
        assert outcome.status == "applied"
        assert session.executor.mutations == [
            ["sudo", "sshd", "-t"],
            ["sudo", "systemctl", "restart", "sshd"],
            ["sudo", "systemctl", "restart", "ssh"],
        ]

    def test_sshd_config_test_failure(self, session):
        session.executor.set_failure(["sshd", "-t"], "Bad configuration option")
        outcome = run_agent(session, "ssh", restart=True)
        assert outcome.failed
        assert outcome.error_kind == "execution"
        assert "Bad configuration option" in outcome.message

    def test_interactive_requires_verification(self, session, scripted):
        prompter = scripted(["n"])
        outcome = run_interactive(session, "ssh", prompter)
        assert outcome.skipped
        assert "Verify key-only login" in outcome.message
        assert any("LOCKED OUT" in line for line in prompter.shown)
        assert session.files.writes == []

    def test_interactive_harden(self, session, scripted):
        prompter = scripted(["y", "harden", "deploy", "n"])
        outcome = run_interactive(session, "ssh", prompter)
        assert outcome.status == "applied"
        assert "AllowUsers deploy\n" in session.files.files[DROPIN]


# ── Sudo ─────────────────────────────────────────────────────────


class TestSudo:
    CONTENT = "# User rules for ubuntu\nubuntu ALL=(ALL) NOPASSWD:ALL\nroot ALL=(ALL) NOPASSWD:ALL\n"

    def test_comments_out_root_nopasswd(self, session):
        session.files.files[CLOUD_SUDOERS] = self.CONTENT
        outcome = run_agent(session, "sudo")
        assert outcome.status == "applied"
        assert session.files.files[f"{CLOUD_SUDOERS}.bak"] == self.CONTENT
        updated = session.files.files[CLOUD_SUDOERS]
        assert "# root ALL=(ALL) NOPASSWD:ALL\n" in updated
        assert "\nubuntu ALL=(ALL) NOPASSWD:ALL\n" in updated
        assert session.files.writes[0][0] == f"{CLOUD_SUDOERS}.bak"

    def test_satisfied_without_file(self, session):
        assert run_agent(session, "sudo").skipped

    def test_second_run_skipped(self, session):
        session.files.files[CLOUD_SUDOERS] = self.CONTENT
        run_agent(session, "sudo")
        assert run_agent(session, "sudo").skipped

    def test_keep_nopasswd_leaves_file(self, session):
        session.files.files[CLOUD_SUDOERS] = self.CONTENT
        assert run_agent(session, "sudo", remove_nopasswd=False).skipped
        assert session.files.files[CLOUD_SUDOERS] == self.CONTENT


# ── Nginx ────────────────────────────────────────────────────────


class TestNginx:
    def test_bad_domain_fails_without_install_or_write(self, session):
        outcome = run_agent(session, "nginx", domain="bad domain with spaces")
        assert outcome.failed
        assert outcome.error_kind == "validation"
        assert session.executor.calls == []
        assert session.files.writes == []

    def test_apply_with_backends_and_certbot_failure(self, session):
        session.executor.set_failure(["certbot"], "DNS problem: NXDOMAIN")
        outcome = run_agent(
            session, "nginx", domain="example.com", extra_domains="www.example.com", backends="127.0.0.1:3000"
        )
        assert outcome.status == "applied", outcome.message
        assert any("Certbot failed" in n for n in outcome.notes)

        muts = session.executor.mutations
        assert ["sudo", "apt-get", "install", "-y", "nginx", "certbot", "python3-certbot-nginx"] in muts
        assert ["sudo", "nginx", "-t"] in muts
        assert [
            "sudo", "certbot", "--nginx", "--non-interactive", "--agree-tos",
            "--register-unsafely-without-email", "-d", "example.com", "-d", "www.example.com",
        ] in muts
        conf = session.files.files[PROXY_CONF.format(domain="example.com")]
        assert "server 127.0.0.1:3000;" in conf
        assert "server_name example.com www.example.com;" in conf

    def test_satisfied_after_certbot_edits_config(self, session):
        session.executor.set_response(["dpkg-query"], stdout=INSTALLED)
        session.executor.set_response(["systemctl", "is-active"], stdout="active\n")
        opts = get_phase("nginx").parse_options({"domain": "example.com", "backends": "127.0.0.1:3000"})
        edited = render_proxy_conf(opts) + "    listen 443 ssl; # managed by Certbot\n"
        session.files.files[PROXY_CONF.format(domain="example.com")] = edited
        session.files.files[CERT_PATH.format(domain="example.com")] = "cert"
        outcome = run_agent(session, "nginx", domain="example.com", backends="127.0.0.1:3000")
        assert outcome.skipped
        assert no_side_effects(session)

    def test_without_certbot_skips_certbot_packages(self, session):
        run_agent(session, "nginx", domain="example.com", certbot=False)
        muts = session.executor.mutations
        assert ["sudo", "apt-get", "install", "-y", "nginx"] in muts
        assert not any("certbot" in m for m in muts)


# ── Fail2ban ─────────────────────────────────────────────────────


class TestFail2ban:
    def test_enable(self, session):
        outcome = run_agent(session, "fail2ban")
        assert outcome.status == "applied"
        assert session.files.files[JAIL] == JAIL_CONTENT
        muts = session.executor.mutations
        assert ["sudo", "systemctl", "enable", "--now", "fail2ban"] in muts
        assert muts[-1] == ["sudo", "systemctl", "restart", "fail2ban"]

    def test_satisfied(self, session):
        session.executor.set_response(["dpkg-query"], stdout=INSTALLED)
        session.executor.set_response(["systemctl", "is-active"], stdout="active\n")
        session.files.files[JAIL] = JAIL_CONTENT
        assert run_agent(session, "fail2ban").skipped

    def test_disable(self, session):
        session.executor.set_response(["systemctl", "is-active"], stdout="active\n")
        run_agent(session, "fail2ban", enable=False)
        assert session.executor.mutations == [["sudo", "systemctl", "disable", "--now", "fail2ban"]]


# ── UFW logging ──────────────────────────────────────────────────


class TestUfwLogging:
    def test_sets_level(self, session):
        session.executor.set_response(["ufw", "status"], stdout=UFW_ACTIVE)
        session.executor.set_response(["dpkg-query"], stdout=INSTALLED)
        outcome = run_agent(session, "ufw-logging")
        assert outcome.status == "applied"
        assert session.executor.mutations == [["sudo", "ufw", "logging", "medium"]]

    def test_already_at_level(self, session):
        session.executor.set_response(["ufw", "status"], stdout=UFW_ACTIVE)
        assert run_agent(session, "ufw-logging", level="low").skipped

    def test_invalid_level(self, session):
        outcome = run_agent(session, "ufw-logging", level="loud")
        assert outcome.failed
        assert session.executor.calls == []

    def test_without_ufw_skips(self, session):
        outcome = run_agent(session, "ufw-logging")
        assert outcome.skipped
        assert session.executor.mutations == []

    def test_interactive_without_ufw_asks_nothing(self, session, scripted):
        prompter = scripted([])
        outcome = run_interactive(session, "ufw-logging", prompter)
        assert outcome.skipped
        assert "firewall phase" in outcome.message
        assert prompter.asked == []
        assert session.executor.mutations == []


# ── Mosh ─────────────────────────────────────────────────────────


class TestMosh:
    def test_opens_udp_range_when_ufw_active(self, session):
        session.executor.set_response(["ufw", "status"], stdout=UFW_ACTIVE)
        run_agent(session, "mosh")
        muts = session.executor.mutations
        assert ["sudo", "apt-get", "install", "-y", "mosh"] in muts
        assert muts[-1] == ["sudo", "ufw", "allow", "60000:61000/udp"]

    def test_no_rule_when_ufw_inactive(self, session):
        run_agent(session, "mosh")
        assert not any(m[1] == "ufw" for m in session.executor.mutations)

    def test_disable_removes_rule(self, session):
        session.executor.set_response(
            ["ufw", "status"], stdout=UFW_ACTIVE + "60000:61000/udp            ALLOW IN    Anywhere\n"
        )
        run_agent(session, "mosh", enable=False)
        assert session.executor.mutations == [["sudo", "ufw", "delete", "allow", "60000:61000/udp"]]
