"""
Tests for distro detection — os-release parsing and family mapping.
"""

from pathlib import Path

from vps_setup.core.distro import PackageManager, detect_distro, get_distro_info, read_os_release


def _which(*present: str):
    return lambda binary: f"/usr/bin/{binary}" if binary in present else None


class TestReadOsRelease:
    def test_parses_quoted_and_bare_values(self, tmp_path: Path):
        path = tmp_path / "os-release"
        path.write_text('NAME="Ubuntu"\nID=ubuntu\nID_LIKE=debian\nVERSION_ID=\'24.04\'\n# comment\n')
        data = read_os_release(path)
        assert data["NAME"] == "Ubuntu"
        assert data["ID"] == "ubuntu"
        assert data["ID_LIKE"] == "debian"
        assert data["VERSION_ID"] == "24.04"

    def test_missing_file_is_empty(self, tmp_path: Path):
        assert read_os_release(tmp_path / "nope") == {}

    def test_env_override(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "os-release"
        path.write_text("ID=fedora\n")
        monkeypatch.setenv("OS_RELEASE_PATH", str(path))
        assert read_os_release()["ID"] == "fedora"

    def test_ignores_malformed_lines(self, tmp_path: Path):
        path = tmp_path / "os-release"
        path.write_text("lowercase=nope\nID=debian\n=broken\n")
        assert read_os_release(path) == {"ID": "debian"}


class TestDetectDistro:
    def test_ubuntu_uses_apt_and_sudo(self):
        info = detect_distro({"ID": "ubuntu", "ID_LIKE": "debian"}, which=_which("apt-get"))
        assert info.package_manager is PackageManager.APT
        assert info.admin_group == "sudo"
        assert info.supported

    def test_fedora_prefers_dnf(self):
        info = detect_distro({"ID": "fedora"}, which=_which("dnf", "yum"))
        assert info.package_manager is PackageManager.DNF
        assert info.admin_group == "wheel"

    def test_centos_falls_back_to_yum(self):
        info = detect_distro({"ID": "centos"}, which=_which("yum"))
        assert info.package_manager is PackageManager.YUM

    def test_arch_and_suse(self):
        assert detect_distro({"ID": "arch"}, which=_which("pacman")).package_manager is PackageManager.PACMAN
        suse = detect_distro({"ID": "opensuse-leap"}, which=_which("zypper"))
        assert suse.package_manager is PackageManager.ZYPPER
        assert suse.admin_group == "wheel"

    def test_id_like_fallback(self):
        info = detect_distro({"ID": "elementary", "ID_LIKE": "ubuntu debian"}, which=_which("apt-get"))
        assert info.family == "debian"
        assert info.package_manager is PackageManager.APT

    def test_exact_id_beats_id_like(self):
        info = detect_distro({"ID": "rocky", "ID_LIKE": "debian"}, which=_which("dnf", "apt-get"))
        assert info.family == "rhel"

    def test_unknown_distro(self):
        info = detect_distro({"ID": "plan9"}, which=_which("apt-get"))
        assert info.package_manager is PackageManager.NONE
        assert not info.supported
        assert info.admin_group == "sudo"

    def test_known_family_without_binary(self):
        info = detect_distro({"ID": "debian"}, which=_which())
        assert info.family == "debian"
        assert info.package_manager is PackageManager.NONE

    def test_cached_once(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "os-release"
        path.write_text("ID=plan9\n")
        monkeypatch.setenv("OS_RELEASE_PATH", str(path))
        first = get_distro_info()
        path.write_text("ID=ubuntu\n")
        assert get_distro_info() is first
