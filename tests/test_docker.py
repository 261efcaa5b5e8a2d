"""
Test hostkit.provision.docker
"""
from unittest import mock

import pytest

from hostkit.cli import Prompter
from hostkit.host.system import OSNotDetected, UnsupportedOS
from hostkit.provision.docker import (DockerInstaller, apt_source_line,
                                      APT_PACKAGES, APT_PREREQUISITES,
                                      DOCKER_APT_LIST, DOCKER_KEYRING)

from .testdata import (FakeShell, UBUNTU_OS_RELEASE,
                       DEBIAN_OS_RELEASE_NO_CODENAME, ALPINE_OS_RELEASE,
                       ARCH_OS_RELEASE, GPG_KEY, write_os_release)


@pytest.fixture
def fetch():
    return mock.MagicMock(return_value=GPG_KEY)


def get_installer(shell, os_release, fetch, add_user=False):
    prompter = Prompter({'add-user-to-group': add_user})
    return DockerInstaller(shell, prompter, os_release=os_release,
                           fetch=fetch, environ={"SUDO_USER": "alice"})


def test_apt_source_line():
    assert apt_source_line("ubuntu", "amd64", "jammy") == (
        "deb [arch=amd64 signed-by=/usr/share/keyrings/"
        "docker-archive-keyring.gpg] https://download.docker.com/linux/"
        "ubuntu jammy stable\n")


def test_target_user_from_sudo(tmp_path, fetch):
    installer = get_installer(FakeShell(), "", fetch)
    assert installer.user == "alice"

    prompter = Prompter({'user': 'bob'})
    installer = DockerInstaller(FakeShell(), prompter,
                                environ={"SUDO_USER": "alice"})
    assert installer.user == "bob"


def test_install_ubuntu(tmp_path, fetch):
    shell = FakeShell(uid=1000,
                      outputs={("dpkg", "--print-architecture"): "arm64\n"})
    installer = get_installer(
        shell, write_os_release(tmp_path, UBUNTU_OS_RELEASE), fetch)

    installer.run()

    fetch.assert_called_once_with("https://download.docker.com/linux/ubuntu/gpg")
    assert shell.commands[:2] == [["apt-get", "update"],
                                  ["apt-get", "install", "-y"] +
                                  APT_PREREQUISITES]
    assert ["apt-get", "install", "-y"] + APT_PACKAGES in shell.commands
    assert shell.commands.count(["apt-get", "update"]) == 2

    gpg = shell.call_for("gpg")
    assert gpg['input'] == GPG_KEY
    assert gpg['argv'][0] == "sudo"
    assert gpg['cmd'][-2:] == ["-o", DOCKER_KEYRING]

    assert shell.files[DOCKER_APT_LIST] == apt_source_line("ubuntu", "arm64",
                                                           "jammy")
    assert not shell.called("lsb_release")
    assert shell.called("systemctl", "enable", "--now", "docker")
    # user was not added
    assert not shell.called("usermod")


def test_install_debian_without_codename(tmp_path, fetch):
    shell = FakeShell(outputs={("dpkg", "--print-architecture"): "amd64",
                               ("lsb_release", "-cs"): "bookworm\n"})
    installer = get_installer(
        shell, write_os_release(tmp_path, DEBIAN_OS_RELEASE_NO_CODENAME),
        fetch)

    installer.run()

    assert shell.files[DOCKER_APT_LIST] == apt_source_line("debian", "amd64",
                                                           "bookworm")


def test_systemctl_failure_is_ignored(tmp_path, fetch):
    shell = FakeShell(failing=[("systemctl",)])
    installer = get_installer(
        shell, write_os_release(tmp_path, UBUNTU_OS_RELEASE), fetch)

    installer.run()

    assert shell.called("docker", "--version")


def test_install_alpine(tmp_path, fetch):
    shell = FakeShell(binaries=["rc-update"])
    installer = get_installer(
        shell, write_os_release(tmp_path, ALPINE_OS_RELEASE), fetch)

    installer.run()

    assert shell.commands[:4] == [
        ["apk", "update"],
        ["apk", "add", "--no-cache", "docker", "docker-cli-compose"],
        ["rc-update", "add", "docker", "boot"],
        ["service", "docker", "start"]]
    fetch.assert_not_called()


def test_install_alpine_without_openrc(tmp_path, fetch):
    shell = FakeShell(failing=[("service",)])
    installer = get_installer(
        shell, write_os_release(tmp_path, ALPINE_OS_RELEASE), fetch)

    installer.run()

    assert not shell.called("rc-update")


def test_unsupported_os(tmp_path, fetch):
    shell = FakeShell()
    installer = get_installer(
        shell, write_os_release(tmp_path, ARCH_OS_RELEASE), fetch)

    with pytest.raises(UnsupportedOS) as err:
        installer.run()

    assert err.value.os_id == "arch"
    assert shell.commands == []


def test_os_not_detected(tmp_path, fetch):
    installer = get_installer(FakeShell(), str(tmp_path / "missing"), fetch)

    with pytest.raises(OSNotDetected):
        installer.run()


def test_add_user_to_existing_group(tmp_path, fetch):
    shell = FakeShell()
    installer = get_installer(
        shell, write_os_release(tmp_path, ALPINE_OS_RELEASE), fetch,
        add_user=True)

    with mock.patch("hostkit.provision.docker.group_exists",
                    return_value=True):
        installer.run()

    assert not shell.called("groupadd")
    assert shell.called("usermod", "-aG", "docker", "alice")


def test_add_user_creates_group(fetch):
    shell = FakeShell()
    installer = get_installer(shell, "", fetch, add_user=True)

    with mock.patch("hostkit.provision.docker.group_exists",
                    return_value=False):
        assert installer.add_user_to_group("alice")

    assert shell.commands == [["groupadd", "docker"],
                              ["usermod", "-aG", "docker", "alice"]]


def test_add_user_falls_back_to_addgroup(fetch):
    shell = FakeShell(binaries=["addgroup"], failing=[("usermod",)])
    installer = get_installer(shell, "", fetch)

    with mock.patch("hostkit.provision.docker.group_exists",
                    return_value=True):
        assert installer.add_user_to_group("alice")

    assert shell.called("addgroup", "alice", "docker")


def test_add_user_impossible(fetch):
    shell = FakeShell(failing=[("usermod",)])
    installer = get_installer(shell, "", fetch)

    with mock.patch("hostkit.provision.docker.group_exists",
                    return_value=True):
        assert not installer.add_user_to_group("alice")

    assert not shell.called("addgroup")


def test_checks(capsys, fetch):
    shell = FakeShell(failing=[("docker", "compose")])
    installer = get_installer(shell, "", fetch)

    installer.check()

    out = capsys.readouterr().out
    assert "Checks:" in out
    assert "docker compose (plugin) not available or not installed" in out
    assert "docker not found or not running" not in out
