"""Tests for hostkit.host.system"""
from unittest import mock

import pytest

from hostkit.host import system
from hostkit.host.system import (Shell, CommandFailed, OSNotDetected,
                                 UnsupportedOS, read_os_release, detect_os,
                                 os_family, target_user)

from .testdata import (UBUNTU_OS_RELEASE, ALPINE_OS_RELEASE,
                       write_os_release)


def test_read_os_release(tmp_path):
    path = write_os_release(tmp_path, "# comment\n\n" + UBUNTU_OS_RELEASE)
    release = read_os_release(path)

    assert release["ID"] == "ubuntu"
    assert release["VERSION_CODENAME"] == "jammy"
    assert release["PRETTY_NAME"] == "Ubuntu 22.04.4 LTS"
    assert release["VERSION"] == "22.04.4 LTS (Jammy Jellyfish)"
    assert "# comment" not in release


def test_read_os_release_unbalanced_quotes(tmp_path):
    path = write_os_release(tmp_path, 'ID=alpine\nNAME="Alpine\n')
    assert read_os_release(path) == {"ID": "alpine", "NAME": "Alpine"}


def test_read_os_release_missing(tmp_path):
    assert read_os_release(str(tmp_path / "nope")) is None


def test_detect_os(tmp_path):
    os_id, release = detect_os(write_os_release(tmp_path, ALPINE_OS_RELEASE))
    assert os_id == "alpine"
    assert release["VERSION_ID"] == "3.19.1"

    with pytest.raises(OSNotDetected):
        detect_os(str(tmp_path / "nope"))


def test_os_family():
    assert os_family("ubuntu") == "debian"
    assert os_family("debian") == "debian"
    assert os_family("alpine") == "alpine"
    for os_id in ["centos", "rhel", "fedora", "amzn"]:
        assert os_family(os_id) == "rhel"
    assert os_family("arch") is None
    assert os_family("") is None


def test_target_user():
    assert target_user({"SUDO_USER": "alice"}) == "alice"

    with mock.patch("hostkit.host.system.getpass.getuser",
                    return_value="bob"):
        assert target_user({"SUDO_USER": "root"}) == "bob"
        assert target_user({}) == "bob"


def test_user_and_group_exists():
    assert system.user_exists("root")
    assert system.group_exists("root")
    assert not system.user_exists("no-such-user-hostkit")
    assert not system.group_exists("no-such-group-hostkit")


def test_sudo_prefix():
    assert Shell(uid=0).sudo == []
    assert Shell(uid=1000).sudo == ["sudo"]
    assert Shell(uid=0).is_root
    assert not Shell(uid=1000).is_root


def test_argv():
    root, user = Shell(uid=0), Shell(uid=1000)

    assert root.argv(["apt-get", "update"], sudo=True) == ["apt-get", "update"]
    assert user.argv(["apt-get", "update"], sudo=True) == \
        ["sudo", "apt-get", "update"]
    assert user.argv(["id"]) == ["id"]

    assert user.argv(["apt-get", "install", "-y", "openssh-client"],
                     sudo=True, env={"DEBIAN_FRONTEND": "noninteractive"}) == \
        ["sudo", "env", "DEBIAN_FRONTEND=noninteractive", "apt-get",
         "install", "-y", "openssh-client"]


def test_argv_as_other_user():
    shell = Shell(uid=0)
    cmd = ["ssh-keygen", "-t", "ed25519", "-N", ""]

    with mock.patch("hostkit.host.system.shutil.which",
                    return_value="/usr/bin/sudo"):
        assert shell.argv(cmd, user="deploy") == \
            ["sudo", "-u", "deploy"] + cmd

    with mock.patch("hostkit.host.system.shutil.which", return_value=None):
        assert shell.argv(cmd, user="deploy") == \
            ["su", "deploy", "-s", "/bin/sh", "-c",
             "ssh-keygen -t ed25519 -N ''"]


def test_run():
    shell = Shell(uid=0)

    assert shell.run(["true"]).returncode == 0
    assert shell.output(["echo", "hello"]) == "hello"
    assert shell.output(["cat"], input="from stdin\n") == "from stdin"


def test_run_fails():
    shell = Shell(uid=0)

    with pytest.raises(CommandFailed) as err:
        shell.run(["false"])
    assert err.value.returncode == 1
    assert err.value.cmd == ["false"]

    assert shell.run(["false"], check=False).returncode == 1


def test_run_command_not_found():
    shell = Shell(uid=0)

    with pytest.raises(CommandFailed) as err:
        shell.run(["hostkit-no-such-binary"])
    assert err.value.returncode == 127
    assert "command not found" in str(err.value)

    proc = shell.run(["hostkit-no-such-binary"], check=False)
    assert proc.returncode == 127


def test_best_effort():
    shell = Shell(uid=0)

    assert shell.best_effort(["true"]) is True
    assert shell.best_effort(["false"]) is False
    assert shell.best_effort(["hostkit-no-such-binary"]) is False


def test_run_with_env():
    shell = Shell(uid=0)
    assert shell.output(["sh", "-c", "echo $HOSTKIT_TEST"],
                        env={"HOSTKIT_TEST": "42"}) == "42"


def test_write_and_read_file(tmp_path):
    shell = Shell(uid=0)
    path = str(tmp_path / "docker.list")

    shell.write_file(path, "deb one\n", mode="600")
    shell.write_file(path, "deb two\n", append=True)

    assert shell.read_file(path) == "deb one\ndeb two\n"
    assert oct((tmp_path / "docker.list").stat().st_mode & 0o777) == "0o600"
    assert shell.exists(path)
    assert not shell.exists(str(tmp_path / "missing"))


def test_command_failed_message():
    exc = CommandFailed(["apt-get", "install", "-y", "docker ce"], 100,
                        "E: Unable to locate package\n")
    assert str(exc) == ("'apt-get install -y 'docker ce'' failed with exit "
                        "code 100: E: Unable to locate package")
    assert isinstance(exc, RuntimeError)


def test_unsupported_os_message():
    assert str(UnsupportedOS("arch")) == "OS not supported by this script: arch"
