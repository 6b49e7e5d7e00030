"""
Tests for package adapters — apt/dpkg and Flatpak against a fake runner.
"""

from pathlib import Path

import pytest

from mintsetup.adapters.packages.apt import PackageAdapter, parse_dpkg_status, simulation_changes
from mintsetup.adapters.packages.flatpak import FlatpakAdapter
from mintsetup.core.models import AdvisoryFlag, make_resource, package

DPKG = ("dpkg-query", "-W")


@pytest.fixture
def apt(runner, downloader, tmp_path: Path) -> PackageAdapter:
    sources = tmp_path / "sources.list.d"
    sources.mkdir()
    return PackageAdapter(
        runner,
        downloader=downloader,
        sources_dir=sources,
        reboot_marker=tmp_path / "reboot-required",
    )


@pytest.fixture
def flatpak(runner) -> FlatpakAdapter:
    return FlatpakAdapter(runner)


# ── Parsing ──────────────────────────────────────────────────────────


class TestParsing:
    def test_dpkg_status(self):
        output = "git install ok installed\nlibreoffice-core deinstall ok config-files\n"
        assert parse_dpkg_status(output) == {"git": "installed", "libreoffice-core": "config-files"}

    def test_dpkg_status_ignores_short_lines(self):
        assert parse_dpkg_status("garbage\n\n") == {}

    def test_simulation_changes(self):
        output = (
            "Reading package lists...\n"
            "Inst git [1:2.34.1-1] (1:2.43.0-1 Ubuntu:24.04/noble [amd64])\n"
            "Conf git (1:2.43.0-1 Ubuntu:24.04/noble [amd64])\n"
        )
        assert simulation_changes(output) == ["git"]


# ── apt: probe ───────────────────────────────────────────────────────


class TestAptProbe:
    def test_installed(self, apt, runner, make_context):
        runner.on(*DPKG, stdout="git install ok installed\n")
        assert apt.probe(make_context(package("git")))

    def test_missing(self, apt, runner, make_context):
        runner.on(*DPKG, returncode=1, stderr="dpkg-query: no packages found matching git\n")
        assert not apt.probe(make_context(package("git")))

    def test_config_files_only_counts_as_missing(self, apt, runner, make_context):
        runner.on(*DPKG, stdout="git deinstall ok config-files\n")
        assert not apt.probe(make_context(package("git")))

    def test_one_of_many_missing(self, apt, runner, make_context):
        runner.on(*DPKG, stdout="vulkan-tools install ok installed\n")
        resource = make_resource("package", "vulkan", {"names": ["vulkan-tools", "libvulkan-dev"]})
        assert not apt.probe(make_context(resource))

    def test_absent_satisfied(self, apt, runner, make_context):
        runner.on(*DPKG, stdout="libreoffice-core deinstall ok config-files\n")
        resource = make_resource("package", "lo", {"names": ["libreoffice*"], "state": "absent"})
        assert apt.probe(make_context(resource))

    def test_absent_with_purge_needs_config_gone(self, apt, runner, make_context):
        runner.on(*DPKG, stdout="libreoffice-core deinstall ok config-files\n")
        resource = make_resource("package", "lo", {"names": ["libreoffice*"], "state": "absent", "purge": True})
        assert not apt.probe(make_context(resource))

    def test_latest_pending(self, apt, runner, make_context):
        runner.on("apt-get", "-s", stdout="Inst base-files [13] (13.1 Ubuntu [amd64])\n")
        resource = make_resource("package", "upgrade", {"state": "latest"})
        assert not apt.probe(make_context(resource))
        assert runner.ran("apt-get", "-s", "dist-upgrade")

    def test_latest_up_to_date(self, apt, runner, make_context):
        runner.on("apt-get", "-s", stdout="0 upgraded, 0 newly installed, 0 to remove\n")
        resource = make_resource("package", "upgrade", {"state": "latest"})
        assert apt.probe(make_context(resource))

    def test_latest_simulation_error_defers_to_apply(self, apt, runner, make_context):
        runner.on("apt-get", "-s", returncode=100, stderr="E: Unable to locate package nope\n")
        resource = make_resource("package", "nope", {"names": ["nope"], "state": "latest"})
        assert not apt.probe(make_context(resource))


# ── apt: apply ───────────────────────────────────────────────────────


class TestAptApply:
    def test_install(self, apt, runner, make_context):
        outcome = apt.apply(make_context(package("git")))
        assert outcome.applied
        assert outcome.reason == "installed git"
        call = runner.find("apt-get", "install")
        assert call.argv == ["apt-get", "install", "-y", "git"]
        assert call.privileged
        assert call.env == {"DEBIAN_FRONTEND": "noninteractive"}
        assert not runner.ran("apt-get", "update")

    def test_install_without_recommends(self, apt, runner, make_context):
        resource = make_resource("package", "prereq", {"names": ["curl", "wget"], "recommends": False})
        apt.apply(make_context(resource))
        assert runner.find("apt-get", "install").argv == [
            "apt-get", "install", "-y", "--no-install-recommends", "curl", "wget",
        ]

    def test_remove_with_purge(self, apt, runner, make_context):
        resource = make_resource("package", "lo", {"names": ["libreoffice*"], "state": "absent", "purge": True})
        outcome = apt.apply(make_context(resource))
        assert outcome.reason == "removed libreoffice*"
        assert runner.find("apt-get", "remove").argv == ["apt-get", "remove", "-y", "--purge", "libreoffice*"]
        assert runner.ran("apt-get", "autoremove", "-y")

    def test_dist_upgrade(self, apt, runner, make_context):
        resource = make_resource("package", "upgrade", {"state": "latest", "update_index": True})
        outcome = apt.apply(make_context(resource))
        assert outcome.applied
        assert outcome.reason == "upgraded system"
        assert runner.commands == [
            ["apt-get", "update"],
            ["apt-get", "-o", "Dpkg::Options::=--force-confnew", "dist-upgrade", "-y"],
            ["apt-get", "autoremove", "-y"],
        ]

    def test_update_failure_tolerated(self, apt, runner, make_context):
        runner.on("apt-get", "update", returncode=100, stderr="E: Failed to fetch\n")
        resource = make_resource("package", "git", {"names": ["git"], "update_index": True})
        assert apt.apply(make_context(resource)).applied

    def test_update_failure_fatal_when_asked(self, apt, runner, make_context):
        runner.on("apt-get", "update", returncode=100, stderr="E: Failed to fetch\n")
        resource = make_resource("package", "upgrade", {"state": "latest", "update_index": True, "refresh_fatal": True})
        outcome = apt.apply(make_context(resource))
        assert outcome.failed
        assert outcome.error == "apt-get update failed (exit 100: E: Failed to fetch)"
        assert not runner.ran("apt-get", "-o")

    def test_install_failure(self, apt, runner, make_context):
        runner.on("apt-get", "install", returncode=100, stderr="E: Unable to locate package nope\n")
        outcome = apt.apply(make_context(package("nope")))
        assert outcome.failed
        assert not outcome.transient
        assert outcome.metadata["return_code"] == 100
        assert "Unable to locate package nope" in outcome.error

    def test_lock_contention_is_transient(self, apt, runner, make_context):
        runner.on(
            "apt-get",
            "install",
            returncode=100,
            stderr="E: Could not get lock /var/lib/dpkg/lock-frontend. It is held by process 1234\n",
        )
        outcome = apt.apply(make_context(package("git")))
        assert outcome.failed
        assert outcome.transient

    def test_reboot_marker_flagged(self, apt, tmp_path, make_context):
        (tmp_path / "reboot-required").write_text("*** System restart required ***\n")
        outcome = apt.apply(make_context(package("git")))
        assert AdvisoryFlag.REBOOT_REQUIRED in outcome.flags

    def test_declared_flags_carried(self, apt, make_context):
        outcome = apt.apply(make_context(package("nvidia-driver-550", flags=["reboot-recommended"])))
        assert outcome.flags == [AdvisoryFlag.REBOOT_RECOMMENDED]


class TestAptSources:
    def test_ppa_added_then_refreshed(self, apt, runner, make_context):
        resource = make_resource("package", "papirus", {"names": ["papirus-icon-theme"], "ppa": "ppa:papirus/papirus"})
        assert apt.apply(make_context(resource)).applied
        assert runner.commands[:2] == [
            ["add-apt-repository", "-y", "ppa:papirus/papirus"],
            ["apt-get", "update"],
        ]

    def test_ppa_already_present(self, apt, runner, tmp_path, make_context):
        (tmp_path / "sources.list.d" / "papirus-ubuntu-papirus-noble.list").write_text(
            "deb https://ppa.launchpadcontent.net/papirus/papirus/ubuntu noble main\n"
        )
        resource = make_resource("package", "papirus", {"names": ["papirus-icon-theme"], "ppa": "ppa:papirus/papirus"})
        apt.apply(make_context(resource))
        assert not runner.ran("add-apt-repository")
        assert not runner.ran("apt-get", "update")

    def test_ppa_failure(self, apt, runner, make_context):
        runner.on("add-apt-repository", returncode=1, stderr="Cannot add PPA\n")
        resource = make_resource("package", "papirus", {"names": ["papirus-icon-theme"], "ppa": "ppa:papirus/papirus"})
        outcome = apt.apply(make_context(resource))
        assert outcome.failed
        assert outcome.error.startswith("add-apt-repository ppa:papirus/papirus failed")

    def test_third_party_source(self, apt, runner, downloader, tmp_path, make_context):
        downloader.payloads["https://packages.microsoft.com/keys/microsoft.asc"] = b"-----BEGIN PGP-----\n"
        line = "deb [arch=amd64 signed-by=/usr/share/keyrings/ms_vscode.gpg] https://packages.microsoft.com/repos/code stable main"
        resource = make_resource(
            "package",
            "vscode",
            {
                "names": ["code"],
                "source": {
                    "name": "vscode",
                    "line": line,
                    "key_url": "https://packages.microsoft.com/keys/microsoft.asc",
                    "keyring": "/usr/share/keyrings/ms_vscode.gpg",
                },
            },
        )
        assert apt.apply(make_context(resource)).applied

        gpg = runner.find("gpg")
        assert gpg.argv == ["gpg", "--dearmor", "--yes", "-o", "/usr/share/keyrings/ms_vscode.gpg"]
        assert gpg.input_text == "-----BEGIN PGP-----\n"
        tee = runner.find("tee")
        assert tee.argv == ["tee", str(tmp_path / "sources.list.d" / "vscode.list")]
        assert tee.input_text == line + "\n"
        assert tee.privileged
        assert runner.ran("apt-get", "update")

    def test_existing_source_left_alone(self, apt, runner, downloader, tmp_path, make_context):
        (tmp_path / "sources.list.d" / "vscode.list").write_text("deb ...\n")
        resource = make_resource(
            "package", "vscode", {"names": ["code"], "source": {"name": "vscode", "line": "deb ..."}}
        )
        apt.apply(make_context(resource))
        assert not runner.ran("tee")
        assert downloader.fetched == []


# ── Flatpak ──────────────────────────────────────────────────────────


def _gimp():
    return make_resource("flatpak", "gimp", {"app_id": "org.gimp.GIMP"})


def _freecad():
    return make_resource(
        "flatpak", "freecad", {"app_id": "org.freecad.FreeCAD", "alternatives": ["org.freecadweb.FreeCAD"]}
    )


class TestFlatpakProbe:
    def test_installed(self, flatpak, runner, make_context):
        assert flatpak.probe(make_context(_gimp()))
        assert runner.commands == [["flatpak", "info", "--system", "org.gimp.GIMP"]]

    def test_missing(self, flatpak, runner, make_context):
        runner.on("flatpak", "info", returncode=1, stderr="error: org.gimp.GIMP/*unspecified*/* not installed\n")
        assert not flatpak.probe(make_context(_gimp()))

    def test_alternative_id_counts(self, flatpak, runner, make_context):
        runner.on("flatpak", "info", "--system", "org.freecad.FreeCAD", returncode=1)
        assert flatpak.probe(make_context(_freecad()))

    def test_absent(self, flatpak, runner, make_context):
        runner.on("flatpak", "info", returncode=1)
        resource = make_resource("flatpak", "lo", {"app_id": "org.libreoffice.LibreOffice", "state": "absent"})
        assert flatpak.probe(make_context(resource))


class TestFlatpakApply:
    def test_adds_remote_then_installs(self, flatpak, runner, make_context):
        outcome = flatpak.apply(make_context(_gimp()))
        assert outcome.applied
        assert outcome.metadata["app_id"] == "org.gimp.GIMP"
        assert runner.commands == [
            ["flatpak", "remotes", "--system", "--columns=name"],
            ["flatpak", "remote-add", "--system", "--if-not-exists", "flathub",
             "https://flathub.org/repo/flathub.flatpakrepo"],
            ["flatpak", "install", "--system", "-y", "--noninteractive", "flathub", "org.gimp.GIMP"],
        ]
        assert runner.find("flatpak", "install").privileged

    def test_remote_present(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="fedora\nflathub\n")
        flatpak.apply(make_context(_gimp()))
        assert not runner.ran("flatpak", "remote-add")

    def test_already_installed(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="flathub\n")
        runner.on("flatpak", "install", returncode=0, stderr="Skipping: org.gimp.GIMP/x86_64/stable is already installed\n")
        outcome = flatpak.apply(make_context(_gimp()))
        assert outcome.skipped
        assert outcome.reason == "org.gimp.GIMP already installed"

    def test_falls_back_to_alternative(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="flathub\n")
        runner.on("flatpak", "install", "--system", "-y", "--noninteractive", "flathub", "org.freecad.FreeCAD",
                  returncode=1, stderr="error: Nothing matches org.freecad.FreeCAD in remote flathub\n")
        outcome = flatpak.apply(make_context(_freecad()))
        assert outcome.applied
        assert outcome.metadata["app_id"] == "org.freecadweb.FreeCAD"

    def test_all_candidates_fail(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="flathub\n")
        runner.on("flatpak", "install", returncode=1, stderr="error: Nothing matches\n")
        outcome = flatpak.apply(make_context(_freecad()))
        assert outcome.failed
        assert outcome.error == "flatpak install org.freecad.FreeCAD failed (exit 1: error: Nothing matches)"

    def test_network_error_is_transient(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="flathub\n")
        runner.on("flatpak", "install", returncode=1, stderr="error: Could not resolve hostname dl.flathub.org\n")
        assert flatpak.apply(make_context(_gimp())).transient

    def test_user_scope_unprivileged(self, flatpak, runner, make_context):
        runner.on("flatpak", "remotes", stdout="flathub\n")
        resource = make_resource("flatpak", "gimp", {"app_id": "org.gimp.GIMP", "scope": "user"})
        flatpak.apply(make_context(resource))
        call = runner.find("flatpak", "install")
        assert call.argv[2] == "--user"
        assert not call.privileged

    def test_uninstall(self, flatpak, runner, make_context):
        resource = make_resource("flatpak", "lo", {"app_id": "org.libreoffice.LibreOffice", "state": "absent"})
        outcome = flatpak.apply(make_context(resource))
        assert outcome.applied
        assert runner.ran("flatpak", "uninstall", "--system", "-y", "--noninteractive", "org.libreoffice.LibreOffice")
