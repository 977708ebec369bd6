"""Tests for the setup sequence."""

import pytest

from fluxlab.azure.cli import AzureCli
from fluxlab.azure.setup import (
    CHECKED,
    CREATED,
    REQUESTED,
    SKIPPED,
    build_steps,
    check_prerequisites,
    run_setup,
)
from fluxlab.core.config import LabSettings
from fluxlab.core.errors import CommandError, LabConfigError, ToolNotFoundError
from fluxlab.core.state import LabState


def logged_in(runner):
    return runner.on("az", "account", "show", json_data={"name": "Lab", "id": "0000"})


def quiet(_line):
    pass


class TestPrerequisites:

    def test_all_present(self, fake_runner):
        assert check_prerequisites(fake_runner) == []

    def test_reports_missing(self, make_runner):
        assert check_prerequisites(make_runner(tools=["az"])) == ["kubectl", "git"]


class TestBuildSteps:

    def test_aks_steps(self, fake_runner, settings):
        steps = build_steps(settings, AzureCli(fake_runner), fake_runner)

        assert [s.key for s in steps] == [
            "prerequisites", "login", "providers", "resource-group",
            "cluster", "credentials", "flux-extension", "flux-configuration",
        ]

    def test_arc_has_no_credentials_step(self, fake_runner):
        arc = LabSettings(student_alias="jdoe", cluster_type="arc", github_user="gh")

        keys = [s.key for s in build_steps(arc, AzureCli(fake_runner), fake_runner)]

        assert "credentials" not in keys
        assert "cluster" in keys


class TestRunSetup:

    def test_fresh_subscription_creates_everything(self, fake_runner, settings):
        logged_in(fake_runner)

        report = run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

        assert report.complete
        assert report.outcomes["prerequisites"] == CHECKED
        assert report.outcomes["cluster"] == CREATED
        assert report.outcomes["flux-configuration"] == CREATED
        created = [cmd[:4] for cmd in fake_runner.planned]
        order = [
            ["az", "group", "create", "--name"],
            ["az", "aks", "create", "--resource-group"],
            ["az", "aks", "get-credentials", "--resource-group"],
            ["az", "k8s-extension", "create", "--resource-group"],
            ["az", "k8s-configuration", "flux", "create"],
        ]
        positions = [created.index(prefix) for prefix in order]
        assert positions == sorted(positions)

    def test_registers_providers_and_extensions(self, fake_runner, settings):
        logged_in(fake_runner)

        run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

        namespaces = [cmd[-1] for cmd in fake_runner.commands_starting("az", "provider", "register")]
        assert "Microsoft.KubernetesConfiguration" in namespaces
        extensions = [cmd[-1] for cmd in fake_runner.commands_starting("az", "extension", "add")]
        assert extensions == ["k8s-configuration", "k8s-extension"]

    def test_rerun_skips_existing_resources(self, healthy_runner, settings):
        report = run_setup(settings, AzureCli(healthy_runner), healthy_runner, out=quiet)

        assert report.outcomes["cluster"] == SKIPPED
        assert report.outcomes["flux-extension"] == SKIPPED
        assert report.outcomes["flux-configuration"] == SKIPPED
        assert not healthy_runner.ran("az", "aks", "create")
        assert not healthy_runner.ran("az", "k8s-configuration", "flux", "create")

    def test_existing_resource_group_is_skipped(self, fake_runner, settings):
        logged_in(fake_runner)
        fake_runner.on("az", "group", "show", json_data={"name": "rg-gitops-jdoe"})

        report = run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

        assert report.outcomes["resource-group"] == SKIPPED
        assert report.outcomes["cluster"] == CREATED
        assert not fake_runner.ran("az", "group", "create")

    def test_no_wait_stops_after_cluster(self, fake_runner):
        logged_in(fake_runner)
        settings = LabSettings(student_alias="jdoe", github_user="gh", no_wait=True)
        lines = []

        report = run_setup(settings, AzureCli(fake_runner), fake_runner, out=lines.append)

        assert report.stopped_early
        assert report.outcomes["cluster"] == REQUESTED
        assert "flux-extension" not in report.outcomes
        assert not fake_runner.ran("az", "k8s-extension", "create")
        assert any("Run setup again" in line for line in lines)

    def test_arc_connects_cluster(self, fake_runner):
        logged_in(fake_runner)
        arc = LabSettings(student_alias="jdoe", cluster_type="arc", github_user="gh")

        run_setup(arc, AzureCli(fake_runner), fake_runner, out=quiet)

        assert fake_runner.ran("az", "connectedk8s", "connect")
        assert not fake_runner.ran("az", "aks", "create")

    def test_missing_tool_stops_setup(self, make_runner, settings):
        runner = make_runner(tools=["az", "git"])

        with pytest.raises(ToolNotFoundError, match="kubectl"):
            run_setup(settings, AzureCli(runner), runner, out=quiet)

        assert runner.planned == []

    def test_not_logged_in(self, fake_runner, settings):
        fake_runner.on("az", "account", "show", returncode=1, stderr="Please run 'az login'")

        with pytest.raises(CommandError, match="az login"):
            run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

    def test_failed_step_stops_sequence(self, fake_runner, settings):
        logged_in(fake_runner)
        fake_runner.on("az", "aks", "create", returncode=1, stderr="ERROR: QuotaExceeded")

        with pytest.raises(CommandError, match="QuotaExceeded"):
            run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

        assert not fake_runner.ran("az", "k8s-extension", "create")

    def test_missing_github_user_fails_before_flux(self, fake_runner):
        logged_in(fake_runner)
        settings = LabSettings(student_alias="jdoe")

        with pytest.raises(LabConfigError):
            run_setup(settings, AzureCli(fake_runner), fake_runner, out=quiet)

        assert fake_runner.ran("az", "k8s-extension", "create")

    def test_records_progress_in_state(self, fake_runner, settings, tmp_path):
        logged_in(fake_runner)
        state = LabState(str(tmp_path / "state.json"))

        run_setup(settings, AzureCli(fake_runner), fake_runner, state=state, out=quiet)

        assert state.settings["student_alias"] == "jdoe"
        assert state.completed_steps()[-1] == "flux-configuration"

    def test_dry_run_plans_without_executing(self, make_runner, settings, tmp_path):
        runner = make_runner(tools=[], dry_run=True)
        state = LabState(str(tmp_path / "state.json"))

        report = run_setup(settings, AzureCli(runner), runner, state=state, out=quiet)

        assert report.complete
        planned = runner.planned_commands()
        assert planned[0].startswith("az provider register")
        assert planned[-1].startswith("az k8s-configuration flux create")
        assert not (tmp_path / "state.json").exists()

    def test_progress_output(self, healthy_runner, settings):
        lines = []

        run_setup(settings, AzureCli(healthy_runner), healthy_runner, out=lines.append)

        assert lines[0] == "[1/8] Checking az, kubectl and git..."
        assert "    already present, skipped" in lines
