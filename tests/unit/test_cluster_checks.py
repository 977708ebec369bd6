"""Tests for the live lab checks.

Each test starts from the healthy lab scripted in conftest and breaks one
thing, so only the check under test should report.
"""

import pytest

from fluxlab.core.config import LabSettings
from fluxlab.core.verifier import collect_violations, has_errors, run_checks
from fluxlab.k8s.constants import GITREPOSITORY, HELMRELEASE, KUSTOMIZATION
from fluxlab.lab.check_config import CheckConfig, cluster_config, get_check_set, layout_config
from fluxlab.lab.cluster_checks import (
    AzureLoginCheck,
    ClusterCheck,
    ClusterTarget,
    FluxConfigurationCheck,
    FluxExtensionCheck,
    FluxResourceCheck,
    PrerequisiteCheck,
    ResourceGroupCheck,
    WorkloadPodsCheck,
)


def target_for(runner, settings):
    return ClusterTarget.create(settings, runner)


def ids(violations):
    return [v.id for v in violations]


def kubectl_get(settings, resource):
    return ("kubectl", "--context", settings.cluster_name, "get", resource)


class TestHealthyLab:

    def test_all_checks_pass(self, healthy_runner, settings):
        results = run_checks(target_for(healthy_runner, settings), get_check_set("cluster"))

        assert collect_violations(results) == []
        assert not has_errors(results)

    def test_checks_only_read(self, healthy_runner, settings):
        run_checks(target_for(healthy_runner, settings), get_check_set("cluster"))

        assert healthy_runner.planned == []


class TestAzureChecks:

    def test_missing_tools(self, make_runner, settings):
        runner = make_runner(tools=["az"])

        violations = PrerequisiteCheck()(target_for(runner, settings))

        assert [v.path for v in violations] == [["kubectl"], ["git"]]

    def test_not_logged_in(self, fake_runner, settings):
        fake_runner.on("az", "account", "show", returncode=1, stderr="Please run 'az login'")

        assert ids(AzureLoginCheck()(target_for(fake_runner, settings))) == ["azure.NOT_LOGGED_IN"]

    def test_resource_group_missing(self, healthy_runner, settings):
        healthy_runner.not_found("az", "group", "show")

        violations = ResourceGroupCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["azure.RESOURCE_GROUP_MISSING"]
        assert violations[0].path == ["rg-gitops-jdoe"]

    def test_cluster_missing(self, healthy_runner, settings):
        healthy_runner.not_found("az", "aks", "show")

        assert ids(ClusterCheck()(target_for(healthy_runner, settings))) == ["azure.CLUSTER_MISSING"]

    def test_cluster_stopped(self, healthy_runner, settings):
        healthy_runner.on("az", "aks", "show", json_data={
            "provisioningState": "Succeeded", "powerState": {"code": "Stopped"},
        })

        violations = ClusterCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["azure.CLUSTER_NOT_READY"]
        assert "az aks start" in violations[0].message

    def test_cluster_still_creating(self, healthy_runner, settings):
        healthy_runner.on("az", "aks", "show", json_data={
            "provisioningState": "Creating", "powerState": {"code": "Running"},
        })

        violations = ClusterCheck()(target_for(healthy_runner, settings))

        assert violations[0].evidence == {"provisioningState": "Creating"}

    def test_arc_cluster_disconnected(self, fake_runner):
        settings = LabSettings(student_alias="jdoe", cluster_type="arc")
        fake_runner.on("az", "connectedk8s", "show", json_data={
            "provisioningState": "Succeeded", "connectivityStatus": "Offline",
        })

        violations = ClusterCheck()(target_for(fake_runner, settings))

        assert ids(violations) == ["azure.CLUSTER_NOT_READY"]
        assert violations[0].evidence == {"connectivityStatus": "Offline"}

    def test_arc_target_uses_current_context(self, fake_runner):
        settings = LabSettings(student_alias="jdoe", cluster_type="arc")

        assert target_for(fake_runner, settings).kubectl.context is None


class TestFluxChecks:

    def test_extension_missing(self, healthy_runner, settings):
        healthy_runner.not_found("az", "k8s-extension", "show")

        violations = FluxExtensionCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["flux.EXTENSION_MISSING"]
        assert violations[0].path == ["rg-gitops-jdoe", "aks-gitops-jdoe", "extensions", "flux"]

    def test_extension_failed(self, healthy_runner, settings):
        healthy_runner.on("az", "k8s-extension", "show", json_data={"provisioningState": "Failed"})

        assert ids(FluxExtensionCheck()(target_for(healthy_runner, settings))) == ["flux.EXTENSION_NOT_READY"]

    def test_configuration_missing(self, healthy_runner, settings):
        healthy_runner.not_found("az", "k8s-configuration", "flux", "show")

        assert ids(FluxConfigurationCheck()(target_for(healthy_runner, settings))) == ["flux.CONFIG_MISSING"]

    def test_configuration_pending_is_warning(self, healthy_runner, settings):
        healthy_runner.on("az", "k8s-configuration", "flux", "show", json_data={"complianceState": "Pending"})

        violations = FluxConfigurationCheck()(target_for(healthy_runner, settings))

        assert violations[0].severity == "warning"

    def test_configuration_non_compliant(self, healthy_runner, settings):
        healthy_runner.on("az", "k8s-configuration", "flux", "show", json_data={
            "complianceState": "Non-Compliant",
            "errorMessage": "kustomization path not found",
            "statuses": [
                {"kind": "GitRepository", "name": "gitops-config", "complianceState": "Compliant"},
                {"kind": "Kustomization", "name": "gitops-config-apps", "complianceState": "Non-Compliant"},
            ],
        })

        violations = FluxConfigurationCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["flux.CONFIG_NOT_COMPLIANT"]
        assert violations[0].severity == "error"
        assert violations[0].evidence == {
            "complianceState": "Non-Compliant",
            "statuses": ["Kustomization/gitops-config-apps: Non-Compliant"],
            "errorMessage": "kustomization path not found",
        }

    def test_kustomization_not_ready(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, KUSTOMIZATION), json_data={"items": [{
            "metadata": {"name": "gitops-config-apps", "namespace": "flux-system"},
            "status": {"conditions": [{
                "type": "Ready", "status": "False", "reason": "BuildFailed",
                "message": "accumulating resources: ../../base not found",
            }]},
        }]})

        violations = FluxResourceCheck("kustomization")(target_for(healthy_runner, settings))

        assert ids(violations) == ["kube.KUSTOMIZATION_NOT_READY"]
        assert violations[0].evidence["reason"] == "BuildFailed"
        assert violations[0].path == ["cluster", "kustomization", "flux-system/gitops-config-apps"]

    def test_no_gitrepository_is_error(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, GITREPOSITORY), json_data={"items": []})

        violations = FluxResourceCheck("gitrepository")(target_for(healthy_runner, settings))

        assert ids(violations) == ["kube.GITREPOSITORY_NONE"]
        assert violations[0].severity == "error"

    def test_no_helmrelease_is_info_in_cluster_set(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, HELMRELEASE), json_data={"items": []})

        results = run_checks(target_for(healthy_runner, settings), get_check_set("cluster"))

        assert ids(collect_violations(results)) == ["kube.HELMRELEASE_NONE"]
        assert not has_errors(results)

    def test_flux_crds_missing(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, GITREPOSITORY), returncode=1,
                          stderr='error: the server doesn\'t have a resource type "gitrepositories"')

        violations = FluxResourceCheck("gitrepository")(target_for(healthy_runner, settings))

        assert ids(violations) == ["kube.FLUX_NOT_INSTALLED"]

    def test_unreachable_cluster_becomes_check_error(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, GITREPOSITORY), returncode=1,
                          stderr="Unable to connect to the server: dial tcp: i/o timeout")

        results = run_checks(target_for(healthy_runner, settings), [FluxResourceCheck("gitrepository")])

        assert ids(results[0].violations) == ["check_error.flux-gitrepository"]

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown Flux resource kind"):
            FluxResourceCheck("ocirepository")


class TestWorkloadPods:

    def test_no_pods_warns(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, "pods"), json_data={"items": []})

        violations = WorkloadPodsCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["kube.NO_PODS"]
        assert violations[0].severity == "warning"

    def test_crashing_pod(self, healthy_runner, settings):
        healthy_runner.on(*kubectl_get(settings, "pods"), json_data={"items": [
            {"metadata": {"name": "web-1"}, "status": {"phase": "Running", "containerStatuses": [{"ready": False}]}},
            {"metadata": {"name": "web-2"}, "status": {"phase": "Pending"}},
            {"metadata": {"name": "job-1"}, "status": {"phase": "Succeeded"}},
        ]})

        violations = WorkloadPodsCheck()(target_for(healthy_runner, settings))

        assert ids(violations) == ["kube.PODS_NOT_RUNNING"]
        assert violations[0].evidence == {"pods": ["web-1 (Running)", "web-2 (Pending)"]}


class TestCheckSets:

    def test_layout_sets(self, fake_runner):
        assert [c.name for c in get_check_set("layout")] == [
            "layout", "kustomization-refs", "workloads", "flux-manifests",
        ]
        assert [c.name for c in get_check_set("layout_full", fake_runner)][-1] == "render"

    def test_cluster_set_order(self):
        names = [c.name for c in cluster_config().get_checks()]

        assert names[:4] == ["prerequisites", "azure-login", "resource-group", "cluster"]
        assert names[-1] == "workload-pods"

    def test_unknown_set(self):
        with pytest.raises(ValueError, match="Unknown check set"):
            get_check_set("everything")

    def test_external_checks_can_be_excluded(self):
        config = layout_config()

        assert len(config.get_checks(include_external=False)) == len(config.get_checks()) - 1

    def test_custom_config(self):
        config = CheckConfig(name="custom", checks=[ClusterCheck()], description="just the cluster")

        assert config.get_checks() == config.checks
        assert config.external_checks == []
