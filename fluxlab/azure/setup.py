"""Lab provisioning: from an empty subscription to a Flux-managed cluster.

The setup sequence mirrors the lab walkthrough:

1. Check that az, kubectl and git are installed
2. Check that the user is logged in to Azure
3. Register resource providers and az CLI extensions
4. Create the resource group
5. Create (AKS) or connect (Arc) the cluster
6. Fetch kubectl credentials (AKS only)
7. Install the Flux cluster extension
8. Create the Flux configuration pointing at the student's fork

Every step checks for existing resources first, so setup can simply be run
again after a failure or after ``--no-wait``.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fluxlab.azure.cli import CLI_EXTENSIONS, RESOURCE_PROVIDERS, AzureCli
from fluxlab.core.config import LabSettings
from fluxlab.core.errors import CommandError, ToolNotFoundError
from fluxlab.core.runner import CommandRunner
from fluxlab.core.state import LabState

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ["az", "kubectl", "git"]

CREATED = "created"
SKIPPED = "skipped"
REQUESTED = "requested"
CHECKED = "checked"


@dataclass
class SetupStep:
    """One step of the setup sequence.

    Attributes:
        key: Short identifier recorded in the state file
        description: Progress text shown to the user
        action: Callable performing the step; returns an outcome string
    """
    key: str
    description: str
    action: Callable[[], str]


@dataclass
class SetupReport:
    """What run_setup did."""
    outcomes: Dict[str, str] = field(default_factory=dict)
    stopped_early: bool = False

    @property
    def complete(self) -> bool:
        return not self.stopped_early


class _StopSetup(Exception):
    """Internal signal: the remaining steps cannot run yet."""

    def __init__(self, key: str, outcome: str, hint: str) -> None:
        super().__init__(hint)
        self.key = key
        self.outcome = outcome


def check_prerequisites(runner: CommandRunner, tools: Optional[List[str]] = None) -> List[str]:
    """Return the required tools that are missing from PATH."""
    return [tool for tool in (tools or REQUIRED_TOOLS) if not runner.which(tool)]


def build_steps(settings: LabSettings, azure: AzureCli, runner: CommandRunner) -> List[SetupStep]:
    """Build the ordered setup steps for the given settings."""

    def prerequisites() -> str:
        if runner.dry_run:
            return SKIPPED
        missing = check_prerequisites(runner)
        if missing:
            raise ToolNotFoundError(missing[0])
        return CHECKED

    def login() -> str:
        if runner.dry_run:
            return SKIPPED
        account = azure.account_show()
        if account is None:
            raise CommandError("Not logged in to Azure. Run 'az login' first.", command=["az", "account", "show"])
        logger.info(f"Using subscription {account.get('name')} ({account.get('id')})")
        return CHECKED

    def providers() -> str:
        for namespace in RESOURCE_PROVIDERS:
            azure.provider_register(namespace)
        for extension in CLI_EXTENSIONS:
            azure.extension_add(extension)
        return CREATED

    def resource_group() -> str:
        if azure.group_show(settings) is not None:
            return SKIPPED
        azure.group_create(settings)
        return CREATED

    def cluster() -> str:
        if azure.cluster_show(settings) is not None:
            return SKIPPED
        if settings.cluster_type == "arc":
            azure.connectedk8s_connect(settings)
            return CREATED
        azure.aks_create(settings)
        if settings.no_wait:
            raise _StopSetup(
                "cluster",
                REQUESTED,
                f"Cluster {settings.cluster_name} is being created in the background. "
                "Run setup again once it has finished provisioning.",
            )
        return CREATED

    def credentials() -> str:
        azure.aks_get_credentials(settings)
        return CREATED

    def flux_extension() -> str:
        if azure.k8s_extension_show(settings) is not None:
            return SKIPPED
        azure.k8s_extension_create(settings)
        return CREATED

    def flux_configuration() -> str:
        settings.require_github_user()
        if azure.flux_show(settings) is not None:
            return SKIPPED
        azure.flux_create(settings)
        return CREATED

    steps = [
        SetupStep("prerequisites", "Checking az, kubectl and git", prerequisites),
        SetupStep("login", "Checking Azure login", login),
        SetupStep("providers", "Registering resource providers and CLI extensions", providers),
        SetupStep("resource-group", f"Creating resource group {settings.resource_group}", resource_group),
    ]
    if settings.cluster_type == "arc":
        steps.append(SetupStep("cluster", f"Connecting Arc cluster {settings.cluster_name}", cluster))
    else:
        steps.append(SetupStep("cluster", f"Creating AKS cluster {settings.cluster_name}", cluster))
        steps.append(SetupStep("credentials", "Fetching kubectl credentials", credentials))
    steps.append(SetupStep("flux-extension", "Installing the Flux extension", flux_extension))
    steps.append(SetupStep(
        "flux-configuration",
        f"Creating Flux configuration {settings.config_name} ({settings.overlay_path})",
        flux_configuration,
    ))
    return steps


def run_setup(
    settings: LabSettings,
    azure: AzureCli,
    runner: CommandRunner,
    state: Optional[LabState] = None,
    out: Callable[[str], None] = print,
) -> SetupReport:
    """Run the setup steps in order.

    Args:
        settings: Validated lab settings
        azure: Azure CLI wrapper
        runner: Runner used by azure (checked for dry-run and tool lookup)
        state: Optional state file to record progress in
        out: Output function for progress lines

    Returns:
        SetupReport with the outcome of each step that ran

    Raises:
        CommandError: A step failed; later steps are not attempted
        LabConfigError: Settings needed by a step are missing
    """
    steps = build_steps(settings, azure, runner)
    report = SetupReport()

    if state is not None and not runner.dry_run:
        state.record_settings(settings.to_dict())

    for index, step in enumerate(steps, start=1):
        out(f"[{index}/{len(steps)}] {step.description}...")
        try:
            outcome = step.action()
        except _StopSetup as stop:
            report.outcomes[stop.key] = stop.outcome
            report.stopped_early = True
            if state is not None and not runner.dry_run:
                state.record_step(stop.key, stop.outcome)
            out(f"    {stop}")
            return report

        report.outcomes[step.key] = outcome
        if state is not None and not runner.dry_run:
            state.record_step(step.key, outcome)
        if outcome == SKIPPED:
            out("    already present, skipped")
        else:
            out(f"    ✓ {outcome}")

    return report
