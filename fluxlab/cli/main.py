"""fluxlab CLI - Command-line interface for the AKS + Flux GitOps lab.

This module provides the main CLI entrypoint, allowing students to set up,
validate, inspect and tear down their lab from the command line.
"""

import argparse
import logging
import sys

from fluxlab.azure.cleanup import run_cleanup
from fluxlab.azure.cli import AzureCli
from fluxlab.azure.setup import run_setup
from fluxlab.core.config import CLUSTER_TYPES, ENVIRONMENTS, load_config, resolve_settings
from fluxlab.core.errors import CommandError, LabConfigError
from fluxlab.core.runner import CommandRunner
from fluxlab.core.state import DEFAULT_STATE_FILE, LabState
from fluxlab.core.verifier import has_errors, run_checks
from fluxlab.lab.check_config import get_check_set
from fluxlab.lab.cluster_checks import ClusterTarget
from fluxlab.lab.manifests import ManifestTree
from fluxlab.lab.publish import publish_repository
from fluxlab.lab.report import print_results
from fluxlab.lab.scaffold import DEFAULT_APP_NAME, scaffold_tree
from fluxlab.lab.status import status_lines

logger = logging.getLogger(__name__)


def _add_common_arguments(parser):
    parser.add_argument(
        "--config",
        default="config.json",
        help="Path to config file (default: config.json)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )


def _add_lab_arguments(parser):
    """Flags identifying the lab. None means: take it from config/env/state."""
    parser.add_argument(
        "--student-alias",
        help="Your alias; used to name the resource group and cluster (e.g. jdoe)"
    )
    parser.add_argument(
        "--location",
        help="Azure region (default: eastus)"
    )
    parser.add_argument(
        "--github-user",
        help="GitHub user owning the fork Flux reconciles from"
    )
    parser.add_argument(
        "--cluster-type",
        choices=sorted(CLUSTER_TYPES),
        help="aks (managed cluster, default) or arc (Arc-connected cluster)"
    )
    parser.add_argument(
        "--environment",
        choices=ENVIRONMENTS,
        help="Overlay Flux deploys: dev (default) or prod"
    )
    parser.add_argument(
        "--repo-name",
        help="Name of the GitOps repository fork (default: aks-gitops-lab)"
    )
    parser.add_argument(
        "--branch",
        help="Branch Flux follows (default: main)"
    )
    parser.add_argument(
        "--state-file",
        default=DEFAULT_STATE_FILE,
        help=f"Lab state file (default: {DEFAULT_STATE_FILE})"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fluxlab",
        description="fluxlab - AKS + Flux GitOps lab automation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show every command setup would run
  fluxlab commands --student-alias jdoe --github-user jdoe

  # Create the starter repository and push it to your fork
  fluxlab scaffold ./aks-gitops-lab --github-user jdoe --push

  # Check the repository before pushing
  fluxlab lint ./aks-gitops-lab --render

  # Provision the lab
  fluxlab setup --student-alias jdoe --location westeurope --github-user jdoe

  # Validate every stage of the lab
  fluxlab validate

  # Tear it all down
  fluxlab cleanup --yes

Note:
  Flags can also come from config.json, e.g.
  {"lab": {"student_alias": "jdoe"}, "github": {"user": "jdoe"}},
  or from environment variables (LAB_STUDENT_ALIAS, GITHUB_USER, ...).
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Setup command
    setup_parser = subparsers.add_parser(
        "setup",
        help="Create resource group, cluster, Flux extension and configuration"
    )
    _add_lab_arguments(setup_parser)
    setup_parser.add_argument(
        "--node-count",
        type=int,
        default=None,
        help="AKS node count (default: 2)"
    )
    setup_parser.add_argument(
        "--node-vm-size",
        help="AKS node VM size (default: Standard_B2s)"
    )
    setup_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Do not wait for cluster creation; run setup again once it is ready"
    )
    setup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the commands instead of running them"
    )
    _add_common_arguments(setup_parser)

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check every stage of the lab"
    )
    _add_lab_arguments(validate_parser)
    validate_parser.add_argument(
        "--repo",
        help="Also lint the GitOps repository in this directory"
    )
    validate_parser.add_argument(
        "--skip-cluster",
        action="store_true",
        help="Skip the live Azure and cluster checks"
    )
    _add_common_arguments(validate_parser)

    # Status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show Flux configuration and resource status"
    )
    _add_lab_arguments(status_parser)
    _add_common_arguments(status_parser)

    # Lint command
    lint_parser = subparsers.add_parser(
        "lint",
        help="Check the GitOps repository layout and manifests"
    )
    lint_parser.add_argument(
        "dir",
        help="Path to the repository"
    )
    lint_parser.add_argument(
        "--render",
        action="store_true",
        help="Also render each overlay with kubectl kustomize"
    )
    _add_common_arguments(lint_parser)

    # Scaffold command
    scaffold_parser = subparsers.add_parser(
        "scaffold",
        help="Write the starter base/overlays repository"
    )
    scaffold_parser.add_argument(
        "dir",
        help="Directory to write the repository to"
    )
    _add_lab_arguments(scaffold_parser)
    scaffold_parser.add_argument(
        "--app-name",
        default=DEFAULT_APP_NAME,
        help=f"Name of the sample app (default: {DEFAULT_APP_NAME})"
    )
    scaffold_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing files"
    )
    scaffold_parser.add_argument(
        "--push",
        action="store_true",
        help="Commit the repository and push it to https://github.com/<github-user>/<repo-name>"
    )
    scaffold_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="With --push, print the git commands instead of running them"
    )
    _add_common_arguments(scaffold_parser)

    # Cleanup command
    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Delete the Flux configuration, extension and resource group"
    )
    _add_lab_arguments(cleanup_parser)
    cleanup_parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation"
    )
    cleanup_parser.add_argument(
        "--keep-group",
        action="store_true",
        help="Only remove Flux; keep the resource group and cluster"
    )
    cleanup_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Do not wait for the resource group deletion"
    )
    _add_common_arguments(cleanup_parser)

    # Commands (quick reference)
    commands_parser = subparsers.add_parser(
        "commands",
        help="Print the command sequence setup would run (quick reference)"
    )
    _add_lab_arguments(commands_parser)
    _add_common_arguments(commands_parser)

    return parser


def main(argv=None):
    """Main CLI entrypoint for fluxlab."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    handlers = {
        "setup": cmd_setup,
        "validate": cmd_validate,
        "status": cmd_status,
        "lint": cmd_lint,
        "scaffold": cmd_scaffold,
        "cleanup": cmd_cleanup,
        "commands": cmd_commands,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (CommandError, LabConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.info("Command failed", exc_info=True)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.exception(f"{args.command} failed")
        return 1


def _settings(args, state=None):
    """Resolve and validate settings from args, config file, env and state."""
    config = load_config(args.config)
    fallback = state.settings if state is not None else None
    return resolve_settings(args, config, fallback=fallback).validate()


def cmd_setup(args):
    """Handle setup command."""
    state = LabState(None if args.dry_run else args.state_file)
    settings = _settings(args, state)
    settings.require_github_user()

    runner = CommandRunner(dry_run=args.dry_run)
    azure = AzureCli(runner)

    print(f"Setting up lab for '{settings.student_alias}' in {settings.location}")
    print(f"  Resource group: {settings.resource_group}")
    print(f"  Cluster:        {settings.cluster_name} ({settings.cluster_type})")
    print(f"  Repository:     {settings.repo_url} ({settings.branch}, {settings.overlay_path})")
    print()

    report = run_setup(settings, azure, runner, state=state)

    if args.dry_run:
        print("\nCommands that would run:")
        for line in runner.planned_commands():
            print(f"  {line}")
        return 0

    if report.complete:
        print("\n✅ Lab setup complete!")
        print("   Run 'fluxlab validate' to check that Flux has reconciled your repository.")
    return 0


def cmd_commands(args):
    """Handle commands (quick reference) command."""
    config = load_config(args.config)
    settings = resolve_settings(args, config)
    if not settings.student_alias:
        settings.student_alias = "student"
    if not settings.github_user:
        settings.github_user = "<github-user>"
    settings.validate()

    git_runner = CommandRunner(dry_run=True)
    publish_repository(settings, settings.repo_name, git_runner, out=lambda line: None)
    runner = CommandRunner(dry_run=True)
    run_setup(settings, AzureCli(runner), runner, out=lambda line: None)

    print("# Push the starter repository (fluxlab scaffold <dir> --push)")
    for line in git_runner.planned_commands():
        print(line)
    print()
    print(f"# Lab setup for '{settings.student_alias}' ({settings.cluster_type}, {settings.environment})")
    for line in runner.planned_commands():
        print(line)
    print()
    print("# Inspect the result")
    print(f"az k8s-configuration flux show --resource-group {settings.resource_group} "
          f"--cluster-name {settings.cluster_name} --cluster-type {settings.azure_cluster_type} "
          f"--name {settings.config_name}")
    print("kubectl get gitrepository,kustomization,helmrelease --all-namespaces")
    print()
    print("# Clean up")
    print(f"az group delete --name {settings.resource_group} --yes --no-wait")
    return 0


def cmd_validate(args):
    """Handle validate command."""
    results = []

    if args.repo:
        print(f"Repository: {args.repo}")
        tree = ManifestTree.from_dir(args.repo)
        results.extend(run_checks(tree, get_check_set("layout")))

    if not args.skip_cluster:
        state = LabState(args.state_file)
        settings = _settings(args, state)
        print(f"Lab: {settings.cluster_name} in {settings.resource_group}")
        target = ClusterTarget.create(settings, CommandRunner())
        results.extend(run_checks(target, get_check_set("cluster")))

    if not results:
        print("Nothing to validate (use --repo and/or drop --skip-cluster)")
        return 1

    print()
    print_results(results)

    if has_errors(results):
        print("\n❌ Lab validation failed")
        return 1
    print("\n✅ Lab validation passed")
    return 0


def cmd_status(args):
    """Handle status command."""
    state = LabState(args.state_file)
    settings = _settings(args, state)
    target = ClusterTarget.create(settings, CommandRunner())
    for line in status_lines(target):
        print(line)
    return 0


def cmd_lint(args):
    """Handle lint command."""
    tree = ManifestTree.from_dir(args.dir)
    if not tree.files:
        print(f"Error: No YAML files found in {args.dir}", file=sys.stderr)
        return 1

    print(f"Linting {args.dir} ({len(tree.files)} files)")
    runner = CommandRunner()
    results = run_checks(tree, get_check_set("layout_full" if args.render else "layout", runner))
    print()
    print_results(results)
    return 1 if has_errors(results) else 0


def cmd_scaffold(args):
    """Handle scaffold command."""
    settings = resolve_settings(args, load_config(args.config))
    if settings.environment not in ENVIRONMENTS:
        raise LabConfigError(f"Unknown environment '{settings.environment}'")

    tree = scaffold_tree(settings, app_name=args.app_name)
    written = tree.write_to_dir(args.dir, overwrite=args.force)

    skipped = len(tree.files) + len(tree.assets) - len(written)
    for path in written:
        print(f"  wrote {path}")
    if skipped:
        print(f"  kept {skipped} existing file(s) (use --force to overwrite)")

    print(f"\n✅ Repository scaffolded in {args.dir}")

    if not args.push:
        print("   Commit and push it to your fork (or rerun with --push), then run 'fluxlab setup'.")
        return 0

    runner = CommandRunner(dry_run=args.dry_run)
    print(f"\nPublishing to {settings.repo_url}")
    publish_repository(settings, args.dir, runner)
    if args.dry_run:
        print("\nCommands that would run:")
        for line in runner.planned_commands():
            print(f"  {line}")
        return 0
    print(f"\n✅ Pushed {settings.branch} to {settings.repo_url}, now run 'fluxlab setup'.")
    return 0


def cmd_cleanup(args):
    """Handle cleanup command."""
    state = LabState(args.state_file)
    settings = _settings(args, state)

    if not args.yes:
        what = "the Flux configuration" if args.keep_group else f"resource group {settings.resource_group}"
        answer = input(f"Delete {what} and everything in it? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 1

    azure = AzureCli(CommandRunner())
    deleted = run_cleanup(settings, azure, keep_group=args.keep_group, no_wait=args.no_wait)

    if "resource-group" in deleted:
        state.clear()
    print("\n✅ Cleanup done" if deleted else "\nNothing was deleted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
