"""Main CLI entry point using Typer."""

import json
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..aws.client import create_boto_client
from ..lifecycle.audit import AuditStorage
from ..lifecycle.client import RemoteResourceClient
from ..lifecycle.errors import CleanupFailedError, LifecycleError
from ..lifecycle.finalizer import DeletionOrchestrator
from ..lifecycle.provisioner import StackProvisioner
from ..models.cleanup import CleanupRequest
from ..models.operation import DeletionStatus, OperationStatus
from ..stack.blueprint import build_graph
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="vectorkb",
    help="Provision and tear down S3 Vectors knowledge bases in dependency order",
    add_completion=False,
)

console = Console()

# Global config
config: Optional[Config] = None

STATUS_STYLES = {
    DeletionStatus.SUCCEEDED: "green",
    DeletionStatus.FAILED: "red",
    DeletionStatus.SKIPPED: "yellow",
}


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    account: Optional[str] = typer.Option(None, "--account", help="AWS account ID (default: from STS)"),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Config file (default: ~/.vectorkb/config.yaml or $VECTORKB_CONFIG)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """vectorkb - ordered provisioning and teardown for S3 Vectors knowledge bases."""
    global config

    config = Config.load(config_path)

    # Override with CLI options
    if profile:
        config.aws_profile = profile
    if region:
        config.region = region
    if account:
        config.account = account

    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"vectorkb version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


def _resolve_identity(cfg: Config) -> None:
    """Fill in region and account from the AWS session when not configured."""
    if not cfg.region:
        import boto3

        cfg.region = boto3.Session(profile_name=cfg.aws_profile).region_name
        if not cfg.region:
            raise ValueError("No AWS region configured. Use --region or set VECTORKB_REGION.")

    if not cfg.account:
        sts = create_boto_client("sts", region_name=cfg.region, profile_name=cfg.aws_profile)
        cfg.account = sts.get_caller_identity()["Account"]


def _build_provisioner(cfg: Config) -> StackProvisioner:
    graph = build_graph(cfg.stack_settings())
    client = RemoteResourceClient.from_profile(region=cfg.region, profile=cfg.aws_profile)
    orchestrator = DeletionOrchestrator(
        bedrock_agent=client.bedrock_agent,
        raise_on_failure=cfg.raise_on_cleanup_failure,
    )
    return StackProvisioner(
        graph=graph,
        client=client,
        orchestrator=orchestrator,
        stack_id=cfg.stack_id,
        deletion_behavior=cfg.deletion,
        poll_seconds=float(cfg.poll_seconds),
        max_minutes=float(cfg.max_minutes),
    )


@app.command()
def plan():
    """Show creation and deletion order without calling AWS control planes."""
    try:
        _resolve_identity(config)
        graph = build_graph(config.stack_settings())

        tiers = graph.creation_tiers()
        tier_of = {name: tier for tier, names in tiers.items() for name in names}

        table = Table(title=f"Stack {config.stack_id}")
        table.add_column("Create", justify="right")
        table.add_column("Delete", justify="right")
        table.add_column("Tier", justify="right")
        table.add_column("Node", style="cyan")
        table.add_column("Kind")
        table.add_column("Depends on")

        deletion_position = {node.name: i for i, node in enumerate(graph.deletion_order(), start=1)}
        for position, node in enumerate(graph.creation_order(), start=1):
            table.add_row(
                str(position),
                str(deletion_position[node.name]),
                str(tier_of[node.name]),
                node.name,
                node.kind.value,
                ", ".join(graph.dependencies_of(node)) or "-",
            )

        console.print(table)

    except (ValueError, LifecycleError) as e:
        console.print(f"✗ Invalid stack: {e}", style="bold red")
        raise typer.Exit(code=1)


@app.command()
def provision():
    """Create the stack's resources in dependency order."""
    try:
        _resolve_identity(config)
        provisioner = _build_provisioner(config)

        console.print(f"\n🚀 Provisioning stack [bold cyan]{config.stack_id}[/bold cyan] in {config.region}\n")
        report = provisioner.provision()

        table = Table(title="Provisioned resources")
        table.add_column("Node", style="cyan")
        table.add_column("Kind")
        table.add_column("Physical ID")
        table.add_column("Status")
        for record in report.records:
            table.add_row(record.node_name, record.kind.value, record.physical_id, record.status or "-")
        console.print(table)

        if report.cleanup_request:
            console.print("\nTeardown request for the finalizer:")
            console.print_json(json.dumps(report.cleanup_request.to_event()))

    except typer.Exit:
        raise
    except (ValueError, LifecycleError) as e:
        console.print(f"✗ Provisioning failed: {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during provisioning: {e}", style="bold red")
        logger.exception("Error in provision command")
        raise typer.Exit(code=2)


@app.command()
def teardown(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deletion of the stack's resources"),
    storage_path: Optional[str] = typer.Option(None, "--storage-path", help="Audit log directory"),
):
    """Delete the stack's resources in the exact reverse of creation order."""
    if not yes:
        console.print("✗ Teardown deletes remote resources. Re-run with --yes to confirm.", style="bold red")
        raise typer.Exit(code=1)

    try:
        _resolve_identity(config)
        provisioner = _build_provisioner(config)

        console.print(f"\n🧹 Tearing down stack [bold cyan]{config.stack_id}[/bold cyan] in {config.region}\n")
        report = provisioner.teardown()

        table = Table(title=f"Teardown {report.operation_id}")
        table.add_column("Node", style="cyan")
        table.add_column("Kind")
        table.add_column("Physical ID")
        table.add_column("Result")
        table.add_column("Detail")
        for record in report.records:
            table.add_row(
                record.node_name,
                record.kind.value,
                record.physical_id or "-",
                f"[{STATUS_STYLES[record.status]}]{record.status.value}[/{STATUS_STYLES[record.status]}]",
                record.error_message or record.skip_reason or "",
            )
        console.print(table)

        audit_file = AuditStorage(storage_path or _audit_dir(config)).log_teardown(report)
        console.print(f"\nAudit log: [cyan]{audit_file}[/cyan]")

        if report.cleanup and not report.cleanup.completed:
            console.print(
                f"⚠ Knowledge base cleanup ended in {report.cleanup.final_phase.value}: {report.cleanup.error}",
                style="bold yellow",
            )

        if report.status in (OperationStatus.FAILED, OperationStatus.PARTIAL):
            raise typer.Exit(code=1)

    except typer.Exit:
        raise
    except (ValueError, LifecycleError) as e:
        console.print(f"✗ Teardown failed: {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during teardown: {e}", style="bold red")
        logger.exception("Error in teardown command")
        raise typer.Exit(code=2)


@app.command()
def cleanup(
    knowledge_base_id: str = typer.Option(..., "--knowledge-base-id", "-k", help="Knowledge base to delete"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Data source name prefix"),
    poll_seconds: Optional[float] = typer.Option(None, "--poll-seconds", help="Base polling interval"),
    max_minutes: Optional[float] = typer.Option(None, "--max-minutes", help="Total time budget"),
    raise_on_failure: bool = typer.Option(
        False, "--raise-on-failure", help="Exit non-zero when the cleanup sequence fails"
    ),
):
    """Run the deletion finalizer for one knowledge base."""
    try:
        request = CleanupRequest.from_event(
            {
                "knowledgeBaseId": knowledge_base_id,
                "dataSourceNamePrefix": prefix,
                "region": config.region,
                "pollSeconds": poll_seconds or config.poll_seconds,
                "maxMinutes": max_minutes or config.max_minutes,
            }
        )
        orchestrator = DeletionOrchestrator(
            bedrock_agent=create_boto_client(
                "bedrock-agent", region_name=config.region, profile_name=config.aws_profile
            ),
            raise_on_failure=raise_on_failure or config.raise_on_cleanup_failure,
        )
        report = orchestrator.run(request)

        console.print(" → ".join(phase.value for phase in report.phases))
        if report.completed:
            console.print(f"✓ Knowledge base {knowledge_base_id} deleted", style="bold green")
        else:
            console.print(f"⚠ Cleanup did not complete: {report.error}", style="bold yellow")

    except CleanupFailedError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"✗ Invalid cleanup request: {e}", style="bold red")
        raise typer.Exit(code=1)


audit_app = typer.Typer(help="Teardown audit log commands")


def _audit_dir(cfg: Config) -> Optional[str]:
    return cfg.storage_path


@audit_app.command("list")
def audit_list(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum operations to show"),
    storage_path: Optional[str] = typer.Option(None, "--storage-path", help="Audit log directory"),
):
    """List recent teardown operations."""
    storage = AuditStorage(storage_path or _audit_dir(config))
    operations = storage.list_operations(limit=limit)

    if not operations:
        console.print("No teardown operations recorded.")
        return

    table = Table(title="Teardown operations")
    table.add_column("Operation", style="cyan")
    table.add_column("Stack")
    table.add_column("Timestamp")
    table.add_column("Status")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Skipped", justify="right")
    for op in operations:
        table.add_row(
            op.get("operation_id", ""),
            op.get("stack_id", ""),
            str(op.get("timestamp", "")),
            op.get("status", ""),
            str(op.get("succeeded_count", 0)),
            str(op.get("failed_count", 0)),
            str(op.get("skipped_count", 0)),
        )
    console.print(table)


@audit_app.command("show")
def audit_show(
    operation_id: str = typer.Argument(..., help="Teardown operation ID"),
    storage_path: Optional[str] = typer.Option(None, "--storage-path", help="Audit log directory"),
):
    """Show one teardown audit log."""
    storage = AuditStorage(storage_path or _audit_dir(config))
    data = storage.get_operation(operation_id)
    if data is None:
        console.print(f"✗ Operation '{operation_id}' not found", style="bold red")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(data, default=str))


app.add_typer(audit_app, name="audit")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
