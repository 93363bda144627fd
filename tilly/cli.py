"""
Tilly CLI - Command line interface for running notification jobs.

Usage:
    tilly --help                     Show all commands
    tilly deliver                    Run one notification delivery pass
    tilly test-push USER_ID          Send a test notification to a user's devices
"""

import asyncio

import typer

app = typer.Typer(
    name="tilly",
    help="Tilly CLI - Notification job runner for tilly.app",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_skipped(message: str) -> None:
    """Print a skipped step message."""
    typer.echo(f"  ⏭️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@app.command()
def deliver():
    """Run one notification delivery pass over all accounts."""
    from tilly.jobs.deliver import main

    run = asyncio.run(main())

    typer.echo(f"\n🔔 {run.message}")
    for result in run.results:
        if result.success:
            _print_success(f"{result.user_id}: {result.notification_count} due")
        else:
            _print_error(f"{result.user_id}: all devices failed")
    if run.skipped_count:
        _print_skipped(f"{run.skipped_count} accounts skipped")
    if run.error_count:
        _print_error(f"{run.error_count} accounts failed, see logs")


@app.command("test-push")
def test_push(
    user_id: str = typer.Argument(..., help="Account ID to notify"),
    endpoint: str | None = typer.Option(
        None, "--endpoint", "-e", help="Only notify the device with this endpoint"
    ),
):
    """Send a test notification to a user's enabled devices."""
    from tilly.config import get_config
    from tilly.core.database import AsyncSessionLocal
    from tilly.core.logging import setup_logging
    from tilly.services.notification_delivery import DeviceNotFoundError, send_test_notification
    from tilly.services.notification_store import AccountNotFoundError, SqlNotificationStore
    from tilly.services.push_service import PushSender

    setup_logging()
    config = get_config()
    store = SqlNotificationStore(AsyncSessionLocal)
    sender = PushSender.from_settings(config.settings, config.push)

    try:
        outcomes = asyncio.run(
            send_test_notification(store, sender, config.push, user_id, endpoint=endpoint)
        )
    except (AccountNotFoundError, DeviceNotFoundError) as e:
        _print_error(str(e))
        raise typer.Exit(1)

    failed = False
    for device, result in outcomes:
        label = device.device_name or device.endpoint[-20:]
        if result.ok:
            _print_success(f"Sent to {label}")
        else:
            failed = True
            _print_error(f"{label}: {result.error}")

    if failed:
        raise typer.Exit(1)


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "tilly.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
