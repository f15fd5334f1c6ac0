"""
Command-line interface for SecureVault.
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from securevault.client.client import VaultClient
from securevault.client.domain.entities import (
    LinkContext,
    PublishState,
    RetrieveState,
    SelectedFile,
)
from securevault.common.config import Config
from securevault.common.exceptions import ErrorKind, VaultError
from securevault.common.models import ClientConfig, TransferPolicy, format_file_size
from securevault.server import start_server

_config = Config()


def _client(server_url: str | None) -> VaultClient:
    return VaultClient(server_url, client_config=ClientConfig())


class _ProgressTracker:
    """Feeds flow snapshots into a click progress bar."""

    def __init__(self, bar) -> None:
        self.bar = bar
        self.shown = 0

    def __call__(self, snapshot) -> None:
        if snapshot.progress > self.shown:
            self.bar.update(snapshot.progress - self.shown)
            self.shown = snapshot.progress


@click.group()
def cli() -> None:
    """SecureVault end-to-end encrypted file sharing"""


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--max-downloads",
    default=str(_config.DEFAULT_MAX_DOWNLOADS),
    show_default=True,
    type=click.Choice([str(n) for n in _config.MAX_DOWNLOADS_CHOICES]),
    help="How many times the file can be downloaded",
)
@click.option(
    "--expiry-hours",
    default=str(int(_config.DEFAULT_EXPIRY_HOURS)),
    show_default=True,
    type=click.Choice([str(n) for n in _config.EXPIRY_HOURS_CHOICES]),
    help="Hours until the file expires",
)
@click.option(
    "--server-url",
    default=None,
    help="Backend URL (default: from SECUREVAULT_SERVER_URL env)",
)
def publish(
    file: Path, max_downloads: str, expiry_hours: str, server_url: str | None
) -> None:
    """Encrypt a file locally and upload it"""
    client = _client(server_url)
    policy = TransferPolicy(
        max_downloads=int(max_downloads), expiry_hours=int(expiry_hours)
    )
    flow = client.publish_flow()
    flow.select_file(SelectedFile.from_path(file))

    with click.progressbar(length=100, label="Encrypting and uploading") as bar:
        unsubscribe = flow.subscribe(_ProgressTracker(bar))
        try:
            link = flow.publish(policy)
        finally:
            unsubscribe()

    if link is None or flow.state is not PublishState.PUBLISHED:
        message = flow.error.message if flow.error else "Upload failed."
        raise click.ClickException(message)

    click.echo(f"File uploaded ({format_file_size(flow.selected_file.size)})")
    click.echo("Share this link. Anyone with it can decrypt the file:")
    click.echo(link.url)


@cli.command()
@click.argument("link")
def info(link: str) -> None:
    """Show metadata for a shared link"""
    try:
        context = LinkContext.from_url(link)
        metadata = _client(context.base_url).info(context)
    except VaultError as e:
        raise click.ClickException(e.message) from e

    click.echo(f"Name:       {metadata.display_name}")
    click.echo(f"Size:       {format_file_size(metadata.file_size)}")
    click.echo(f"Downloads:  {metadata.remaining_downloads} remaining")
    click.echo(f"Expires at: {metadata.expires_at.isoformat()}")


@cli.command()
@click.argument("link")
@click.option(
    "--output-dir",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory to save the decrypted file to",
)
@click.option("--yes", "-y", is_flag=True, help="Download without asking")
def retrieve(link: str, output_dir: Path, yes: bool) -> None:  # noqa: FBT001
    """Download and decrypt a shared file"""
    try:
        context = LinkContext.from_url(link)
    except VaultError as e:
        raise click.ClickException(e.message) from e

    client = _client(context.base_url)
    flow = client.retrieve_flow(context, output_dir=output_dir)
    metadata = flow.load()
    if flow.state is not RetrieveState.READY or metadata is None:
        message = flow.error.message if flow.error else "Could not load the file."
        raise click.ClickException(message)

    click.echo(
        f"{metadata.display_name} ({format_file_size(metadata.file_size)}), "
        f"{metadata.remaining_downloads} download(s) remaining"
    )
    if not yes:
        click.confirm("Download now?", abort=True)

    with click.progressbar(length=100, label="Downloading and decrypting") as bar:
        unsubscribe = flow.subscribe(_ProgressTracker(bar))
        try:
            flow.download()
        finally:
            unsubscribe()

    if flow.state is not RetrieveState.SUCCESS:
        message = flow.error.message if flow.error else "Download failed."
        if flow.error and flow.error.kind is ErrorKind.SAVE_FAILED:
            message += " The download was counted, so the link may no longer work."
        raise click.ClickException(message)

    saver = flow.file_saver
    saved = saver.saved[-1] if saver is not None and saver.saved else None
    click.echo(f"Saved to {saved}" if saved else "Download complete")


@cli.command()
@click.option(
    "--host",
    default=None,
    help="Host to bind to (default: from SECUREVAULT_SERVER_HOST env or 127.0.0.1)",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Port to bind to (default: from SECUREVAULT_SERVER_PORT env or 8000)",
)
def serve(host: str | None, port: int | None) -> None:
    """Start the in-memory reference backend"""
    if host:
        os.environ["SECUREVAULT_SERVER_HOST"] = host
    if port:
        os.environ["SECUREVAULT_SERVER_PORT"] = str(port)

    start_server(Config())


if __name__ == "__main__":
    cli()
