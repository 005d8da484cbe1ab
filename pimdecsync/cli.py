"""
CLI entry point for the DecSync PIM resource.
Runs the resource against a console host for inspection and manual changes.
"""
import logging
import sys
from concurrent.futures import Future
from pathlib import Path
from typing import List, Optional

import click

from .config import CONFIG_DIR, LOG_FILE_NAME, SETTINGS_FILE_NAME, Settings
from .decsync_client import DecsyncClient, describe_decsync_info
from .models import Collection, Item, collection_type
from .paths import collection_remote_id, item_remote_id, parse_collection_remote_id, parse_item_remote_id
from .resource import DecSyncResource, ResourceHost


logger = logging.getLogger(__name__)


def setup_logging(log_level: str, log_file: Path) -> None:
    """Configure logging with the specified level."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr)
        ],
        force=True,
    )
    logger.debug(f"Logging initialized at level {log_level}")


class ConsoleHost(ResourceHost):
    """ResourceHost that keeps results in memory and echoes status changes."""

    def __init__(self):
        self.collections: List[Collection] = []
        self.items: List[Item] = []
        self.committed: List[Item] = []
        self.online = False

    def collections_retrieved(self, collections: List[Collection]) -> None:
        self.collections = collections

    def items_retrieved(self, items: List[Item]) -> None:
        self.items = items

    def change_committed(self, item: Item) -> None:
        self.committed.append(item)

    def change_processed(self) -> None:
        pass

    def status(self, level: str, message: str) -> None:
        click.echo(f"[{level}] {message}", err=True)

    def set_online(self, online: bool) -> None:
        self.online = online

    def set_temporary_offline(self, seconds: int) -> None:
        click.echo(f"offline, retry in {seconds}s", err=True)

    def fetch_item(self, item: Item) -> "Future[Item]":
        # Items handed in from the command line already carry their payload
        job: "Future[Item]" = Future()
        job.set_result(item)
        return job


class CliState:
    """Per-invocation state shared by the commands."""

    def __init__(self, config_dir: Path):
        self.settings_path = config_dir / SETTINGS_FILE_NAME
        try:
            self.settings = Settings.load(self.settings_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load settings from {self.settings_path}: {e}")
            raise click.ClickException(f"Cannot read settings file {self.settings_path}: {e}")
        self.host = ConsoleHost()
        self._resource: Optional[DecSyncResource] = None

    @property
    def resource(self) -> DecSyncResource:
        if self._resource is None:
            self._resource = DecSyncResource(
                self.host, self.settings, DecsyncClient(), self.settings_path
            )
        return self._resource

    def online_resource(self) -> DecSyncResource:
        resource = self.resource
        if not self.host.online:
            raise click.ClickException("DecSync directory is not usable, run 'pimdecsync configure'")
        return resource

    def find_collection(self, remote_id: str) -> Collection:
        try:
            parse_collection_remote_id(remote_id)
        except ValueError as e:
            raise click.BadParameter(str(e))

        for collection in self.online_resource().retrieve_collections():
            if collection.remote_id == remote_id:
                return collection
        raise click.ClickException(f"No DecSync collection {remote_id}")


@click.group()
@click.option("--config-dir", type=click.Path(file_okay=False, path_type=Path),
              default=CONFIG_DIR, show_default=True, help="Directory holding settings and logs")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error", "critical"]),
              default="warning", show_default=True, help="Set the logging level")
@click.pass_context
def main(ctx: click.Context, config_dir: Path, log_level: str):
    """Synchronize PIM collections with a DecSync directory."""
    setup_logging(log_level, config_dir / LOG_FILE_NAME)
    ctx.obj = CliState(config_dir)


@main.command()
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_obj
def configure(state: CliState, path: Optional[str]):
    """Select the DecSync folder."""
    old_path = state.settings.decsync_dir
    if path is None:
        path = click.prompt(
            "Select DecSync folder",
            default=old_path or str(Path.home()),
            type=click.Path(exists=True, file_okay=False),
        )

    if state.resource.configure(path):
        click.echo(f"DecSync folder set to {path}")
        click.echo(f"{len(state.host.collections)} collections synchronized")
    else:
        click.echo("Configuration rejected")
        sys.exit(1)


@main.command()
@click.pass_obj
def status(state: CliState):
    """Show the DecSync folder and its state."""
    resource = state.resource
    path = state.settings.decsync_dir
    click.echo(f"DecSync folder: {path or '(not configured)'}")
    click.echo(f"App ID: {resource.app_id}")
    if path:
        click.echo(describe_decsync_info(resource.client.check_decsync_info(path), path))


@main.command()
@click.pass_obj
def collections(state: CliState):
    """List DecSync collections."""
    for collection in state.online_resource().retrieve_collections():
        if collection.is_type_folder:
            click.echo(collection.name)
        else:
            click.echo(f"  {collection.remote_id}  {collection.name}")


@main.command()
@click.argument("collection_id")
@click.pass_obj
def items(state: CliState, collection_id: str):
    """List the items of a collection (TYPE/NAME)."""
    collection = state.find_collection(collection_id)
    sync_type, name = parse_collection_remote_id(collection.remote_id)
    for item in state.resource.retrieve_items(collection):
        click.echo(f"{item_remote_id(sync_type, name, item.remote_id)}  {item.mime_type}  {len(item.payload)} bytes")


@main.command()
@click.argument("item_id")
@click.pass_obj
def show(state: CliState, item_id: str):
    """Print the payload of an item (TYPE/NAME/ITEM)."""
    item = _find_item(state, item_id)
    click.echo(item.payload.decode("utf-8", "replace"), nl=False)


@main.command()
@click.argument("collection_id")
@click.argument("item_id")
@click.argument("payload_file", type=click.File("rb"))
@click.pass_obj
def put(state: CliState, collection_id: str, item_id: str, payload_file):
    """Write an item to a collection from a file."""
    collection = state.find_collection(collection_id)
    sync_type, name = parse_collection_remote_id(collection.remote_id)
    item = Item(item_id, collection_type(sync_type).item_mimetype, payload_file.read(), collection)

    state.resource.item_added(item, collection)
    if item not in state.host.committed:
        raise click.ClickException(f"Failed to write item {item_id}")
    click.echo(f"Wrote {item_remote_id(sync_type, name, item_id)}")


@main.command()
@click.argument("item_id")
@click.pass_obj
def delete(state: CliState, item_id: str):
    """Delete an item (TYPE/NAME/ITEM)."""
    item = _find_item(state, item_id)
    state.resource.item_removed(item)
    if item not in state.host.committed:
        raise click.ClickException(f"Failed to delete item {item_id}")
    click.echo(f"Deleted {item_id}")


@main.command()
@click.pass_obj
def sync(state: CliState):
    """Retrieve all collections and their items."""
    resource = state.online_resource()
    total = 0
    for collection in resource.retrieve_collections():
        if collection.is_type_folder:
            continue
        count = len(resource.retrieve_items(collection))
        total += count
        click.echo(f"{collection.remote_id}: {count} items")
    click.echo(f"{total} items in total")


def _find_item(state: CliState, remote_id: str) -> Item:
    try:
        sync_type, name, item_id = parse_item_remote_id(remote_id)
    except ValueError as e:
        raise click.BadParameter(str(e))

    collection = state.find_collection(collection_remote_id(sync_type, name))
    for item in state.resource.retrieve_items(collection):
        if item.remote_id == item_id:
            return item
    raise click.ClickException(f"No item {remote_id}")


if __name__ == "__main__":
    main()
