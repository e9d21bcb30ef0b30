"""CLI interface for Navstage.

Command-line tool for inspecting and reordering navigation menus.
"""

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import click

from navstage.config import Config
from navstage.core.mutator import normalize_tree
from navstage.core.projector import DragMove, DropProjector
from navstage.core.reconciler import PersistenceReconciler, TreeState, tree_to_updates
from navstage.core.session import NavigationEditor
from navstage.core.tree import NavigationItem, TreeNode, build_tree, check_tree, flatten_tree
from navstage.core.types import MENU_LOCATIONS
from navstage.store import (
    ItemFields,
    ItemNotFoundError,
    ItemValidationError,
    NavigationStore,
    StoreError,
)


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (debug logging)",
)
def cli(verbose: bool) -> None:
    """Navstage - navigation menu editing for multilingual sites."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: auto-discover navstage.toml)",
)
data_file_option = click.option(
    "--data-file",
    "-d",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Navigation store file (overrides config)",
)
indent_width_option = click.option(
    "--indent-width",
    type=click.IntRange(min=1),
    default=None,
    help="Pixels per nesting level (overrides config)",
)


@cli.command()
@config_option
@data_file_option
@indent_width_option
@click.option("--host", default=None, help="Host to bind to (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to (overrides config)")
def serve(
    config_path: Path | None,
    data_file: Path | None,
    indent_width: int | None,
    host: str | None,
    port: int | None,
) -> None:
    """Start the navigation API server."""
    from navstage.server import run_server

    config = _load_config(config_path, data_file, indent_width).with_overrides(
        host=host,
        port=port,
    )

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Navigation store: {config.store.data_file}")
    run_server(config)


@cli.command()
@click.argument("menu_key", type=click.Choice(MENU_LOCATIONS, case_sensitive=False))
@click.argument("language")
@config_option
@data_file_option
def show(
    menu_key: str,
    language: str,
    config_path: Path | None,
    data_file: Path | None,
) -> None:
    """Print the navigation tree of one menu."""
    config = _load_config(config_path, data_file)
    tree = _load_tree(_store(config), menu_key, language)
    _print_tree(tree)


@cli.command()
@click.argument("menu_key", type=click.Choice(MENU_LOCATIONS, case_sensitive=False))
@click.argument("language")
@click.argument("active_id", type=int)
@click.option("--over", "over_id", type=int, default=None, help="Id of the hovered item")
@click.option("--dx", type=float, default=0.0, help="Horizontal drag distance")
@click.option("--dy", type=float, default=0.0, help="Vertical drag distance")
@click.option(
    "--before/--after",
    default=None,
    help="Drop in the upper/lower half of the hovered row (default: lower)",
)
@config_option
@data_file_option
@indent_width_option
def project(
    menu_key: str,
    language: str,
    active_id: int,
    over_id: int | None,
    dx: float,
    dy: float,
    before: bool | None,
    config_path: Path | None,
    data_file: Path | None,
    indent_width: int | None,
) -> None:
    """Show where an item would land for a drag, without moving it."""
    config = _load_config(config_path, data_file, indent_width)
    tree = _load_tree(_store(config), menu_key, language)
    projector = DropProjector(config.dnd.to_settings())

    drag = DragMove(active_id=active_id, over_id=over_id, delta_x=dx, delta_y=dy, before=before)
    projection = projector.project(tree, drag)
    if projection is None:
        click.echo("No valid drop target")
        return

    parent = "root" if projection.parent_id is None else f"item {projection.parent_id}"
    click.echo(f"Parent: {parent}")
    click.echo(f"Index: {projection.index}")
    click.echo(f"Depth: {projection.depth}")


@cli.command()
@click.argument("menu_key", type=click.Choice(MENU_LOCATIONS, case_sensitive=False))
@click.argument("language")
@click.argument("active_id", type=int)
@click.option("--over", "over_id", type=int, default=None, help="Id of the hovered item")
@click.option("--dx", type=float, default=0.0, help="Horizontal drag distance")
@click.option("--dy", type=float, default=0.0, help="Vertical drag distance")
@click.option(
    "--before/--after",
    default=None,
    help="Drop in the upper/lower half of the hovered row (default: lower)",
)
@config_option
@data_file_option
@indent_width_option
def move(
    menu_key: str,
    language: str,
    active_id: int,
    over_id: int | None,
    dx: float,
    dy: float,
    before: bool | None,
    config_path: Path | None,
    data_file: Path | None,
    indent_width: int | None,
) -> None:
    """Drag an item and save the new menu structure."""
    config = _load_config(config_path, data_file, indent_width)
    store = _store(config)
    editor = NavigationEditor(
        TreeState(),
        DropProjector(config.dnd.to_settings()),
        PersistenceReconciler(store.persist, timeout=config.persistence.timeout),
    )
    editor.load(_load_items(store, menu_key, language))

    if not editor.start_drag(active_id):
        click.echo(click.style(f"Error: item {active_id} not found", fg="red"), err=True)
        sys.exit(1)
    editor.move(
        DragMove(active_id=active_id, over_id=over_id, delta_x=dx, delta_y=dy, before=before),
    )
    outcome = asyncio.run(editor.drop())

    if outcome is None:
        click.echo("No valid drop target, menu unchanged")
        return

    _print_tree(outcome.tree)
    if outcome.unconfirmed:
        click.echo(
            click.style(
                f"Error: {outcome.error}, the store may still apply the change",
                fg="red",
            ),
            err=True,
        )
        sys.exit(1)
    if not outcome.ok:
        click.echo(
            click.style(f"Error: reorder could not be saved: {outcome.error}", fg="red"),
            err=True,
        )
        sys.exit(1)

    if outcome.persisted:
        click.echo(click.style("\nNavigation structure saved.", fg="green"))
    else:
        click.echo("\nPositions unchanged, nothing to save.")


@cli.command()
@click.argument("menu_key", type=click.Choice(MENU_LOCATIONS, case_sensitive=False))
@click.argument("language")
@click.argument("label")
@click.argument("url")
@click.option("--parent", "parent_id", type=int, default=None, help="Id of the parent item")
@click.option("--order", type=int, default=0, help="Position among siblings")
@click.option("--page-slug", default=None, help="Slug of the linked page")
@click.option(
    "--translation-of",
    "translation_group_id",
    default=None,
    help="Translation group to join instead of creating placeholders",
)
@config_option
@data_file_option
def add(
    menu_key: str,
    language: str,
    label: str,
    url: str,
    parent_id: int | None,
    order: int,
    page_slug: str | None,
    translation_group_id: str | None,
    config_path: Path | None,
    data_file: Path | None,
) -> None:
    """Add a navigation item to a menu."""
    config = _load_config(config_path, data_file)
    fields = ItemFields(
        label=label.strip(),
        url=url.strip(),
        language_code=language,
        menu_key=menu_key.upper(),
        order=order,
        parent_id=parent_id,
        page_slug=page_slug,
    )

    try:
        created = _store(config).create_item(fields, translation_group_id)
    except (ItemValidationError, StoreError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(created.message, fg="green"))
    click.echo(f"Created: {created.item.id}")
    for placeholder in created.placeholders:
        click.echo(f"Placeholder: {placeholder.id} ({placeholder.language_code})")


@cli.command()
@click.argument("item_id", type=int)
@click.option("--label", default=None, help="New label")
@click.option("--url", default=None, help="New URL")
@click.option(
    "--menu",
    "menu_key",
    type=click.Choice(MENU_LOCATIONS, case_sensitive=False),
    default=None,
    help="New menu location",
)
@click.option("--language", default=None, help="Language code (cannot be changed)")
@click.option("--order", type=int, default=None, help="New position among siblings")
@click.option("--parent", "parent_id", type=int, default=None, help="New parent item id")
@click.option("--root", is_flag=True, help="Move the item to the top level")
@click.option("--page-slug", default=None, help="New linked page slug")
@config_option
@data_file_option
def edit(
    item_id: int,
    label: str | None,
    url: str | None,
    menu_key: str | None,
    language: str | None,
    order: int | None,
    parent_id: int | None,
    root: bool,
    page_slug: str | None,
    config_path: Path | None,
    data_file: Path | None,
) -> None:
    """Change fields of a navigation item."""
    config = _load_config(config_path, data_file)
    store = _store(config)

    try:
        item = store.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(f"Navigation item {item_id} not found")

        fields = ItemFields.from_item(item)
        changes = {
            "label": label.strip() if label is not None else None,
            "url": url.strip() if url is not None else None,
            "menu_key": menu_key.upper() if menu_key is not None else None,
            "language_code": language,
            "order": order,
            "parent_id": parent_id,
            "page_slug": page_slug,
        }
        fields = replace(
            fields,
            **{key: value for key, value in changes.items() if value is not None},
        )
        if root:
            fields = replace(fields, parent_id=None)

        store.update_item(item_id, fields)
    except (ItemNotFoundError, ItemValidationError, StoreError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Item updated successfully", fg="green"))


@cli.command()
@click.argument("item_id", type=int)
@config_option
@data_file_option
def delete(item_id: int, config_path: Path | None, data_file: Path | None) -> None:
    """Delete a navigation item; its children move to the top level."""
    config = _load_config(config_path, data_file)

    try:
        deleted = _store(config).delete_item(item_id)
    except (ItemNotFoundError, StoreError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"Deleted {deleted.label} [{deleted.id}]", fg="green"))


@cli.command()
@config_option
@data_file_option
@click.option("--fix", is_flag=True, help="Renormalize and save menus with problems")
def check(config_path: Path | None, data_file: Path | None, fix: bool) -> None:
    """Check stored menus for orphans, stale depths and order gaps."""
    config = _load_config(config_path, data_file)
    store = _store(config)

    try:
        menus = store.list_menus()
    except StoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    unresolved = 0
    for menu_key, language in menus:
        items = _load_items(store, menu_key, language)
        known_ids = {item.id for item in items}
        problems = [
            f"Item {item.id} references missing parent {item.parent_id}"
            for item in items
            if item.parent_id is not None and item.parent_id not in known_ids
        ]
        tree = build_tree(items)
        problems.extend(check_tree(tree))

        if not problems:
            click.echo(f"{menu_key}/{language}: OK")
            continue

        click.echo(f"{menu_key}/{language}: {len(problems)} problem(s)")
        for problem in problems:
            click.echo(f"  - {problem}")

        if not fix:
            unresolved += 1
            continue

        result = store.update_structure_batch(tree_to_updates(normalize_tree(tree)))
        if result.success:
            click.echo(click.style("  Fixed.", fg="green"))
        else:
            click.echo(click.style(f"  Error: {result.error}", fg="red"), err=True)
            unresolved += 1

    if unresolved:
        sys.exit(1)


def _load_config(
    config_path: Path | None,
    data_file: Path | None,
    indent_width: int | None = None,
) -> Config:
    """Load config, exiting with an error message when it is invalid."""
    try:
        config = Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    return config.with_overrides(data_file=data_file, indent_width=indent_width)


def _store(config: Config) -> NavigationStore:
    return NavigationStore(config.store.data_file, config.store.languages)


def _load_items(
    store: NavigationStore,
    menu_key: str,
    language: str,
) -> list[NavigationItem]:
    try:
        return store.load_items(menu_key.upper(), language)
    except StoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


def _load_tree(store: NavigationStore, menu_key: str, language: str) -> list[TreeNode]:
    return build_tree(_load_items(store, menu_key, language))


def _print_tree(tree: list[TreeNode]) -> None:
    if not tree:
        click.echo("No navigation items found")
        return
    for node in flatten_tree(tree):
        click.echo(f"{'  ' * node.depth}- {node.label} [{node.id}] {node.item.url}")
