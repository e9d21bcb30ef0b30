"""JSON file store for navigation items.

Store structure:
    navigation.json
    {
      "items": [
        {"id": 1, "label": "Home", "url": "/", "parent_id": null,
         "order": 0, "menu_key": "HEADER", "language_code": "en"},
        ...
      ]
    }

Batch updates are applied per item and are not transactional: items that
cannot be updated are reported back while the others are saved.

Creating an item starts a translation group. Unless the item is itself a
translation of an existing group, a placeholder copy is added for every
other configured language so editors can fill in the translations later.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path

from navstage.core.reconciler import PersistResult
from navstage.core.tree import NavigationItem
from navstage.core.types import MENU_LOCATIONS, ItemUpdate

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The store file is unreadable or malformed."""


class ItemValidationError(ValueError):
    """Item fields were rejected."""


class ItemNotFoundError(LookupError):
    """No navigation item has the requested id."""


MISSING_FIELDS_ERROR = "Missing required fields: label, URL, language, or menu key."
LANGUAGE_CHANGE_ERROR = (
    "Changing the language of an existing navigation item version is not allowed. "
    "Create a new translation instead."
)


@dataclass(frozen=True)
class ItemFields:
    """Editable fields of a navigation item."""

    label: str
    url: str
    language_code: str
    menu_key: str
    order: int = 0
    parent_id: int | None = None
    page_slug: str | None = None

    @classmethod
    def from_item(cls, item: NavigationItem) -> ItemFields:
        return cls(
            label=item.label,
            url=item.url,
            language_code=item.language_code,
            menu_key=item.menu_key,
            order=item.order,
            parent_id=item.parent_id,
            page_slug=item.page_slug,
        )


@dataclass(frozen=True)
class CreatedItem:
    """A new item and the placeholder translations created with it."""

    item: NavigationItem
    placeholders: tuple[NavigationItem, ...] = ()

    @property
    def message(self) -> str:
        message = "Navigation item created successfully."
        if self.placeholders:
            message += (
                f" {len(self.placeholders)} placeholder version(s) also created"
                " (please edit their details)."
            )
        return message


class NavigationStore:
    """Navigation items persisted in a single JSON file."""

    def __init__(self, data_file: Path, languages: Iterable[str] = ()) -> None:
        """Initialize store with its data file.

        Args:
            data_file: JSON file holding all navigation items
            languages: Site language codes; new items get a placeholder in
                every other one. Empty means any language code is accepted.
        """
        self._data_file = data_file
        self._languages = tuple(languages)
        self._lock = threading.Lock()

    @property
    def data_file(self) -> Path:
        return self._data_file

    @property
    def languages(self) -> tuple[str, ...]:
        return self._languages

    def get_item(self, item_id: int) -> NavigationItem | None:
        with self._lock:
            items = self._read()
        return next((item for item in items if item.id == item_id), None)

    def load_items(
        self,
        menu_key: str | None = None,
        language_code: str | None = None,
    ) -> list[NavigationItem]:
        """Load items, optionally for one menu location and language.

        Items are ordered by parent (roots first) and then by order.

        Raises:
            StoreError: If the data file is malformed
        """
        with self._lock:
            items = self._read()
        selected = [
            item
            for item in items
            if (menu_key is None or item.menu_key == menu_key)
            and (language_code is None or item.language_code == language_code)
        ]
        selected.sort(key=lambda item: (item.parent_id is not None, item.parent_id or 0, item.order))
        return selected

    def list_menus(self) -> list[tuple[str, str]]:
        """Get distinct (menu_key, language_code) pairs present in the store."""
        with self._lock:
            items = self._read()
        return sorted({(item.menu_key, item.language_code) for item in items})

    def save_items(self, items: Sequence[NavigationItem]) -> None:
        """Replace the whole store content."""
        with self._lock:
            self._write(list(items))

    def create_item(
        self,
        fields: ItemFields,
        translation_group_id: str | None = None,
    ) -> CreatedItem:
        """Add a navigation item.

        Args:
            fields: Fields of the new item
            translation_group_id: Group of an existing item this one
                translates; a new group is started when None

        Returns:
            CreatedItem with the new item and, for a new group, one
            placeholder per other configured language

        Raises:
            ItemValidationError: If required fields are missing or invalid
        """
        self._validate(fields)

        with self._lock:
            items = self._read()
            next_id = max((item.id for item in items), default=0) + 1
            updated_at = datetime.now(tz=UTC).isoformat()
            item = NavigationItem(
                id=next_id,
                label=fields.label,
                url=fields.url,
                parent_id=fields.parent_id,
                order=fields.order,
                menu_key=fields.menu_key,
                language_code=fields.language_code,
                page_slug=fields.page_slug,
                translation_group_id=translation_group_id or str(uuid.uuid4()),
                updated_at=updated_at,
            )

            placeholders: list[NavigationItem] = []
            if translation_group_id is None:
                for language in self._languages:
                    if language == item.language_code:
                        continue
                    next_id += 1
                    placeholders.append(
                        NavigationItem(
                            id=next_id,
                            label=f"[{language.upper()}] {item.label}",
                            url="#",
                            order=item.order,
                            menu_key=item.menu_key,
                            language_code=language,
                            translation_group_id=item.translation_group_id,
                            updated_at=updated_at,
                        ),
                    )

            self._write([*items, item, *placeholders])

        logger.info(
            f"Created navigation item {item.id}"
            f" with {len(placeholders)} placeholder translation(s)",
        )
        return CreatedItem(item=item, placeholders=tuple(placeholders))

    def update_item(self, item_id: int, fields: ItemFields) -> NavigationItem:
        """Replace the editable fields of an item.

        The language of an existing item cannot change; translations are
        separate items in the same translation group.

        Raises:
            ItemNotFoundError: If there is no item with this id
            ItemValidationError: If fields are missing or the language changes
        """
        with self._lock:
            items = self._read()
            position = _position_of(items, item_id)
            if position is None:
                raise ItemNotFoundError("Original navigation item not found or error fetching it.")

            self._validate(fields)
            existing = items[position]
            if fields.language_code != existing.language_code:
                raise ItemValidationError(LANGUAGE_CHANGE_ERROR)

            items[position] = replace(
                existing,
                label=fields.label,
                url=fields.url,
                parent_id=fields.parent_id,
                order=fields.order,
                menu_key=fields.menu_key,
                page_slug=fields.page_slug,
                updated_at=datetime.now(tz=UTC).isoformat(),
            )
            self._write(items)

        logger.info(f"Updated navigation item {item_id}")
        return items[position]

    def delete_item(self, item_id: int) -> NavigationItem:
        """Remove one item.

        Its children are kept and now reference a missing parent; trees
        built from the store place them at the root until they are moved.

        Raises:
            ItemNotFoundError: If there is no item with this id
        """
        with self._lock:
            items = self._read()
            position = _position_of(items, item_id)
            if position is None:
                raise ItemNotFoundError(f"Navigation item {item_id} not found")
            deleted = items.pop(position)
            self._write(items)

        orphans = sum(1 for item in items if item.parent_id == item_id)
        if orphans:
            logger.warning(
                f"Deleted navigation item {item_id}, {orphans} child item(s) left at root",
            )
        else:
            logger.info(f"Deleted navigation item {item_id}")
        return deleted

    def update_structure_batch(self, updates: Sequence[ItemUpdate]) -> PersistResult:
        """Apply order and parent changes item by item.

        Args:
            updates: New position of each item

        Returns:
            PersistResult; on partial failure ``failed_ids`` lists the items
            that were not saved while the rest were written
        """
        if not updates:
            return PersistResult.failed("No items provided for update.")

        with self._lock:
            items = self._read()
            positions = {item.id: i for i, item in enumerate(items)}
            updated_at = datetime.now(tz=UTC).isoformat()
            failed: set[int] = set()

            for update in updates:
                position = positions.get(update["id"])
                if position is None:
                    logger.error(f"Error updating nav item {update['id']}: item not found")
                    failed.add(update["id"])
                    continue
                items[position] = replace(
                    items[position],
                    order=update["order"],
                    parent_id=update["parent_id"],
                    updated_at=updated_at,
                )

            self._write(items)

        if failed:
            return PersistResult.failed(
                f"Failed to update {len(failed)} item(s). Some changes might not have been saved.",
                frozenset(failed),
            )
        logger.info(f"Updated {len(updates)} navigation items in {self._data_file}")
        return PersistResult.ok()

    async def persist(self, updates: list[ItemUpdate]) -> PersistResult:
        """Batch update collaborator for PersistenceReconciler."""
        return await asyncio.to_thread(self.update_structure_batch, updates)

    def _validate(self, fields: ItemFields) -> None:
        if not fields.label or not fields.url or not fields.language_code or not fields.menu_key:
            raise ItemValidationError(MISSING_FIELDS_ERROR)
        if fields.menu_key not in MENU_LOCATIONS:
            raise ItemValidationError(f"menu_key must be one of {', '.join(MENU_LOCATIONS)}")
        if self._languages and fields.language_code not in self._languages:
            raise ItemValidationError(f"Unknown language: {fields.language_code}")

    def _read(self) -> list[NavigationItem]:
        """Read all items from the data file; missing file means no items."""
        if not self._data_file.exists():
            return []
        try:
            data = json.loads(self._data_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read {self._data_file}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise StoreError(f"{self._data_file} must contain an 'items' list")

        try:
            return [NavigationItem.from_dict(raw) for raw in data.get("items", [])]
        except ValueError as e:
            raise StoreError(f"Invalid item in {self._data_file}: {e}") from e

    def _write(self, items: list[NavigationItem]) -> None:
        """Write all items atomically."""
        self._data_file.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps({"items": [item.to_dict() for item in items]}, indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._data_file.parent,
            prefix=f".{self._data_file.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self._data_file)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
