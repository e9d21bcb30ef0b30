"""Shared test fixtures."""

import json
from pathlib import Path

import pytest
from navstage.config import (
    Config,
    DndConfig,
    PersistenceConfig,
    ServerConfig,
    StoreConfig,
)


@pytest.fixture
def store_file(tmp_path: Path) -> Path:
    """Write a store with an English header menu and a French footer menu.

    English header:
        Home [1]
        Products [2]
            Shoes [3]
                Boots [4]
            Hats [5]
        Contact [6]
    """
    items = [
        {"id": 1, "label": "Home", "url": "/", "parent_id": None, "order": 0},
        {"id": 2, "label": "Products", "url": "/products", "parent_id": None, "order": 1},
        {"id": 3, "label": "Shoes", "url": "/products/shoes", "parent_id": 2, "order": 0},
        {"id": 4, "label": "Boots", "url": "/products/shoes/boots", "parent_id": 3, "order": 0},
        {"id": 5, "label": "Hats", "url": "/products/hats", "parent_id": 2, "order": 1},
        {"id": 6, "label": "Contact", "url": "/contact", "parent_id": None, "order": 2},
    ]
    for item in items:
        item.update(menu_key="HEADER", language_code="en")
    items.append(
        {
            "id": 20,
            "label": "Mentions légales",
            "url": "/mentions",
            "parent_id": None,
            "order": 0,
            "menu_key": "FOOTER",
            "language_code": "fr",
        },
    )

    path = tmp_path / "navigation.json"
    path.write_text(json.dumps({"items": items}), encoding="utf-8")
    return path


@pytest.fixture
def test_config(tmp_path: Path, store_file: Path) -> Config:
    """Create a test configuration pointing at the sample store."""
    return Config(
        server=ServerConfig(),
        store=StoreConfig(data_file=store_file, languages=["en", "fr"]),
        dnd=DndConfig(),
        persistence=PersistenceConfig(timeout=5.0),
    )
