"""
Shared pytest fixtures for the item catalog tests.

Provides:
  - Isolated AppSettings rooted in tmp_path
  - FastAPI TestClient with auth bypassed, and one with auth enforced
  - ItemStore / AssetStore instances on temp directories
  - Sample item records
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so we can import app modules
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_PASSWORD = "hunter2"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def make_settings(tmp_path: Path, **overrides: Any):
    from app_config import AppSettings

    data_dir = tmp_path / "data"
    values: Dict[str, Any] = {
        "password": TEST_PASSWORD,
        "session_secret": "test-secret",
        "data_dir": data_dir,
        "items_path": data_dir / "items.json",
        "upload_dir": tmp_path / "uploads",
        "db_path": data_dir / "sessions.db",
    }
    values.update(overrides)
    return AppSettings(**values)


@pytest.fixture()
def settings(tmp_path: Path):
    return make_settings(tmp_path, dev_skip_auth=True)


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(settings):
    """TestClient wired to a fresh app; auth bypassed via dev_skip_auth."""
    from fastapi.testclient import TestClient
    from main import create_app

    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture()
def auth_client(tmp_path: Path):
    """TestClient with login enforced."""
    from fastapi.testclient import TestClient
    from main import create_app

    with TestClient(create_app(make_settings(tmp_path, dev_skip_auth=False))) as c:
        yield c


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class RecordingAssets:
    """Stands in for AssetStore and records every delete call."""

    def __init__(self, fail_with: Exception = None):
        self.deleted: List[str] = []
        self.fail_with = fail_with

    def delete_asset(self, reference: str) -> None:
        self.deleted.append(reference)
        if self.fail_with is not None:
            raise self.fail_with


@pytest.fixture()
def recording_assets() -> RecordingAssets:
    return RecordingAssets()


@pytest.fixture()
def item_store(tmp_path: Path, recording_assets: RecordingAssets):
    from item_store import ItemStore

    return ItemStore(tmp_path / "items.json", assets=recording_assets)


@pytest.fixture()
def asset_store(tmp_path: Path):
    from asset_store import AssetStore

    return AssetStore(tmp_path / "uploads" / "images", max_bytes=1024)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture()
def waterbottle() -> Dict[str, Any]:
    return {
        "name": "waterbottle",
        "label": "Water Bottle",
        "weight": 500,
        "client": {"usetime": 2500, "status": {"thirst": 200000}},
    }


@pytest.fixture()
def sample_items(waterbottle) -> List[Dict[str, Any]]:
    return [
        waterbottle,
        {
            "name": "burger",
            "label": "Burger",
            "weight": 220,
            "degrade": 60,
            "stack": True,
            "client": {
                "anim": "eating",
                "prop": "burger",
                "usetime": 2500,
                "notification": "You ate a delicious burger",
                "imageurl": "http://old-host:3000/uploads/images/1700000000000-burger.png",
                "status": {"hunger": 200000, "stress": -5000},
            },
            "server": {"export": "food.eat"},
            "buttons": [
                {"label": "Take a bite", "group": "eat", "action": "bite"},
                {"label": "Throw away", "group": "misc", "action": "discard"},
            ],
        },
        {"name": "phone", "label": "Phone", "consume": 0},
    ]
