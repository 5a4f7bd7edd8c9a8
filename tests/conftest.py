from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict

import pytest
from click.testing import CliRunner
from PIL import Image

from src.email_slicer.orchestrator import SliceOrchestrator
from tests.helpers.fake_scene import FakeFrame, FakeScene, RecordingSink, horizontal


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click runner configured for CLI smoke tests."""

    return CliRunner()


@pytest.fixture
def sink() -> RecordingSink:
    """Collect every message the core posts to the UI."""

    return RecordingSink()


@pytest.fixture
def fake_scene() -> FakeScene:
    """A 600x900 frame at (100, 50) with guides at 300 and 600."""

    return FakeScene(FakeFrame(guides=horizontal(300, 600)))


@pytest.fixture
def orchestrator(fake_scene: FakeScene, sink: RecordingSink) -> SliceOrchestrator:
    return SliceOrchestrator(fake_scene, sink)


@pytest.fixture
def scene_document(tmp_path: Path) -> Callable[..., Path]:
    """Write a scene document with a striped 600x900 frame image and return its path."""

    def _write(guides: Any = (300, 600), **frame_overrides: Any) -> Path:
        image = Image.new("RGB", (600, 900), (255, 0, 0))
        image.paste((0, 255, 0), (0, 300, 600, 600))
        image.paste((0, 0, 255), (0, 600, 600, 900))
        image.save(tmp_path / "frame.png")
        frame: Dict[str, Any] = {
            "id": "1:2",
            "name": "Spring Sale",
            "x": 40,
            "y": 20,
            "width": 600,
            "height": 900,
            "image": "frame.png",
            "guides": [{"axis": "Y", "offset": offset} for offset in guides]
            + [{"axis": "X", "offset": 300}],
        }
        frame.update(frame_overrides)
        path = tmp_path / "scene.json"
        path.write_text(json.dumps({"selection": ["1:2"], "frames": [frame]}), encoding="utf-8")
        return path

    return _write
