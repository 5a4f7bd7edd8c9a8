from __future__ import annotations

import asyncio
import logging

import pytest
from _pytest.logging import LogCaptureFixture

from src.datatypes import AppConfig
from src.email_slicer.errors import NoArtifactsError, NoGuidesError, RegionCapacityError
from src.email_slicer.models import Guide, SliceTag
from src.email_slicer.orchestrator import SliceOrchestrator
from tests.helpers.fake_scene import FakeFrame, FakeScene, RecordingSink, horizontal


def test_generate_slices_creates_tagged_artifacts_at_page_coordinates(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene, sink: RecordingSink
) -> None:
    count = asyncio.run(orchestrator.generate_slices())

    assert count == 3
    group = fake_scene.find_group("__EMAIL_SLICES__")
    assert group is not None
    assert [(a.absolute_x, a.absolute_y, a.width, a.height) for a in group.children] == [
        (100.0, 50.0, 600.0, 300),
        (100.0, 350.0, 600.0, 300),
        (100.0, 650.0, 600.0, 300),
    ]
    assert [a.name for a in group.children] == ["slice-001", "slice-002", "slice-003"]
    assert SliceTag.from_tags(group.children[1].tags) == SliceTag(index=1, y0=300, y1=600)
    assert group.children[1].tags["kind"] == "email-slice"
    assert fake_scene.loose == []
    assert sink.messages == [{"type": "slices-generated", "count": 3}]


def test_generate_slices_replaces_existing_group(orchestrator: SliceOrchestrator, fake_scene: FakeScene) -> None:
    asyncio.run(orchestrator.generate_slices())
    first = fake_scene.find_group("__EMAIL_SLICES__")
    asyncio.run(orchestrator.generate_slices())

    assert len(fake_scene.groups) == 1
    assert fake_scene.find_group("__EMAIL_SLICES__") is not first


def test_generate_without_guides_reports_and_mutates_nothing(sink: RecordingSink) -> None:
    scene = FakeScene(FakeFrame(guides=[Guide("X", 40.0)]))
    with pytest.raises(NoGuidesError, match="No horizontal guides"):
        asyncio.run(SliceOrchestrator(scene, sink).generate_slices())
    assert scene.calls == []
    assert sink.messages == []


def test_generate_over_capacity_refuses_before_creating(sink: RecordingSink) -> None:
    scene = FakeScene(FakeFrame(height=20_000, guides=horizontal(*range(100, 15_100, 100))))
    with pytest.raises(RegionCapacityError):
        asyncio.run(SliceOrchestrator(scene, sink).generate_slices())
    assert scene.calls_named("create") == []


def test_capacity_limit_comes_from_config(sink: RecordingSink) -> None:
    cfg = AppConfig()
    cfg.slicer.max_regions = 2
    scene = FakeScene(FakeFrame(guides=horizontal(300, 600)))
    with pytest.raises(RegionCapacityError, match=r"\(3\)"):
        asyncio.run(SliceOrchestrator(scene, sink, cfg).generate_slices())


def test_invalid_selection_is_a_silent_no_op(sink: RecordingSink) -> None:
    frame = FakeFrame(guides=horizontal(300))
    for selection in ([], [frame, FakeFrame()]):
        scene = FakeScene(frame, selection=selection)
        orchestrator = SliceOrchestrator(scene, sink)
        assert asyncio.run(orchestrator.generate_slices()) == 0
        assert asyncio.run(orchestrator.export_html()) is None
        asyncio.run(orchestrator.clear_guides())
        assert scene.calls == []
    assert sink.messages == []


def test_export_generates_missing_slices_and_hands_off(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene, sink: RecordingSink
) -> None:
    message = asyncio.run(orchestrator.export_html(add_footer=False))

    assert message is not None
    assert sink.types == [
        "slices-generated",
        "export-progress",
        "export-progress",
        "export-progress",
        "package-zip",
    ]
    assert [(m["current"], m["total"]) for m in sink.of_type("export-progress")] == [(1, 3), (2, 3), (3, 3)]
    assert message["frameName"] == "newsletter"
    assert message["addFooter"] is False
    slices = message["slices"]
    assert [s["fileName"] for s in slices] == ["slice-001.jpg", "slice-002.jpg", "slice-003.jpg"]
    assert slices[1]["bytes"] == b"jpg:350:300"
    assert (slices[1]["width"], slices[1]["height"], slices[1]["absY"]) == (600, 300, 350.0)
    assert message["html"].count("<tr>") == 3
    assert "Unsubscribe" not in message["html"]


def test_export_uses_temporary_artifacts_and_removes_each(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene
) -> None:
    asyncio.run(orchestrator.generate_slices())
    asyncio.run(orchestrator.export_html())

    exported = [artifact for artifact, _fmt, _scale in fake_scene.calls_named("export")]
    group = fake_scene.find_group("__EMAIL_SLICES__")
    assert group is not None
    assert all(artifact not in group.children for artifact in exported)
    assert all(artifact in fake_scene.calls_named("remove") for artifact in exported)
    assert fake_scene.loose == []
    assert {(fmt, scale) for _artifact, fmt, scale in fake_scene.calls_named("export")} == {("jpg", 1.0)}


def test_export_honours_renamed_artifacts_and_links(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene
) -> None:
    asyncio.run(orchestrator.generate_slices())
    group = fake_scene.find_group("__EMAIL_SLICES__")
    assert group is not None
    group.children[0].name = "Hero (https://example.com/?a=1&b=2)"
    group.children[1].name = "Hero"
    group.children[2].name = "Hero (note)"

    message = asyncio.run(orchestrator.export_html())

    assert message is not None
    assert [s["fileName"] for s in message["slices"]] == ["hero.jpg", "hero-1.jpg", "hero-note.jpg"]
    assert [s["linkUrl"] for s in message["slices"]] == ["https://example.com/?a=1&b=2", None, None]
    assert 'href="https://example.com/?a=1&amp;b=2"' in message["html"]


def test_export_orders_entries_by_position(orchestrator: SliceOrchestrator, fake_scene: FakeScene) -> None:
    asyncio.run(orchestrator.generate_slices())
    group = fake_scene.find_group("__EMAIL_SLICES__")
    assert group is not None
    group.children.reverse()

    message = asyncio.run(orchestrator.export_html())

    assert message is not None
    assert [s["absY"] for s in message["slices"]] == [50.0, 350.0, 650.0]


def test_export_without_guides_reports_no_guides(sink: RecordingSink) -> None:
    scene = FakeScene(FakeFrame())
    with pytest.raises(NoGuidesError):
        asyncio.run(SliceOrchestrator(scene, sink).export_html())
    assert scene.calls == []


def test_export_with_empty_group_reports_no_slice_nodes(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene
) -> None:
    asyncio.run(orchestrator.generate_slices())
    group = fake_scene.find_group("__EMAIL_SLICES__")
    assert group is not None
    group.children.clear()

    with pytest.raises(NoArtifactsError, match="No slice nodes found in __EMAIL_SLICES__ group."):
        asyncio.run(orchestrator.export_html())


def test_rasterisation_failure_propagates_after_cleanup(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene, sink: RecordingSink
) -> None:
    def _explode(artifact: object) -> bytes:
        raise RuntimeError("render failed")

    asyncio.run(orchestrator.generate_slices())
    fake_scene.export_hook = _explode

    with pytest.raises(RuntimeError, match="render failed"):
        asyncio.run(orchestrator.export_html())
    assert fake_scene.loose == []
    assert sink.of_type("package-zip") == []


def test_cleanup_failure_is_logged_not_raised(
    orchestrator: SliceOrchestrator, fake_scene: FakeScene, caplog: LogCaptureFixture
) -> None:
    asyncio.run(orchestrator.generate_slices())
    fake_scene.fail_remove_temp = True
    caplog.set_level(logging.WARNING, logger="src.email_slicer.orchestrator")

    message = asyncio.run(orchestrator.export_html())

    assert message is not None
    assert len(message["slices"]) == 3
    assert any("Failed to remove temporary slice" in record.getMessage() for record in caplog.records)


def test_export_format_follows_config(fake_scene: FakeScene, sink: RecordingSink) -> None:
    cfg = AppConfig()
    cfg.export.format = "png"
    message = asyncio.run(SliceOrchestrator(fake_scene, sink, cfg).export_html())
    assert message is not None
    assert message["slices"][0]["fileName"] == "slice-001.png"


def test_clear_slices_removes_group(orchestrator: SliceOrchestrator, fake_scene: FakeScene, sink: RecordingSink) -> None:
    asyncio.run(orchestrator.generate_slices())
    asyncio.run(orchestrator.clear_slices())
    assert fake_scene.groups == []
    assert sink.types[-1] == "slices-cleared"


def test_clear_guides_keeps_vertical_guides_and_rebroadcasts(sink: RecordingSink) -> None:
    frame = FakeFrame(guides=[Guide("Y", 100.0), Guide("X", 50.0), Guide("Y", 200.0)])
    orchestrator = SliceOrchestrator(FakeScene(frame), sink)

    asyncio.run(orchestrator.clear_guides())

    assert frame.guides == [Guide("X", 50.0)]
    assert sink.types == ["guides-cleared", "selection-changed"]
    assert sink.messages[-1]["guideCount"] == 0
