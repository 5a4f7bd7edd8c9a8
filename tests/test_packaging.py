from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from src.datatypes import PackageConfig, TemplateConfig
from src.email_slicer.models import ExportedArtifact
from src.email_slicer.packaging import PackageError, ZipPackager


def _slice(name: str, link: str | None = None) -> dict:
    return ExportedArtifact(name, name.encode(), 600, 300, 0.0, 0.0, link).to_message()


def test_package_writes_html_and_images(tmp_path: Path) -> None:
    payload = {
        "type": "package-zip",
        "html": "<!DOCTYPE html><p>ready</p>",
        "slices": [_slice("hero.jpg"), _slice("body.jpg")],
        "frameName": "spring-sale",
        "addFooter": True,
    }

    archive = ZipPackager(tmp_path / "dist").package(payload)

    assert archive == tmp_path / "dist" / "spring-sale.zip"
    with zipfile.ZipFile(archive) as handle:
        assert sorted(handle.namelist()) == ["images/body.jpg", "images/hero.jpg", "index.html"]
        assert handle.read("index.html").decode() == "<!DOCTYPE html><p>ready</p>"
        assert handle.read("images/hero.jpg") == b"hero.jpg"


def test_package_renders_html_when_missing(tmp_path: Path) -> None:
    payload = {"slices": [_slice("hero.jpg", "https://example.com")], "frameName": "Promo!", "addFooter": False}
    packager = ZipPackager(
        tmp_path,
        package_cfg=PackageConfig(html_filename="email.html"),
        template_cfg=TemplateConfig(image_dir="img"),
    )

    archive = packager.package(payload)

    assert archive.name == "promo.zip"
    with zipfile.ZipFile(archive) as handle:
        html = handle.read("email.html").decode()
        assert "img/hero.jpg" in handle.namelist()
    assert 'src="img/hero.jpg"' in html
    assert 'href="https://example.com"' in html
    assert "Unsubscribe" not in html


def test_package_rejects_empty_or_malformed_payloads(tmp_path: Path) -> None:
    packager = ZipPackager(tmp_path)
    with pytest.raises(PackageError, match="no slices"):
        packager.package({"slices": [], "frameName": "x"})
    with pytest.raises(PackageError, match="Malformed"):
        packager.package({"slices": [{"fileName": "a.jpg"}], "frameName": "x"})
