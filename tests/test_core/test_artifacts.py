"""
ArtifactsManager のユニットテスト

ドライバは driver フィクスチャ（FakeDriver）と AsyncMock を使用する。

テスト対象:
  - create_run_dir(): ディレクトリ作成、命名規則、サブディレクトリ
  - capture_screenshot(): ファイル名形式、添付への追加、失敗時の None
  - save_scope_dump(): JSON 保存
  - _sanitize_label(): ファイル名のサニタイズ
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from webctx.core.artifacts import ArtifactsManager, _sanitize_label
from webctx.core.scopes import ScopedDataStack


class TestCreateRunDir:
    """create_run_dir のテスト。"""

    def test_naming_and_subdirs(self, tmp_path: Path) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)
        run_dir = manager.create_run_dir(datetime(2024, 5, 6, 7, 8, 9))

        assert run_dir == tmp_path / "run-20240506-070809"
        assert (run_dir / "screenshots").is_dir()
        assert (run_dir / "logs").is_dir()

    def test_default_timestamp(self, tmp_path: Path) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)
        run_dir = manager.create_run_dir()
        assert re.fullmatch(r"run-\d{8}-\d{6}", run_dir.name)


class TestCaptureScreenshot:
    """capture_screenshot のテスト。"""

    @pytest.mark.asyncio
    async def test_saves_and_attaches(self, tmp_path: Path, driver) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)

        path = await manager.capture_screenshot(driver, "search field")

        assert path is not None and path.exists()
        assert path.parent.name == "screenshots"
        assert path.name == "0001-search-field.png"
        assert manager.attachments[0].name == "Screenshot"
        assert manager.attachments[0].path == path

    @pytest.mark.asyncio
    async def test_counter_increments(self, tmp_path: Path, driver) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)
        await manager.capture_screenshot(driver, "a")
        second = await manager.capture_screenshot(driver, "b")
        assert second.name == "0002-b.png"

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, tmp_path: Path, caplog) -> None:
        """撮影に失敗しても例外を送出せず None を返すこと。"""
        manager = ArtifactsManager(base_dir=tmp_path)
        driver = AsyncMock()
        driver.screenshot = AsyncMock(side_effect=RuntimeError("browser closed"))

        assert await manager.capture_screenshot(driver) is None
        assert manager.attachments == []
        assert "スクリーンショット保存に失敗" in caplog.text


class TestSaveScopeDump:
    """save_scope_dump のテスト。"""

    def test_writes_json(self, tmp_path: Path) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)
        scopes = ScopedDataStack()
        scopes.set("q/locator", "id")

        path = manager.save_scope_dump(scopes)

        assert path.parent.name == "logs"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["scopes"][0]["entries"] == {"q/locator": "id"}
        assert manager.attachments[-1].name == "Scopes"

    def test_clear_keeps_files(self, tmp_path: Path) -> None:
        manager = ArtifactsManager(base_dir=tmp_path)
        path = manager.save_scope_dump(ScopedDataStack())
        manager.clear()
        assert manager.attachments == []
        assert path.exists()


class TestSanitizeLabel:
    """_sanitize_label のテスト。"""

    def test_replaces_unsafe_characters(self) -> None:
        assert _sanitize_label("a/b c:d") == "a-b-c-d"

    def test_collapses_hyphens(self) -> None:
        assert _sanitize_label("a  //  b") == "a-b"

    def test_empty_becomes_default(self) -> None:
        assert _sanitize_label("///") == "attachment"

    def test_keeps_unicode_word_characters(self) -> None:
        assert _sanitize_label("検索 ボタン") == "検索-ボタン"
