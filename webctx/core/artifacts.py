"""
ArtifactsManager — スクリーンショットと診断情報の添付管理

要素操作の成功時・ステップ失敗時に保存する成果物（スクリーンショット、
スコープダンプ）を管理し、レポート用の添付リストとして保持する。

添付の保存に失敗しても呼び出し元の操作は失敗させない（警告ログのみ）。

ディレクトリ構成:
  <base_dir>/run-YYYYMMDD-HHMMSS/
    screenshots/NNNN-<label>.png
    logs/NNNN-scopes.json
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .driver import WebDriver
    from .scopes import ScopedDataStack

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-]")
"""ファイル名に使用できない文字を検出する正規表現。"""


@dataclass
class Attachment:
    """レポートに添付する成果物。

    Attributes:
        name: 添付名（"Screenshot" / "Scopes" など）
        path: ファイルパス
    """

    name: str
    path: Path


@dataclass
class ArtifactsManager:
    """成果物の保存と添付リストの管理。

    Attributes:
        base_dir: 成果物ベースディレクトリ（デフォルト: artifacts/）
        run_dir: 実行ディレクトリ（初回保存時に作成される）
        attachments: 保存済みの添付リスト（保存順）
    """

    base_dir: Path = field(default_factory=lambda: Path("artifacts"))
    run_dir: Optional[Path] = field(default=None, init=False)
    attachments: list[Attachment] = field(default_factory=list, init=False)
    _counter: int = field(default=0, init=False, repr=False)

    # ----- ディレクトリ作成 -----

    def create_run_dir(self, timestamp: Optional[datetime] = None) -> Path:
        """実行ディレクトリを作成する。

        <base_dir>/run-YYYYMMDD-HHMMSS/ を作成し、screenshots/ と logs/ も作成する。

        Args:
            timestamp: ディレクトリ名に使用するタイムスタンプ。None の場合は現在時刻
        """
        if timestamp is None:
            timestamp = datetime.now()

        self.run_dir = self.base_dir / f"run-{timestamp.strftime('%Y%m%d-%H%M%S')}"
        for subdir in ("screenshots", "logs"):
            (self.run_dir / subdir).mkdir(parents=True, exist_ok=True)

        logger.info("実行ディレクトリを作成しました: %s", self.run_dir)
        return self.run_dir

    # ----- 保存 -----

    async def capture_screenshot(self, driver: WebDriver, label: str = "screenshot") -> Optional[Path]:
        """現在のページのスクリーンショットを保存して添付に追加する。

        Returns:
            保存したファイルのパス。失敗した場合は None（例外は送出しない）
        """
        path = self._next_path("screenshots", label, "png")
        try:
            saved = await driver.screenshot(path)
        except Exception as exc:
            logger.warning("スクリーンショット保存に失敗: %s", exc)
            return None
        self.attachments.append(Attachment("Screenshot", saved))
        logger.debug("スクリーンショットを保存しました: %s", saved)
        return saved

    def save_scope_dump(self, scopes: ScopedDataStack) -> Optional[Path]:
        """スコープスタックの JSON ダンプを保存して添付に追加する。

        Returns:
            保存したファイルのパス。失敗した場合は None（例外は送出しない）
        """
        path = self._next_path("logs", "scopes", "json")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(scopes.to_json(), encoding="utf-8")
        except OSError as exc:
            logger.warning("スコープダンプの保存に失敗: %s", exc)
            return None
        self.attachments.append(Attachment("Scopes", path))
        return path

    def clear(self) -> None:
        """添付リストをクリアする（ファイルは削除しない）。"""
        self.attachments.clear()

    # ----- 内部メソッド -----

    def _next_path(self, subdir: str, label: str, ext: str) -> Path:
        if self.run_dir is None:
            self.create_run_dir()
        self._counter += 1
        return self.run_dir / subdir / f"{self._counter:04d}-{_sanitize_label(label)}.{ext}"


def _sanitize_label(name: str) -> str:
    """ラベルをファイル名に安全な文字列に変換する。

    英数字、ハイフン、アンダースコア以外の文字をハイフンに置換し、
    連続するハイフンを1つにまとめる。
    """
    sanitized = _UNSAFE_CHARS.sub("-", name)
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-") or "attachment"
