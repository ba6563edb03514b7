"""
設定 — プロパティファイル・環境変数からの設定読み込み

明示的な上書き > 環境変数 > YAML プロパティファイル > デフォルト値
の優先順位でプロパティを解決する。

プロパティ一覧:
  webctx.wait.seconds                      : 待機タイムアウト秒数（デフォルト: 10）
  webctx.throttle.msecs                    : スクリプト成功後・ハイライトの待機ミリ秒（デフォルト: 100）
  webctx.capture.screenshots               : 要素操作ごとのスクリーンショット（デフォルト: false）
  webctx.capture.screenshots.highlighting  : ハイライト時のスクリーンショット（デフォルト: false）
  webctx.highlight                         : 特定した要素のハイライト（デフォルト: false）
  webctx.highlight.style                   : ハイライトの CSS スタイル
  webctx.artifacts.dir                     : 成果物ディレクトリ（デフォルト: artifacts）

環境変数は名前そのもの、または大文字化して "." を "_" に置換した名前
（例: WEBCTX_WAIT_SECONDS）で参照する。

Settings.get_opt() は任意のプロパティ名に使え、
属性解決の最終フォールバックとして参照される。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# プロパティ名定数
# ---------------------------------------------------------------------------

WAIT_SECONDS = "webctx.wait.seconds"
THROTTLE_MSECS = "webctx.throttle.msecs"
CAPTURE_SCREENSHOTS = "webctx.capture.screenshots"
CAPTURE_SCREENSHOTS_HIGHLIGHTING = "webctx.capture.screenshots.highlighting"
HIGHLIGHT = "webctx.highlight"
HIGHLIGHT_STYLE = "webctx.highlight.style"
ARTIFACTS_DIR = "webctx.artifacts.dir"

_FIELD_PROPERTIES = {
    "wait_seconds": WAIT_SECONDS,
    "throttle_msecs": THROTTLE_MSECS,
    "capture_screenshots": CAPTURE_SCREENSHOTS,
    "capture_screenshots_highlighting": CAPTURE_SCREENSHOTS_HIGHLIGHTING,
    "highlight": HIGHLIGHT,
    "highlight_style": HIGHLIGHT_STYLE,
    "artifacts_dir": ARTIFACTS_DIR,
}


# ---------------------------------------------------------------------------
# 型付き設定
# ---------------------------------------------------------------------------

class WebSettings(BaseModel):
    """型付きの設定値。

    Attributes:
        wait_seconds: 待機タイムアウト（秒）
        throttle_msecs: スクリプトが true を返した後・ハイライト時の待機（ミリ秒）
        capture_screenshots: 要素操作成功ごとにスクリーンショットを撮るか
        capture_screenshots_highlighting: ハイライト時にスクリーンショットを撮るか
        highlight: 特定した要素をハイライトするか
        highlight_style: ハイライトに使う CSS スタイル
        artifacts_dir: 成果物ディレクトリ
    """

    wait_seconds: int = Field(default=10, gt=0)
    throttle_msecs: int = Field(default=100, ge=0)
    capture_screenshots: bool = False
    capture_screenshots_highlighting: bool = False
    highlight: bool = False
    highlight_style: str = "background: yellow; border: 2px solid gold;"
    artifacts_dir: str = "artifacts"


# ---------------------------------------------------------------------------
# Settings 本体
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False
    """
    return value.strip().lower() in ("true", "1", "yes")


def _env_name(name: str) -> str:
    return name.upper().replace(".", "_")


class Settings:
    """プロパティの解決と型付き設定の生成を行う。

    使用例::

        settings = Settings.load(Path("webctx.yaml"))
        settings.web.wait_seconds        # 10
        settings.get_opt("base.url")     # "http://localhost:4200" or None
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """設定を初期化する。

        Args:
            properties: プロパティファイルから読み込んだ値
            overrides: 明示的な上書き値（最優先）
            environ: 環境変数（None の場合は os.environ。テスタビリティのため差し替え可）
        """
        self._properties: dict[str, str] = dict(properties or {})
        self._overrides: dict[str, str] = dict(overrides or {})
        self._environ: Mapping[str, str] = os.environ if environ is None else environ
        self._web: Optional[WebSettings] = None

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> Settings:
        """YAML プロパティファイルから設定を読み込む。

        Args:
            path: プロパティファイル。None の場合はファイルを読まない
            overrides: 明示的な上書き値

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: YAML 構文エラーの場合
        """
        properties: dict[str, str] = {}
        if path is not None:
            properties = load_properties(path)
        return cls(properties=properties, overrides=overrides)

    # ----- 公開メソッド -----

    def get_opt(self, name: str) -> Optional[str]:
        """プロパティ値を返す。未定義の場合は None。"""
        if name in self._overrides:
            return self._overrides[name]
        if name in self._environ:
            return self._environ[name]
        env_name = _env_name(name)
        if env_name in self._environ:
            return self._environ[env_name]
        return self._properties.get(name)

    def set(self, name: str, value: str) -> None:
        """プロパティを上書き設定する。"""
        self._overrides[name] = value
        self._web = None

    @property
    def web(self) -> WebSettings:
        """型付き設定を返す（初回アクセス時に生成してキャッシュする）。"""
        if self._web is None:
            self._web = self._build_web_settings()
        return self._web

    # ----- 内部メソッド -----

    def _build_web_settings(self) -> WebSettings:
        """プロパティから WebSettings を生成する。

        不正な値は警告を出力してデフォルト値を使用する。
        """
        defaults = WebSettings()
        values: dict[str, Any] = {}
        for field_name, prop in _FIELD_PROPERTIES.items():
            raw = self.get_opt(prop)
            if raw is None:
                continue
            default = getattr(defaults, field_name)
            candidate: Any = _parse_bool(raw) if isinstance(default, bool) else raw
            try:
                WebSettings(**{field_name: candidate})
            except ValidationError:
                logger.warning("%s の値が不正です: %s（デフォルト値 %s を使用）", prop, raw, default)
                continue
            values[field_name] = candidate

        web = WebSettings(**values)
        logger.debug("設定を読み込みました: %s", web)
        return web


# ---------------------------------------------------------------------------
# プロパティファイルの読み込み
# ---------------------------------------------------------------------------

def load_properties(path: Path) -> dict[str, str]:
    """YAML プロパティファイルを読み込み、"." 区切りのフラットな辞書に変換する。

    例::

        webctx:
          wait:
            seconds: 5

    は {"webctx.wait.seconds": "5"} になる。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: YAML 構文エラー、またはトップレベルがマッピングでない場合
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"設定ファイルが見つかりません: {path}")

    yaml = YAML(typ="safe")
    try:
        data = yaml.load(path.read_text(encoding="utf-8"))
    except YAMLError as exc:
        raise ValueError(f"設定ファイルの YAML 構文エラー: {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"設定ファイルのトップレベルはマッピングである必要があります: {path}")
    return _flatten(data)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{name}."))
        elif isinstance(value, bool):
            flat[name] = "true" if value else "false"
        elif value is not None:
            flat[name] = str(value)
    return flat
