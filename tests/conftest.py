"""
テスト共通フィクスチャ定義

全テストモジュールで共有するフィクスチャを提供する。
実際のブラウザは起動せず、WebDriver / WebElement Protocol を満たす
インメモリのフェイク実装（FakeDriver / FakeElement）を使用する。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from webctx.core.artifacts import ArtifactsManager
from webctx.core.context import WebContext
from webctx.core.errors import ElementFault, ElementNotFoundError
from webctx.core.locator import LocatorStrategy
from webctx.core.settings import Settings
from webctx.core.waits import poll_until


# ---------------------------------------------------------------------------
# フェイクドライバ
# ---------------------------------------------------------------------------

class FakeElement:
    """WebElement Protocol を満たすインメモリの要素。

    Attributes:
        text_value: text() の戻り値
        attrs: attribute() が参照する属性
        selected: is_selected() の戻り値
        options: (value, text) のオプション一覧（ドロップダウン用）
        faults: 残りの ElementFault 送出回数（操作のたびに 1 減る）
        calls: 呼び出された操作名の記録
    """

    def __init__(
        self,
        text: Optional[str] = "",
        attrs: Optional[dict[str, str]] = None,
        selected: bool = False,
        options: Optional[list[tuple[str, str]]] = None,
        faults: int = 0,
    ) -> None:
        self.text_value = text
        self.attrs = dict(attrs or {})
        self.selected = selected
        self.options = list(options or [])
        self.selected_index = 0
        self.faults = faults
        self.typed = ""
        self.calls: list[str] = []

    @property
    def handle(self) -> Any:
        return self

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if self.faults > 0:
            self.faults -= 1
            raise ElementFault(f"stale element reference: {operation}")

    async def text(self) -> Optional[str]:
        self._record("text")
        return self.text_value

    async def attribute(self, name: str) -> Optional[str]:
        self._record("attribute")
        return self.attrs.get(name)

    async def click(self) -> None:
        self._record("click")

    async def submit(self) -> None:
        self._record("submit")

    async def send_keys(self, value: str) -> None:
        self._record("send_keys")
        self.typed += value

    async def press(self, key: str) -> None:
        self._record(f"press:{key}")

    async def clear(self) -> None:
        self._record("clear")
        self.typed = ""

    async def is_selected(self) -> bool:
        self._record("is_selected")
        return self.selected

    async def check(self) -> None:
        self._record("check")
        self.selected = True

    async def uncheck(self) -> None:
        self._record("uncheck")
        self.selected = False

    async def select_by_text(self, text: str) -> None:
        self._record("select_by_text")
        self.selected_index = [t for _, t in self.options].index(text)

    async def select_by_value(self, value: str) -> None:
        self._record("select_by_value")
        self.selected_index = [v for v, _ in self.options].index(value)

    async def select_by_index(self, index: int) -> None:
        self._record("select_by_index")
        self.selected_index = index

    async def selected_text(self) -> str:
        return self.options[self.selected_index][1] if self.options else ""


class FakeDriver:
    """WebDriver Protocol を満たすインメモリのドライバ。

    Attributes:
        elements: (ロケータ種別, ロケータ式) → 要素
        script_results: スクリプト → 戻り値（例外インスタンスなら送出する）
        default_script_result: script_results に無いスクリプトの戻り値
        scripts: 実行されたスクリプトと引数の記録
        locate_count: locate の呼び出し回数
    """

    def __init__(self) -> None:
        self.elements: dict[tuple[LocatorStrategy, str], FakeElement] = {}
        self.script_results: dict[str, Any] = {}
        self.default_script_result: Any = None
        self.scripts: list[tuple[str, tuple]] = []
        self.title_value = "Example Domain"
        self.fail_screenshot = False
        self.locate_count = 0

    def add(self, strategy: LocatorStrategy, expression: str, **kwargs: Any) -> FakeElement:
        """(strategy, expression) で特定される要素を登録する。kwargs は FakeElement に渡す。"""
        element = FakeElement(**kwargs)
        self.elements[(strategy, expression)] = element
        return element

    async def locate(self, strategy: LocatorStrategy, expression: str) -> FakeElement:
        self.locate_count += 1
        element = self.elements.get((strategy, expression))
        if element is None:
            raise ElementNotFoundError(strategy.value, expression)
        return element

    async def execute_script(self, script: str, *args: Any) -> Any:
        self.scripts.append((script, args))
        result = self.script_results.get(script, self.default_script_result)
        if isinstance(result, Exception):
            raise result
        return result

    async def title(self) -> str:
        return self.title_value

    async def screenshot(self, path: Path) -> Path:
        if self.fail_screenshot:
            raise OSError("screenshot failed")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG")
        return path

    async def wait_until(self, predicate, timeout_seconds: float) -> None:
        await poll_until(predicate, timeout_seconds, interval=0.02)


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def driver() -> FakeDriver:
    """空の FakeDriver を提供する。"""
    return FakeDriver()


@pytest.fixture
def element() -> FakeElement:
    """ドライバに登録していない単独の FakeElement を提供する。"""
    return FakeElement()


@pytest.fixture
def settings() -> Settings:
    """待機なし（throttle 0ms）の設定。環境変数の影響を受けない。"""
    return Settings(properties={"webctx.throttle.msecs": "0"}, environ={})


@pytest.fixture
def context(driver: FakeDriver, settings: Settings, tmp_path: Path) -> WebContext:
    """FakeDriver を使う WebContext。成果物は一時ディレクトリに保存する。"""
    return WebContext(driver, settings=settings, artifacts=ArtifactsManager(base_dir=tmp_path))
