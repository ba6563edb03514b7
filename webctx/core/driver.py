"""
ドライバ抽象 — ブラウザ自動化ドライバと要素ハンドルのインターフェース

解決エンジンと actuator は WebDriver / WebElement Protocol だけに依存する。
Playwright（async API）実装として PlaywrightDriver / PlaywrightElement を提供する。

例外の変換規則（Playwright 実装）:
  - 要素特定時のタイムアウト          → ElementNotFoundError
  - 要素操作時の playwright Error     → ElementFault（actuator が 1 回再試行）
  - スクリプト実行時の playwright Error → ScriptExecutionError
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from .errors import ElementFault, ElementNotFoundError, ScriptExecutionError
from .locator import LocatorStrategy
from .waits import poll_until

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Locator, Page

logger = logging.getLogger(__name__)

Predicate = Callable[[], Awaitable[bool]]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class WebElement(Protocol):
    """特定済みの要素ハンドル。

    操作に失敗した場合（stale 参照・操作不可など）は ElementFault を送出する。
    """

    @property
    def handle(self) -> Any:
        """スクリプト引数として渡すドライバ固有のオブジェクト。"""
        ...

    async def text(self) -> Optional[str]: ...

    async def attribute(self, name: str) -> Optional[str]: ...

    async def click(self) -> None: ...

    async def submit(self) -> None: ...

    async def send_keys(self, value: str) -> None: ...

    async def press(self, key: str) -> None: ...

    async def clear(self) -> None: ...

    async def is_selected(self) -> bool: ...

    async def check(self) -> None: ...

    async def uncheck(self) -> None: ...

    async def select_by_text(self, text: str) -> None: ...

    async def select_by_value(self, value: str) -> None: ...

    async def select_by_index(self, index: int) -> None: ...

    async def selected_text(self) -> str: ...


@runtime_checkable
class WebDriver(Protocol):
    """ブラウザ自動化ドライバ（1 セッション）。"""

    async def locate(self, strategy: LocatorStrategy, expression: str) -> WebElement:
        """要素を特定する。

        Raises:
            ElementNotFoundError: 要素が見つからない場合
        """
        ...

    async def execute_script(self, script: str, *args: Any) -> Any:
        """関数本体として script を実行し、return された値を返す。

        script 内では arguments[0], arguments[1], ... で引数を参照できる。

        Raises:
            ScriptExecutionError: 実行に失敗した場合
        """
        ...

    async def title(self) -> str: ...

    async def screenshot(self, path: Path) -> Path: ...

    async def wait_until(self, predicate: Predicate, timeout_seconds: float) -> None:
        """predicate が True を返すまで待機する。

        Raises:
            TimeoutError: timeout_seconds 以内に成立しなかった場合
        """
        ...


# ---------------------------------------------------------------------------
# Playwright 実装: 要素
# ---------------------------------------------------------------------------

# 関数本体として評価し、arguments で引数を参照できるようにするラッパー
_SCRIPT_WRAPPER = "function(args) {{ return (function() {{ {body} }}).apply(null, args); }}"

_SELECTED_TEXT_JS = (
    "el => { const o = el.options ? el.options[el.selectedIndex] : null; "
    "return o ? o.text : ''; }"
)
_SUBMIT_JS = (
    "el => { const f = el.form || el.closest('form') || el; "
    "if (f.requestSubmit) { f.requestSubmit(); } else { f.submit(); } }"
)
# Selenium の getAttribute と同様にプロパティを優先し、無ければ属性を返す
_ATTRIBUTE_JS = (
    "(el, n) => { const p = el[n]; "
    "if (p !== undefined && p !== null && typeof p !== 'object' && typeof p !== 'function') "
    "{ return String(p); } return el.getAttribute(n); }"
)
_IS_SELECTED_JS = "el => !!(el.checked || el.selected)"


class PlaywrightElement:
    """Playwright ElementHandle を WebElement として扱うアダプタ。"""

    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    @property
    def handle(self) -> ElementHandle:
        return self._handle

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        """Playwright の例外を ElementFault に変換して操作を実行する。"""
        from playwright.async_api import Error as PlaywrightError

        try:
            return await awaitable
        except PlaywrightError as exc:
            raise ElementFault(f"{operation} に失敗しました: {exc}") from exc

    async def text(self) -> Optional[str]:
        return await self._call("inner_text", self._handle.inner_text())

    async def attribute(self, name: str) -> Optional[str]:
        return await self._call("attribute", self._handle.evaluate(_ATTRIBUTE_JS, name))

    async def click(self) -> None:
        await self._call("click", self._handle.click())

    async def submit(self) -> None:
        await self._call("submit", self._handle.evaluate(_SUBMIT_JS))

    async def send_keys(self, value: str) -> None:
        await self._call("type", self._handle.type(value))

    async def press(self, key: str) -> None:
        await self._call("press", self._handle.press(key))

    async def clear(self) -> None:
        await self._call("clear", self._handle.fill(""))

    async def is_selected(self) -> bool:
        return bool(await self._call("is_selected", self._handle.evaluate(_IS_SELECTED_JS)))

    async def check(self) -> None:
        await self._call("check", self._handle.check())

    async def uncheck(self) -> None:
        await self._call("uncheck", self._handle.uncheck())

    async def select_by_text(self, text: str) -> None:
        await self._call("select_option", self._handle.select_option(label=text))

    async def select_by_value(self, value: str) -> None:
        await self._call("select_option", self._handle.select_option(value=value))

    async def select_by_index(self, index: int) -> None:
        await self._call("select_option", self._handle.select_option(index=index))

    async def selected_text(self) -> str:
        return await self._call("selected_text", self._handle.evaluate(_SELECTED_TEXT_JS))


# ---------------------------------------------------------------------------
# Playwright 実装: ドライバ
# ---------------------------------------------------------------------------

class PlaywrightDriver:
    """Playwright Page を WebDriver として扱うアダプタ。

    使用例::

        async with async_playwright() as pw:
            browser = await pw.chromium.launch()
            page = await browser.new_page()
            driver = PlaywrightDriver(page, locate_timeout=10.0)
    """

    def __init__(self, page: Page, locate_timeout: float = 10.0) -> None:
        """ドライバを初期化する。

        Args:
            page: Playwright の Page オブジェクト
            locate_timeout: 要素特定の待機時間（秒）
        """
        self._page = page
        self._locate_timeout = locate_timeout

    @property
    def page(self) -> Page:
        return self._page

    async def locate(self, strategy: LocatorStrategy, expression: str) -> WebElement:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        try:
            if strategy is LocatorStrategy.JAVASCRIPT:
                js_handle = await self._page.evaluate_handle(
                    f"() => {{ return ({expression}); }}"
                )
                handle = js_handle.as_element()
            else:
                locator = self._to_locator(strategy, expression)
                handle = await locator.first.element_handle(
                    timeout=self._locate_timeout * 1000
                )
        except PlaywrightTimeoutError as exc:
            raise ElementNotFoundError(strategy.value, expression) from exc
        except PlaywrightError as exc:
            logger.debug("要素の特定中にエラー: %s", exc)
            raise ElementNotFoundError(strategy.value, expression) from exc

        if handle is None:
            raise ElementNotFoundError(strategy.value, expression)
        return PlaywrightElement(handle)

    def _to_locator(self, strategy: LocatorStrategy, expression: str) -> Locator:
        """ロケータ種別を Playwright Locator に変換する。"""
        page = self._page
        if strategy is LocatorStrategy.ID:
            return page.locator(f"id={expression}")
        if strategy is LocatorStrategy.NAME:
            return page.locator(f'[name="{expression}"]')
        if strategy is LocatorStrategy.TAG_NAME:
            return page.locator(f"css={expression}")
        if strategy is LocatorStrategy.CSS_SELECTOR:
            return page.locator(f"css={expression}")
        if strategy is LocatorStrategy.XPATH:
            return page.locator(f"xpath={expression}")
        if strategy is LocatorStrategy.CLASS_NAME:
            return page.locator(f".{expression}")
        if strategy is LocatorStrategy.LINK_TEXT:
            return page.get_by_role("link", name=expression, exact=True)
        if strategy is LocatorStrategy.PARTIAL_LINK_TEXT:
            return page.get_by_role("link", name=expression)
        raise ValueError(f"Locator に変換できないロケータ種別です: {strategy.value}")

    async def execute_script(self, script: str, *args: Any) -> Any:
        from playwright.async_api import Error as PlaywrightError

        wrapped = _SCRIPT_WRAPPER.format(body=script)
        arguments = [arg.handle if isinstance(arg, PlaywrightElement) else arg for arg in args]
        try:
            return await self._page.evaluate(wrapped, arguments)
        except PlaywrightError as exc:
            raise ScriptExecutionError(f"スクリプトの実行に失敗しました: {exc}") from exc

    async def title(self) -> str:
        return await self._page.title()

    async def screenshot(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=str(path))
        return path

    async def wait_until(self, predicate: Predicate, timeout_seconds: float) -> None:
        await poll_until(predicate, timeout_seconds)
