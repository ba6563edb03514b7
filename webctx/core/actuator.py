"""
要素アクチュエータ — 要素の特定・操作と 1 回限りの再試行

主な機能:
  - with_element: 要素を特定して操作を実行し、ElementFault の場合は
    要素を再特定して 1 回だけ再試行する
  - read_text / type_text / clear / select_by_* / perform_action /
    wait_for_text / scroll_into_view: with_element 上に構築した派生操作
  - bind_and_wait: <element>/<action> に値をバインドし、設定された
    事後待機（/wait 秒数）と事後条件（/condition の JavaScript）を待つ
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from .errors import ElementFault, ElementInteractionError, ElementNotFoundError
from .scopes import BindingKey

if TYPE_CHECKING:
    from .context import WebContext
    from .driver import WebElement
    from .locator import LocatorBinding

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2
"""要素操作の最大試行回数（初回 + 再特定後の再試行 1 回）。"""


# ---------------------------------------------------------------------------
# 列挙型
# ---------------------------------------------------------------------------

class ElementAction(str, enum.Enum):
    """perform_action で実行できる操作。"""

    CLICK = "click"
    SUBMIT = "submit"
    CHECK = "check"
    UNCHECK = "uncheck"


class ScrollTo(str, enum.Enum):
    """scroll_into_view のスクロール位置。"""

    TOP = "top"
    BOTTOM = "bottom"


_ACTION_LABELS = {
    ElementAction.CLICK: "クリック",
    ElementAction.SUBMIT: "送信",
    ElementAction.CHECK: "チェック",
    ElementAction.UNCHECK: "チェック解除",
}

_SCROLL_JS = (
    "var elem = arguments[0]; "
    "if (typeof elem !== 'undefined' && elem != null) {{ elem.scrollIntoView({align_top}); }}"
)


# ---------------------------------------------------------------------------
# ElementActuator 本体
# ---------------------------------------------------------------------------

class ElementActuator:
    """ロケータバインディングで特定した要素に対する操作を提供する。"""

    def __init__(self, context: WebContext) -> None:
        self._ctx = context

    # -------------------------------------------------------------------
    # 要素の特定と再試行
    # -------------------------------------------------------------------

    async def locate(self, binding: LocatorBinding) -> WebElement:
        """ドライバで要素を特定する。設定に応じて特定した要素をハイライトする。

        Raises:
            ElementNotFoundError: 要素が見つからない場合
        """
        try:
            element = await self._ctx.driver.locate(binding.strategy, binding.expression)
        except ElementNotFoundError as exc:
            raise ElementNotFoundError(
                binding.strategy.value, binding.expression, binding.element
            ) from exc
        if self._ctx.settings.web.highlight:
            await self._ctx.highlight(element)
        return element

    async def with_element(
        self,
        binding: LocatorBinding,
        fn: Callable[[WebElement], Awaitable[T]],
        action: Optional[ElementAction] = None,
    ) -> T:
        """要素を特定して fn を実行する。

        fn が ElementFault を送出した場合は要素を再特定して 1 回だけ再試行する。
        成功時、スクリーンショット設定が有効なら撮影する（戻り値には影響しない）。

        Args:
            binding: 対象要素のロケータバインディング
            fn: 要素に対して実行する非同期関数
            action: ログ出力用の操作種別

        Returns:
            fn の戻り値

        Raises:
            ElementNotFoundError: 要素が見つからない場合
            ElementInteractionError: 再試行後も ElementFault となった場合
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            element = await self.locate(binding)
            if action is not None and attempt == 1:
                logger.info("%s: %s", _ACTION_LABELS[action], binding.element)

            try:
                result = await fn(element)
            except ElementFault as exc:
                if attempt == MAX_ATTEMPTS:
                    raise ElementInteractionError(binding.element, str(exc)) from exc
                logger.warning(
                    "要素 %s の操作に失敗しました。再特定して再試行します: %s",
                    binding.element, exc,
                )
                continue

            if self._ctx.settings.web.capture_screenshots:
                await self._ctx.capture_screenshot(binding.element)
            return result

        # range が空になることはない
        raise ElementInteractionError(binding.element)

    # -------------------------------------------------------------------
    # 派生操作
    # -------------------------------------------------------------------

    async def read_text(self, binding: LocatorBinding) -> str:
        """要素のテキストを取得し、<element>/text にバインドする。

        表示テキスト → text 属性 → value 属性 の順に、最初の空でない値を返す。
        どれも空なら空文字列を返す。
        """

        async def _read(element: WebElement) -> str:
            text = await element.text()
            if not text:
                text = await element.attribute("text")
            if not text:
                text = await element.attribute("value")
            text = text or ""
            await self.bind_and_wait(binding.element, "text", text)
            return text

        value = await self.with_element(binding, _read)
        logger.debug("read_text(%s)='%s'", binding.element, value)
        return value

    async def type_text(
        self,
        binding: LocatorBinding,
        value: str,
        clear_first: bool = False,
        send_enter: bool = False,
    ) -> None:
        """要素に文字列を入力する。

        Args:
            binding: 対象要素
            value: 入力する文字列
            clear_first: 入力前にフィールドをクリアするか
            send_enter: 入力後に Enter キーを送るか
        """

        async def _type(element: WebElement) -> None:
            if clear_first:
                await self._clear(element, binding.element)
            await element.send_keys(value)
            await self.bind_and_wait(binding.element, "type", value)
            if send_enter:
                await element.press("Enter")
                await self.bind_and_wait(binding.element, "enter", "true")

        logger.info("入力: %s", binding.element)
        await self.with_element(binding, _type)

    async def clear(self, binding: LocatorBinding) -> None:
        """入力フィールドをクリアする。"""

        async def _clear(element: WebElement) -> None:
            await self._clear(element, binding.element)

        await self.with_element(binding, _clear)

    async def _clear(self, element: WebElement, name: str) -> None:
        await element.clear()
        await self.bind_and_wait(name, "clear", "true")

    async def select_by_text(self, binding: LocatorBinding, text: str) -> None:
        """ドロップダウンで表示テキストが一致するオプションを選択する。"""

        async def _select(element: WebElement) -> None:
            logger.info("%s で '%s' を選択します（テキスト）", binding.element, text)
            await element.select_by_text(text)
            await self.bind_and_wait(binding.element, "select", await element.selected_text())

        await self.with_element(binding, _select)

    async def select_by_value(self, binding: LocatorBinding, value: str) -> None:
        """ドロップダウンで value が一致するオプションを選択する。"""

        async def _select(element: WebElement) -> None:
            logger.info("%s で '%s' を選択します（値）", binding.element, value)
            await element.select_by_value(value)
            await self.bind_and_wait(binding.element, "select", await element.selected_text())

        await self.with_element(binding, _select)

    async def select_by_index(self, binding: LocatorBinding, index: int) -> None:
        """ドロップダウンで指定位置（0 始まり）のオプションを選択する。"""

        async def _select(element: WebElement) -> None:
            logger.info("%s でオプションを選択します（位置: %d）", binding.element, index)
            await element.select_by_index(index)
            await self.bind_and_wait(binding.element, "select", await element.selected_text())

        await self.with_element(binding, _select)

    async def perform_action(self, action: ElementAction | str, binding: LocatorBinding) -> None:
        """要素に対して click / submit / check / uncheck を実行する。

        check / uncheck は要素が既に目的の選択状態であれば何もしない。
        いずれの場合も <element>/<action> = "true" をバインドする。

        Raises:
            ValueError: 未知の操作の場合
        """
        action = ElementAction(action)

        async def _perform(element: WebElement) -> None:
            if action is ElementAction.CLICK:
                await element.click()
            elif action is ElementAction.SUBMIT:
                await element.submit()
            elif action is ElementAction.CHECK:
                if not await element.is_selected():
                    await element.check()
            elif action is ElementAction.UNCHECK:
                if await element.is_selected():
                    await element.uncheck()
            await self.bind_and_wait(binding.element, action.value, "true")

        await self.with_element(binding, _perform, action=action)

    async def wait_for_text(self, binding: LocatorBinding) -> bool:
        """要素のテキストが空でなければ True を返す。"""
        text = await self.read_text(binding)
        return bool(text)

    async def scroll_into_view(self, binding: LocatorBinding, scroll_to: ScrollTo | str) -> None:
        """要素を表示領域の上端または下端に合わせてスクロールする。"""
        scroll_to = ScrollTo(scroll_to)
        script = _SCROLL_JS.format(align_top="true" if scroll_to is ScrollTo.TOP else "false")

        async def _scroll(element: WebElement) -> None:
            await self._ctx.execute_script(script, element)

        await self.with_element(binding, _scroll)

    # -------------------------------------------------------------------
    # バインドと事後待機
    # -------------------------------------------------------------------

    async def bind_and_wait(self, element: str, action: str, value: str) -> None:
        """<element>/<action> = value をバインドし、事後待機を行う。

        - <element>/<action>/wait が設定されていれば、その秒数だけ待機する
        - <element>/<action>/condition が設定されていれば、
          <condition>/javascript が true を返すまで待機する

        Raises:
            UnboundAttributeError: <condition>/javascript が未設定の場合
            WaitTimeoutError: 事後条件がタイムアウトまでに成立しなかった場合
            ScriptExecutionError: 事後条件のスクリプトが失敗した場合（待機せずに送出）
            ValueError: /wait の値が数値でない場合
        """
        scopes = self._ctx.scopes
        key = BindingKey(element) / action
        scopes.set(key, value)

        secs = scopes.get_opt(key / "wait")
        if secs:
            try:
                delay = float(secs)
            except ValueError:
                raise ValueError(f"{key}/wait の値が秒数ではありません: {secs}") from None
            logger.info("%s 秒待機します（%s 後の待機）", secs, action)
            await asyncio.sleep(delay)

        condition = scopes.get_opt(key / "condition")
        if condition:
            javascript = scopes.get(BindingKey(condition) / "javascript")
            logger.debug("スクリプトが true を返すまで待機します: %s", javascript)

            async def _condition() -> bool:
                return bool(await self._ctx.execute_script(f"return {javascript}"))

            await self._ctx.wait_until(
                _condition,
                reason=f"{condition} が成立するまで待機します（{action} 後の条件）",
            )
