"""
WebContext のユニットテスト

テスト対象:
  - execute_script: スクリプト実行と true 時の待機
  - wait_until: 設定のタイムアウトを使った待機
  - get_title / highlight
  - interpolate / parse_step
  - create_error_attachments / reset
"""

from __future__ import annotations

import time

import pytest

from webctx.core.context import WebContext
from webctx.core.errors import ScriptExecutionError, UnboundAttributeError, WaitTimeoutError


class TestExecuteScript:
    """execute_script のテスト。"""

    @pytest.mark.asyncio
    async def test_returns_result(self, context: WebContext, driver) -> None:
        driver.script_results["return 1 + 1"] = 2
        assert await context.execute_script("return 1 + 1") == 2

    @pytest.mark.asyncio
    async def test_passes_arguments(self, context: WebContext, driver, element) -> None:
        await context.execute_script("arguments[0].focus()", element)
        assert driver.scripts[-1] == ("arguments[0].focus()", (element,))

    @pytest.mark.asyncio
    async def test_throttles_when_true(self, context: WebContext, driver) -> None:
        """結果が true なら webctx.throttle.msecs だけ待機すること。"""
        context.settings.set("webctx.throttle.msecs", "200")
        driver.default_script_result = True

        start = time.perf_counter()
        await context.execute_script("return true")
        assert time.perf_counter() - start >= 0.2

    @pytest.mark.asyncio
    async def test_no_throttle_when_false(self, context: WebContext, driver) -> None:
        context.settings.set("webctx.throttle.msecs", "2000")
        driver.default_script_result = False

        start = time.perf_counter()
        await context.execute_script("return false")
        assert time.perf_counter() - start < 1.0

    @pytest.mark.asyncio
    async def test_error_propagates(self, context: WebContext, driver) -> None:
        driver.default_script_result = ScriptExecutionError("boom")
        with pytest.raises(ScriptExecutionError):
            await context.execute_script("boom()")

    @pytest.mark.asyncio
    async def test_screenshot_when_requested(self, context: WebContext) -> None:
        context.settings.set("webctx.capture.screenshots", "true")
        await context.execute_script("return 1", take_screenshot=True)
        assert len(context.artifacts.attachments) == 1

    @pytest.mark.asyncio
    async def test_no_screenshot_when_disabled(self, context: WebContext) -> None:
        await context.execute_script("return 1", take_screenshot=True)
        assert context.artifacts.attachments == []


class TestWaitUntil:
    """WebContext.wait_until のテスト。"""

    @pytest.mark.asyncio
    async def test_timeout_uses_reason(self, context: WebContext) -> None:
        async def _never() -> bool:
            return False

        with pytest.raises(WaitTimeoutError, match="ready"):
            await context.wait_until(_never, reason="ready", timeout_seconds=1)

    @pytest.mark.asyncio
    async def test_satisfied(self, context: WebContext) -> None:
        async def _always() -> bool:
            return True

        await context.wait_until(_always)


class TestPageInfo:
    """get_title / highlight のテスト。"""

    @pytest.mark.asyncio
    async def test_get_title_binds_page_title(self, context: WebContext, driver) -> None:
        driver.title_value = "Google"
        assert await context.get_title() == "Google"
        assert context.scopes.get("page/title") == "Google"

    @pytest.mark.asyncio
    async def test_highlight_uses_style(self, context: WebContext, driver, element) -> None:
        context.settings.set("webctx.highlight.style", "outline: 1px solid red;")

        await context.highlight(element)

        script, args = driver.scripts[-1]
        assert "outline: 1px solid red;" in script
        assert args == (element,)

    @pytest.mark.asyncio
    async def test_highlight_failure_is_ignored(self, context: WebContext, driver, element) -> None:
        """ハイライトに失敗しても例外を送出しないこと。"""
        driver.default_script_result = ScriptExecutionError("detached")
        await context.highlight(element)


class TestInterpolate:
    """interpolate / parse_step のテスト。"""

    @pytest.mark.asyncio
    async def test_bare_placeholders(self, context: WebContext) -> None:
        """$a-$b は a=1, b=2 で "1-2" になること。"""
        context.scopes.set("a", "1")
        context.scopes.set("b", "2")
        assert await context.interpolate("$a-$b") == "1-2"

    @pytest.mark.asyncio
    async def test_nested_placeholder(self, context: WebContext) -> None:
        """a=$b, b=x のとき a を通して x に解決されること。"""
        context.scopes.set("a", "$b")
        context.scopes.set("b", "x")
        assert await context.interpolate("$a") == "x"

    @pytest.mark.asyncio
    async def test_parse_step(self, context: WebContext) -> None:
        context.scopes.set("search term", "playwright")
        assert await context.parse_step('I type "$<search term>" in the search field') == (
            'I type "playwright" in the search field'
        )

    @pytest.mark.asyncio
    async def test_parse_step_strict_unbound(self, context: WebContext) -> None:
        with pytest.raises(UnboundAttributeError):
            await context.parse_step("I click ${missing}")

    @pytest.mark.asyncio
    async def test_element_text(self, context: WebContext, driver) -> None:
        """ロケータバインディングのある名前はページ上のテキストに展開されること。"""
        from webctx.core.locator import LocatorStrategy

        driver.add(LocatorStrategy.CSS_SELECTOR, "h1", text="Welcome")
        context.scopes.set("heading/locator", "css selector")
        context.scopes.set("heading/locator/css selector", "h1")
        assert await context.interpolate("title: ${heading}") == "title: Welcome"


class TestAttachments:
    """create_error_attachments / reset のテスト。"""

    @pytest.mark.asyncio
    async def test_error_attachments(self, context: WebContext) -> None:
        context.scopes.set("a", "1")
        attachments = await context.create_error_attachments()
        assert [a.name for a in attachments] == ["Screenshot", "Scopes"]
        assert all(a.path.exists() for a in attachments)

    @pytest.mark.asyncio
    async def test_screenshot_failure_still_dumps_scopes(self, context: WebContext, driver) -> None:
        driver.fail_screenshot = True
        attachments = await context.create_error_attachments()
        assert [a.name for a in attachments] == ["Scopes"]

    @pytest.mark.asyncio
    async def test_reset(self, context: WebContext) -> None:
        context.scopes.add_scope("page")
        context.scopes.set("a", "1")
        await context.create_error_attachments()

        context.reset()

        assert len(context.scopes) == 1
        assert context.scopes.get_opt("a") is None
        assert context.artifacts.attachments == []
