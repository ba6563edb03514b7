"""
WebContext — 解決エンジン・アクチュエータ・ドライバをまとめる実行コンテキスト

ステップ実行エンジンは 1 回の実行につき 1 つの WebContext を生成し、
スコープスタック・ドライバセッション・設定をこのコンテキスト経由で扱う。
並列実行する場合は実行ごとに独立した WebContext を用意すること（共有しない）。

使用例::

    context = WebContext(PlaywrightDriver(page), settings=Settings.load(path))
    text = await context.parse_step('I type "$<search term>" in the search field')
    binding = await context.resolver.resolve_locator_binding("search field")
    await context.actuator.type_text(binding, "playwright", send_enter=True)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from .actuator import ElementActuator
from .artifacts import ArtifactsManager, Attachment
from .errors import WebContextError
from .resolver import AttributeResolver
from .scopes import ScopedDataStack
from .settings import Settings
from .waits import WaitSpec, wait_until
from ..dsl.interpolation import Interpolator

if TYPE_CHECKING:
    from .driver import WebDriver, WebElement

logger = logging.getLogger(__name__)

_HIGHLIGHT_JS = (
    "var element = arguments[0]; var type = element.getAttribute('type'); "
    "if (('radio' == type || 'checkbox' == type) "
    "&& element.parentElement.getElementsByTagName('input').length == 1) "
    "{{ element = element.parentElement; }} "
    "var original = element.getAttribute('style'); "
    "element.setAttribute('style', original + '; {style}'); "
    "setTimeout(function() {{ element.setAttribute('style', original); }}, {msecs});"
)


class WebContext:
    """ウェブテスト実行時のコンテキスト。

    Attributes:
        driver: ブラウザ自動化ドライバ
        scopes: スコープ付きデータストア
        settings: 設定
        artifacts: スクリーンショット等の添付管理
        resolver: 属性解決エンジン
        actuator: 要素アクチュエータ
        interpolator: 補間エンジン
    """

    def __init__(
        self,
        driver: WebDriver,
        scopes: Optional[ScopedDataStack] = None,
        settings: Optional[Settings] = None,
        artifacts: Optional[ArtifactsManager] = None,
    ) -> None:
        self.driver = driver
        self.scopes = scopes if scopes is not None else ScopedDataStack()
        self.settings = settings if settings is not None else Settings()
        self.artifacts = artifacts if artifacts is not None else ArtifactsManager(
            base_dir=Path(self.settings.web.artifacts_dir)
        )
        self.resolver = AttributeResolver(self)
        self.actuator = ElementActuator(self)
        self.interpolator = Interpolator(self.resolver.resolve_bound_value)

    # -------------------------------------------------------------------
    # 補間
    # -------------------------------------------------------------------

    async def interpolate(self, text: str) -> str:
        """テキスト内のプレースホルダをバインド値で展開する。"""
        return await self.interpolator.interpolate(text)

    async def parse_step(self, expression: str) -> str:
        """ステップ式のプレースホルダを展開して返す。"""
        resolved = await self.interpolate(expression)
        if resolved != expression:
            logger.debug("ステップを補間しました: %s → %s", expression, resolved)
        return resolved

    # -------------------------------------------------------------------
    # スクリプト・待機
    # -------------------------------------------------------------------

    async def execute_script(self, script: str, *args: Any, take_screenshot: bool = False) -> Any:
        """現在のページで JavaScript を実行する。

        結果が true の場合は webctx.throttle.msecs だけ待機する。

        Args:
            script: 関数本体として実行するスクリプト（値は return で返す）
            *args: arguments[n] として渡す引数
            take_screenshot: 実行後にスクリーンショットを撮るか
                （webctx.capture.screenshots が有効な場合のみ）

        Raises:
            ScriptExecutionError: 実行に失敗した場合
        """
        result = await self.driver.execute_script(script, *args)
        if take_screenshot and self.settings.web.capture_screenshots:
            await self.capture_screenshot("script")
        logger.debug("JavaScript を評価しました: %s, 結果='%s'", script, result)
        if result is True:
            await asyncio.sleep(self.settings.web.throttle_msecs / 1000)
        return result

    async def wait_until(
        self,
        predicate: Callable[[], Awaitable[bool]],
        reason: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> None:
        """条件が成立するまで待機する。

        Args:
            predicate: 待機条件（非同期関数）
            reason: 待機理由（タイムアウト時のエラーメッセージに使用）
            timeout_seconds: タイムアウト秒数。None の場合は webctx.wait.seconds

        Raises:
            WaitTimeoutError: タイムアウトまでに条件が成立しなかった場合
        """
        spec = WaitSpec(
            timeout_seconds=timeout_seconds or self.settings.web.wait_seconds,
            reason=reason,
        )
        await wait_until(self.driver, predicate, spec)

    # -------------------------------------------------------------------
    # ページ情報
    # -------------------------------------------------------------------

    async def get_title(self) -> str:
        """現在のページタイトルを取得し、page/title にバインドする。"""
        title = await self.driver.title()
        await self.actuator.bind_and_wait("page", "title", title)
        return title

    async def highlight(self, element: WebElement) -> None:
        """要素を webctx.throttle.msecs の間ハイライトする。

        ハイライトに失敗しても操作は継続する。
        """
        web = self.settings.web
        script = _HIGHLIGHT_JS.format(style=web.highlight_style, msecs=web.throttle_msecs)
        try:
            await self.execute_script(
                script, element, take_screenshot=web.capture_screenshots_highlighting
            )
        except WebContextError as exc:
            logger.warning("要素のハイライトに失敗しました: %s", exc)
            return
        await asyncio.sleep(web.throttle_msecs / 1000)

    # -------------------------------------------------------------------
    # 添付
    # -------------------------------------------------------------------

    async def capture_screenshot(self, label: str = "screenshot") -> Optional[Path]:
        """スクリーンショットを撮影して添付に追加する（失敗しても例外は送出しない）。"""
        return await self.artifacts.capture_screenshot(self.driver, label)

    async def create_error_attachments(self) -> list[Attachment]:
        """ステップ失敗時の添付（スクリーンショットとスコープダンプ）を生成する。

        Returns:
            保存できた添付のリスト
        """
        attachments: list[Attachment] = []
        if await self.capture_screenshot("error") is not None:
            attachments.append(self.artifacts.attachments[-1])
        if self.artifacts.save_scope_dump(self.scopes) is not None:
            attachments.append(self.artifacts.attachments[-1])
        return attachments

    def reset(self) -> None:
        """スコープと添付をリセットする（ドライバセッションは閉じない）。"""
        self.scopes.reset()
        self.artifacts.clear()
