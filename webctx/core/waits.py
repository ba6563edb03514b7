"""
待機 — 条件成立までのポーリングとタイムアウト

主な機能:
  - WaitSpec: 待機仕様（タイムアウト秒数と待機理由）
  - poll_until: 非同期述語が True になるまでポーリングする（ドライバ実装用）
  - wait_until: ドライバの条件待機に委譲し、タイムアウトを WaitTimeoutError に変換する

ポーリング間隔はドライバ側の関心事であり、wait_until は
ドライバの TimeoutError をドメイン例外に変換するだけに留める。
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from .errors import ElementFault, ElementNotFoundError, WaitTimeoutError, WebContextError

if TYPE_CHECKING:
    from .driver import WebDriver

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1
"""poll_until のデフォルトポーリング間隔（秒）。"""

IGNORED_ERRORS = (ElementNotFoundError, ElementFault)
"""poll_until が「未成立」とみなすドメイン例外。"""


# ---------------------------------------------------------------------------
# 待機仕様
# ---------------------------------------------------------------------------

class WaitSpec(BaseModel):
    """待機仕様。呼び出しごとに生成し、永続化しない。

    Attributes:
        timeout_seconds: タイムアウト（秒、1 以上）
        reason: 待機理由（タイムアウト時のエラーメッセージに使用）
    """

    timeout_seconds: int = Field(gt=0)
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# ポーリング
# ---------------------------------------------------------------------------

async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    timeout_seconds: float,
    interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """predicate が True を返すまでポーリングする。

    predicate が例外を送出した場合は False とみなしてポーリングを継続する。
    最後に発生した例外はタイムアウト時の TimeoutError に連結される。
    ただしドメイン例外のうち IGNORED_ERRORS 以外（スクリプトエラーなど）は
    待機を打ち切ってそのまま送出する。

    Args:
        predicate: 待機条件（非同期関数）
        timeout_seconds: タイムアウト（秒）
        interval: ポーリング間隔（秒）

    Raises:
        TimeoutError: タイムアウト時間内に条件が成立しなかった場合
        WebContextError: predicate が IGNORED_ERRORS 以外のドメイン例外を送出した場合
    """
    start = time.perf_counter()
    last_error: Optional[Exception] = None

    while True:
        try:
            if await predicate():
                logger.debug(
                    "待機条件が成立しました（%.0fms 経過）",
                    (time.perf_counter() - start) * 1000,
                )
                return
        except Exception as exc:
            if isinstance(exc, WebContextError) and not isinstance(exc, IGNORED_ERRORS):
                raise
            logger.debug("待機条件の評価中にエラー: %s", exc)
            last_error = exc

        elapsed = time.perf_counter() - start
        if elapsed >= timeout_seconds:
            raise TimeoutError(
                f"条件が {timeout_seconds} 秒以内に成立しませんでした"
            ) from last_error

        await asyncio.sleep(min(interval, max(timeout_seconds - elapsed, 0)))


# ---------------------------------------------------------------------------
# 待機コーディネータ
# ---------------------------------------------------------------------------

async def wait_until(
    driver: WebDriver,
    predicate: Callable[[], Awaitable[bool]],
    spec: WaitSpec,
) -> None:
    """条件が成立するまで待機する。

    ポーリング自体はドライバの条件待機に委譲し、
    ドライバの TimeoutError を WaitTimeoutError(reason) に変換する。

    Args:
        driver: 条件待機を行うドライバ
        predicate: 待機条件（非同期関数）
        spec: 待機仕様

    Raises:
        WaitTimeoutError: タイムアウト時間内に条件が成立しなかった場合
    """
    if spec.reason:
        logger.info(spec.reason)
    try:
        await driver.wait_until(predicate, spec.timeout_seconds)
    except WaitTimeoutError:
        raise
    except TimeoutError as exc:
        raise WaitTimeoutError(spec.reason) from exc
