"""
エラー定義 — バインディング解決・要素操作・待機の例外階層

全てのドメイン例外は WebContextError を基底とする。
ステップ実行エンジンはこの基底クラスを捕捉してステップを失敗扱いにし、
スクリーンショットとスコープダンプを添付する。

伝播ポリシー:
  - javascript / xpath / regex バインディングの実行失敗は resolver 内で
    プレースホルダ文字列に変換され、ここで定義する例外としては伝播しない
  - ElementFault は actuator 内で 1 回だけ再試行され、2 回目は
    ElementInteractionError として伝播する
  - それ以外は全て呼び出し元へ伝播する
"""

from __future__ import annotations

from typing import Optional


class WebContextError(Exception):
    """webctx の全ドメイン例外の基底クラス。"""


# ---------------------------------------------------------------------------
# バインディング解決
# ---------------------------------------------------------------------------

class UnboundAttributeError(WebContextError):
    """どのバインディング種別でも値を解決できなかった場合のエラー。

    Attributes:
        name: 解決できなかった属性名
        scope: 検索したスコープ名（分かる場合のみ）
    """

    def __init__(self, name: str, scope: Optional[str] = None) -> None:
        self.name = name
        self.scope = scope
        where = f"（スコープ: {scope}）" if scope else ""
        super().__init__(f"未バインドの属性が参照されました: {name}{where}")


class LocatorBindingError(WebContextError):
    """ロケータバインディングの設定不備の基底クラス。

    Attributes:
        element: 要素名
    """

    def __init__(self, element: str, message: str) -> None:
        self.element = element
        super().__init__(f"{element} のロケータを解決できません: {message}")


class LocatorBindingNotFoundError(LocatorBindingError):
    """<element>/locator が未設定の場合のエラー。"""

    def __init__(self, element: str) -> None:
        super().__init__(element, f"ロケータバインディングが見つかりません: {element}/locator")


class LocatorLookupNotFoundError(LocatorBindingError):
    """<element>/locator/<strategy> が未設定の場合のエラー。

    Attributes:
        strategy: <element>/locator に設定されていたロケータ種別
    """

    def __init__(self, element: str, strategy: str) -> None:
        self.strategy = strategy
        super().__init__(
            element,
            f"ロケータ式のバインディングが見つかりません: {element}/locator/{strategy}",
        )


class BindingCycleError(LocatorBindingError):
    """同一要素のロケータ解決が補間を通じて再入した場合のエラー。"""

    def __init__(self, element: str) -> None:
        super().__init__(element, "ロケータ式の補間が同じ要素を循環参照しています")


# ---------------------------------------------------------------------------
# 要素操作
# ---------------------------------------------------------------------------

class ElementNotFoundError(WebContextError):
    """ドライバが要素を特定できなかった場合のエラー。"""

    def __init__(self, strategy: str, expression: str, element: Optional[str] = None) -> None:
        self.strategy = strategy
        self.expression = expression
        self.element = element
        label = f"{element} " if element else ""
        super().__init__(f"要素 {label}が見つかりません（{strategy}: {expression}）")


class ElementFault(WebContextError):
    """ドライバが報告した要素操作の失敗（stale 参照・操作不可など）。

    actuator はこの例外を受けると要素を再特定して 1 回だけ再試行する。
    """


class ElementInteractionError(WebContextError):
    """再試行後も要素操作が失敗した場合のエラー。

    Attributes:
        element: 要素名
    """

    def __init__(self, element: str, cause: str = "") -> None:
        self.element = element
        detail = f": {cause}" if cause else ""
        super().__init__(f"要素 {element} の操作に失敗しました（再試行済み）{detail}")


# ---------------------------------------------------------------------------
# 外部機能（スクリプト・XPath・正規表現）
# ---------------------------------------------------------------------------

class ScriptExecutionError(WebContextError):
    """JavaScript の実行に失敗した場合のエラー。"""


class XPathEvaluationError(WebContextError):
    """XPath 評価に失敗した場合のエラー。"""


class RegexExtractionError(WebContextError):
    """正規表現による抽出に失敗した場合のエラー。"""


# ---------------------------------------------------------------------------
# 待機
# ---------------------------------------------------------------------------

class WaitTimeoutError(WebContextError, TimeoutError):
    """待機条件がタイムアウトまでに成立しなかった場合のエラー。

    Attributes:
        reason: 待機理由（未指定時は "waiting"）
    """

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or "waiting"
        super().__init__(f"待機がタイムアウトしました: {self.reason}")
