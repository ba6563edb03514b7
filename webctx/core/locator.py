"""
ロケータバインディング — 要素名とロケータ種別・ロケータ式の対応

要素名 <name> に対して、スコープ上の次のキーからロケータを組み立てる:

  <name>/locator                 → ロケータ種別（例: "css selector"）
  <name>/locator/<ロケータ種別>   → ロケータ式（例: "input[name=q]"）

LocatorBinding はスコープに直接保存されず、解決のたびに再構築される。
そのためステップ間でバインディングが変更されれば即座に反映される。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .scopes import BindingKey


# ---------------------------------------------------------------------------
# ロケータ種別
# ---------------------------------------------------------------------------

class LocatorStrategy(str, enum.Enum):
    """ドライバが要素を特定する方法。"""

    ID = "id"
    NAME = "name"
    TAG_NAME = "tag name"
    CSS_SELECTOR = "css selector"
    XPATH = "xpath"
    CLASS_NAME = "class name"
    LINK_TEXT = "link text"
    PARTIAL_LINK_TEXT = "partial link text"
    JAVASCRIPT = "javascript"

    @classmethod
    def parse(cls, value: str) -> LocatorStrategy:
        """ロケータ種別の文字列を列挙値に変換する。

        "css" / "classname" / "link-text" などの別名も受け付ける。
        大文字小文字と前後の空白は無視する。

        Raises:
            ValueError: 未知のロケータ種別の場合
        """
        normalized = value.strip().lower()
        strategy = _ALIASES.get(normalized)
        if strategy is None:
            try:
                strategy = cls(normalized)
            except ValueError:
                known = ", ".join(s.value for s in cls)
                raise ValueError(
                    f"未知のロケータ種別です: {value}（使用可能: {known}）"
                ) from None
        return strategy


_ALIASES: dict[str, LocatorStrategy] = {
    "css": LocatorStrategy.CSS_SELECTOR,
    "tag": LocatorStrategy.TAG_NAME,
    "tagname": LocatorStrategy.TAG_NAME,
    "classname": LocatorStrategy.CLASS_NAME,
    "class": LocatorStrategy.CLASS_NAME,
    "link-text": LocatorStrategy.LINK_TEXT,
    "linktext": LocatorStrategy.LINK_TEXT,
    "partial-link-text": LocatorStrategy.PARTIAL_LINK_TEXT,
    "partiallinktext": LocatorStrategy.PARTIAL_LINK_TEXT,
    "js": LocatorStrategy.JAVASCRIPT,
}


# ---------------------------------------------------------------------------
# LocatorBinding
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocatorBinding:
    """要素名とロケータの対応（不変）。

    Attributes:
        element: 要素名
        locator: <element>/locator に設定されていたロケータ種別の文字列（キー合成に使用）
        expression: 補間済みのロケータ式
        strategy: locator を正規化したロケータ種別
    """

    element: str
    locator: str
    expression: str
    strategy: LocatorStrategy = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", LocatorStrategy.parse(self.locator))

    @property
    def lookup(self) -> str:
        """ロケータ式を返す。"""
        return self.expression

    def describe(self) -> str:
        """ログ・エラーメッセージ用の説明文字列を返す。"""
        return f"{self.element} ({self.strategy.value}='{self.expression}')"


def locator_key(element: str) -> BindingKey:
    """<element>/locator キーを返す。"""
    return BindingKey(element) / "locator"


def lookup_key(element: str, locator: str) -> BindingKey:
    """<element>/locator/<locator> キーを返す。"""
    return locator_key(element) / locator
