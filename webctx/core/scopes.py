"""
スコープ付きデータストア — 名前付きキー/値スコープのスタック

ステップ間で共有するバインディング（要素ロケータ、取得テキスト、
JavaScript 式など）を保持する。

構成:
  - BindingKey: "name/kind/field" 形式の構造化キー
  - ScopedData: 1 つのスコープ（名前 + キー/値マッピング）
  - ScopedDataStack: スコープのスタック。最下層は永続スコープ "feature"

検索規則:
  - 現在（最上位）のスコープを検索し、見つからなければ feature スコープを検索する
  - 同一スコープ内でキーは一意。再設定は上書きする

スコープの push / pop はステップ実行エンジン側のライフサイクルで行う。
解決エンジンは現在のスコープ内のキーを読み書きするだけで、スタックの形は変えない。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import UnboundAttributeError

logger = logging.getLogger(__name__)

FEATURE_SCOPE = "feature"
"""永続スコープの名前。"""


# ---------------------------------------------------------------------------
# 構造化キー
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BindingKey:
    """バインディングの構造化キー。

    文字列連結によるキー生成ミスを避けるため、基底名とセグメント列で保持する。
    str() で外部互換の "base/seg1/seg2" 形式を返す。

    使用例::

        key = BindingKey("q") / "locator" / "css selector"
        str(key)  # "q/locator/css selector"

    Attributes:
        base: 基底名（要素名・属性名）
        segments: 後続セグメントのタプル
    """

    base: str
    segments: tuple[str, ...] = ()

    def __truediv__(self, segment: str) -> BindingKey:
        return BindingKey(self.base, self.segments + (segment,))

    def __str__(self) -> str:
        return "/".join((self.base,) + self.segments)


Key = Union[str, BindingKey]


# ---------------------------------------------------------------------------
# 単一スコープ
# ---------------------------------------------------------------------------

@dataclass
class ScopedData:
    """名前付きの 1 スコープ。

    Attributes:
        scope: スコープ名（"feature" またはページ名など）
        entries: キー → 値のマッピング（挿入順を保持）
    """

    scope: str
    entries: dict[str, str] = field(default_factory=dict)

    def get_opt(self, key: Key) -> Optional[str]:
        return self.entries.get(str(key))

    def set(self, key: Key, value: str) -> None:
        self.entries[str(key)] = value

    def to_dict(self) -> dict:
        return {"scope": self.scope, "entries": dict(self.entries)}


# ---------------------------------------------------------------------------
# スコープスタック
# ---------------------------------------------------------------------------

class ScopedDataStack:
    """スコープのスタック。

    最下層に永続スコープ "feature" を常に持つ。新しい論理コンテキスト
    （ページ遷移など）でスコープを push し、閉じるときに pop する。
    """

    def __init__(self) -> None:
        """feature スコープのみを持つスタックを初期化する。"""
        self._stack: list[ScopedData] = [ScopedData(FEATURE_SCOPE)]

    # ----- スコープ操作（ステップ実行エンジン用） -----

    @property
    def current(self) -> ScopedData:
        """現在（最上位）のスコープを返す。"""
        return self._stack[-1]

    @property
    def feature(self) -> ScopedData:
        """永続スコープを返す。"""
        return self._stack[0]

    def add_scope(self, scope: str) -> ScopedData:
        """スコープを追加して現在のスコープにする。

        現在のスコープと同名の場合は何もしない。"feature" を指定した場合は
        永続スコープを返す（新規 push はしない）。

        Args:
            scope: スコープ名

        Returns:
            現在のスコープ
        """
        if scope == self.current.scope:
            return self.current
        if scope == FEATURE_SCOPE:
            return self.feature
        data = ScopedData(scope)
        self._stack.append(data)
        logger.debug("スコープを追加しました: %s", scope)
        return data

    def pop_scope(self) -> ScopedData:
        """現在のスコープを取り除いて返す。

        Raises:
            IndexError: feature スコープしか残っていない場合
        """
        if len(self._stack) == 1:
            raise IndexError("feature スコープは取り除けません")
        data = self._stack.pop()
        logger.debug("スコープを取り除きました: %s", data.scope)
        return data

    def reset(self) -> None:
        """全スコープを破棄し、空の feature スコープだけに戻す。"""
        self._stack = [ScopedData(FEATURE_SCOPE)]

    # ----- キー操作 -----

    def get_opt(self, key: Key) -> Optional[str]:
        """キーに対応する値を返す。見つからなければ None。

        現在のスコープ → feature スコープの順に検索する。
        """
        value = self.current.get_opt(key)
        if value is None and self.current is not self.feature:
            value = self.feature.get_opt(key)
        return value

    def get(self, key: Key) -> str:
        """キーに対応する値を返す。

        Raises:
            UnboundAttributeError: どのスコープにも存在しない場合
        """
        value = self.get_opt(key)
        if value is None:
            raise UnboundAttributeError(str(key), self.current.scope)
        return value

    def set(self, key: Key, value: str) -> None:
        """現在のスコープにキーと値を設定する（既存値は上書き）。"""
        self.current.set(key, value)
        logger.debug("バインド: %s='%s'（スコープ: %s）", key, value, self.current.scope)

    # ----- ダンプ -----

    def to_dict(self) -> dict:
        """スタック全体を辞書で返す（下層から順）。"""
        return {"scopes": [data.to_dict() for data in self._stack]}

    def to_json(self) -> str:
        """スタック全体を JSON 文字列で返す（失敗時の診断用）。"""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    def __len__(self) -> int:
        return len(self._stack)
