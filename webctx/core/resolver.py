"""
属性解決エンジン — 名前をバインド値に解決するカスケード

resolve_attribute(name) は次の順にバインディング種別を試し、最初に一致したものを採用する:

  1. name                    （空でないリテラル値）
  2. name/text               （要素から取得済みのテキスト）
  3. name/javascript         （JavaScript 式の実行結果）
  4. name/xpath/expression, name/xpath/source, name/xpath/targetType
                             （XPath 評価結果）
  5. name/regex/expression, name/regex/source
                             （正規表現の抽出結果）
  6. フォールバック: name（空値も可）→ ロケータ式 → UnboundAttributeError

3〜5 の実行失敗は例外として伝播させず、$[javascript:式] などの
診断用プレースホルダ文字列に置き換える。
6 のフォールバックは失敗を伝播する（完全に未バインドな名前は設定ミスのため）。
評価中の動的バインディングが自身を参照した場合は、再評価せずにプレースホルダを返す。

resolve_bound_value(name) はステップテキストの補間で使われる別のカスケード:
ロケータバインディングがあればページ上の要素テキストを読み、
読めなければ resolve_attribute → 設定値 の順に解決する。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Union

from .errors import (
    BindingCycleError,
    LocatorBindingError,
    LocatorBindingNotFoundError,
    LocatorLookupNotFoundError,
    ScriptExecutionError,
    UnboundAttributeError,
    WebContextError,
)
from .locator import LocatorBinding, locator_key, lookup_key
from .regex import extract_by_regex
from .scopes import BindingKey, ScopedDataStack
from .xpath import XmlNodeType, evaluate_xpath

if TYPE_CHECKING:
    from .context import WebContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# バインディング種別
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiteralBinding:
    """name に直接設定された値。"""

    value: str


@dataclass(frozen=True)
class TextBinding:
    """name/text に設定された値（要素から取得したテキスト）。"""

    value: str


@dataclass(frozen=True)
class ScriptBinding:
    """name/javascript に設定された JavaScript 式。"""

    expression: str


@dataclass(frozen=True)
class XPathBinding:
    """name/xpath/* に設定された XPath 評価の定義。

    Attributes:
        expression: XPath 式
        source: 評価対象を保持するバインディング名（または評価対象の文字列）
        target_type: 評価結果の型（text / node / nodeset）
    """

    expression: str
    source: str
    target_type: str


@dataclass(frozen=True)
class RegexBinding:
    """name/regex/* に設定された正規表現抽出の定義。

    Attributes:
        expression: 正規表現
        source: 抽出対象を保持するバインディング名（または抽出対象の文字列）
    """

    expression: str
    source: str


BindingKind = Union[LiteralBinding, TextBinding, ScriptBinding, XPathBinding, RegexBinding]


# ---------------------------------------------------------------------------
# 動的バインディングの評価結果
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolved:
    """評価に成功した値。"""

    value: str


@dataclass(frozen=True)
class Placeholder:
    """評価に失敗した場合の診断用プレースホルダ（例: "$[xpath://a]"）。"""

    value: str

    @classmethod
    def of(cls, kind: str, expression: str) -> Placeholder:
        return cls(f"$[{kind}:{expression}]")


Resolution = Union[Resolved, Placeholder]


# ---------------------------------------------------------------------------
# バインディング種別の判定（優先順に並べた判定関数）
# ---------------------------------------------------------------------------

def _detect_literal(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    value = scopes.get_opt(name)
    return LiteralBinding(value) if value else None


def _detect_text(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    value = scopes.get_opt(BindingKey(name) / "text")
    return TextBinding(value) if value else None


def _detect_script(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    expression = scopes.get_opt(BindingKey(name) / "javascript")
    return ScriptBinding(expression) if expression else None


def _detect_xpath(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    key = BindingKey(name) / "xpath"
    expression = scopes.get_opt(key / "expression")
    source = scopes.get_opt(key / "source")
    target_type = scopes.get_opt(key / "targetType")
    if expression and source and target_type:
        return XPathBinding(expression, source, target_type)
    return None


def _detect_regex(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    key = BindingKey(name) / "regex"
    expression = scopes.get_opt(key / "expression")
    source = scopes.get_opt(key / "source")
    if expression and source:
        return RegexBinding(expression, source)
    return None


BINDING_DETECTORS: tuple[Callable[[ScopedDataStack, str], Optional[BindingKind]], ...] = (
    _detect_literal,
    _detect_text,
    _detect_script,
    _detect_xpath,
    _detect_regex,
)
"""バインディング種別の判定順。先頭から試し、最初に一致したものを採用する。"""


def detect_binding(scopes: ScopedDataStack, name: str) -> Optional[BindingKind]:
    """name に適用されるバインディング種別を返す。どれにも該当しなければ None。"""
    for detect in BINDING_DETECTORS:
        kind = detect(scopes, name)
        if kind is not None:
            return kind
    return None


# ---------------------------------------------------------------------------
# AttributeResolver 本体
# ---------------------------------------------------------------------------

class AttributeResolver:
    """名前をバインド値に解決するエンジン。

    スコープ・補間・スクリプト実行・要素テキスト取得は WebContext を通じて行う。
    """

    def __init__(self, context: WebContext) -> None:
        self._ctx = context
        # ロケータ解決中の要素名（補間を通じた再入の検出用）
        self._resolving: set[str] = set()
        # 動的バインディング（javascript / xpath / regex）を評価中の名前
        self._evaluating: set[str] = set()

    # -------------------------------------------------------------------
    # ロケータバインディング
    # -------------------------------------------------------------------

    async def resolve_locator_binding(self, element: str) -> LocatorBinding:
        """要素名からロケータバインディングを解決する。

        <element>/locator からロケータ種別を、<element>/locator/<種別> から
        ロケータ式を読み、それぞれ補間してから LocatorBinding を生成する。

        Raises:
            LocatorBindingNotFoundError: <element>/locator が未設定の場合
            LocatorLookupNotFoundError: <element>/locator/<種別> が未設定の場合
            BindingCycleError: 補間が同じ要素のロケータ解決に再入した場合
            LocatorBindingError: ロケータ種別が不正な場合
        """
        if element in self._resolving:
            raise BindingCycleError(element)

        self._resolving.add(element)
        try:
            scopes = self._ctx.scopes
            locator = scopes.get_opt(locator_key(element))
            if not locator:
                raise LocatorBindingNotFoundError(element)

            locator = await self._ctx.interpolate(locator)
            expression = scopes.get_opt(lookup_key(element, locator))
            if expression is None:
                raise LocatorLookupNotFoundError(element, locator)

            expression = await self._ctx.interpolate(expression)
            try:
                binding = LocatorBinding(element, locator, expression)
            except ValueError as exc:
                raise LocatorBindingError(element, str(exc)) from exc
        finally:
            self._resolving.discard(element)

        logger.debug("resolve_locator_binding(%s)=%s", element, binding.describe())
        return binding

    # -------------------------------------------------------------------
    # 属性解決
    # -------------------------------------------------------------------

    async def resolve_attribute(self, name: str) -> str:
        """名前を属性値に解決する（優先順はモジュール docstring 参照）。

        Raises:
            UnboundAttributeError: どのバインディング種別でも解決できない場合
        """
        kind = detect_binding(self._ctx.scopes, name)

        if isinstance(kind, (LiteralBinding, TextBinding)):
            value = kind.value
        elif kind is not None:
            value = (await self._evaluate_dynamic(name, kind)).value
        else:
            value = await self._fallback(name)

        logger.debug("resolve_attribute(%s)='%s'", name, value)
        return value

    async def resolve_bound_value(self, name: str) -> str:
        """ステップテキストの補間に使うバインド値を解決する。

        1. ロケータバインディングがあれば、ページ上の要素のテキストを読む
        2. 読めなければ resolve_attribute、それも失敗すれば設定値を返す

        Raises:
            UnboundAttributeError: いずれでも解決できない場合
        """
        try:
            binding = await self.resolve_locator_binding(name)
            value = await self._ctx.actuator.read_text(binding)
        except WebContextError as exc:
            logger.debug("%s の要素テキストを取得できません。属性として解決します: %s", name, exc)
            value = await self._resolve_attribute_or_setting(name)

        logger.debug("resolve_bound_value(%s)='%s'", name, value)
        return value

    # -------------------------------------------------------------------
    # 動的バインディングの評価（失敗時はプレースホルダ）
    # -------------------------------------------------------------------

    async def _evaluate_dynamic(
        self, name: str, kind: Union[ScriptBinding, XPathBinding, RegexBinding],
    ) -> Resolution:
        """動的バインディングを評価する。

        評価中の名前が補間や評価対象の解決を通じて再び参照された場合は、
        再評価せずにプレースホルダを返す。
        """
        if name in self._evaluating:
            logger.warning("%s の評価中に自身が参照されたため、展開を打ち切ります", name)
            return _placeholder_for(kind)

        self._evaluating.add(name)
        try:
            if isinstance(kind, ScriptBinding):
                return await self._evaluate_script(kind)
            if isinstance(kind, XPathBinding):
                return await self._evaluate_xpath(kind)
            return await self._evaluate_regex(kind)
        finally:
            self._evaluating.discard(name)

    async def _evaluate_script(self, binding: ScriptBinding) -> Resolution:
        try:
            javascript = await self._ctx.interpolate(binding.expression)
            result = await self._ctx.execute_script(f"return {javascript}")
            return Resolved(_to_js_string(result))
        except Exception as exc:
            logger.warning("JavaScript バインディングの評価に失敗しました: %s: %s", binding.expression, exc)
            return Placeholder.of("javascript", binding.expression)

    async def _evaluate_xpath(self, binding: XPathBinding) -> Resolution:
        expression = binding.expression
        try:
            source = await self._resolve_source(binding.source)
            expression = await self._ctx.interpolate(binding.expression)
            target_type = XmlNodeType.parse(await self._ctx.interpolate(binding.target_type))
            return Resolved(evaluate_xpath(expression, source, target_type))
        except Exception as exc:
            logger.warning("XPath バインディングの評価に失敗しました: %s: %s", expression, exc)
            return Placeholder.of("xpath", expression)

    async def _evaluate_regex(self, binding: RegexBinding) -> Resolution:
        expression = binding.expression
        try:
            source = await self._resolve_source(binding.source)
            expression = await self._ctx.interpolate(binding.expression)
            return Resolved(extract_by_regex(expression, source))
        except Exception as exc:
            logger.warning("正規表現バインディングの評価に失敗しました: %s: %s", expression, exc)
            return Placeholder.of("regex", expression)

    async def _resolve_source(self, source: str) -> str:
        """XPath / 正規表現の評価対象を解決する。

        source はバインディング名として解決し、未バインドなら文字列そのものとして扱う。
        いずれの場合も結果を補間する。
        """
        try:
            text = await self.resolve_bound_value(source)
        except UnboundAttributeError:
            text = source
        return await self._ctx.interpolate(text)

    # -------------------------------------------------------------------
    # フォールバック
    # -------------------------------------------------------------------

    async def _fallback(self, name: str) -> str:
        value = self._ctx.scopes.get_opt(name)
        if value is not None:
            return value
        try:
            return (await self.resolve_locator_binding(name)).lookup
        except (LocatorBindingError, UnboundAttributeError) as exc:
            raise UnboundAttributeError(name, self._ctx.scopes.current.scope) from exc

    async def _resolve_attribute_or_setting(self, name: str) -> str:
        try:
            return await self.resolve_attribute(name)
        except UnboundAttributeError:
            value = self._ctx.settings.get_opt(name)
            if value is None:
                raise
            return value


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _placeholder_for(kind: Union[ScriptBinding, XPathBinding, RegexBinding]) -> Placeholder:
    if isinstance(kind, ScriptBinding):
        return Placeholder.of("javascript", kind.expression)
    if isinstance(kind, XPathBinding):
        return Placeholder.of("xpath", kind.expression)
    return Placeholder.of("regex", kind.expression)


def _to_js_string(value: object) -> str:
    """スクリプトの戻り値を JavaScript の文字列表現に変換する。

    Raises:
        ScriptExecutionError: 戻り値が null / undefined の場合
    """
    if value is None:
        raise ScriptExecutionError("スクリプトが値を返しませんでした")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
