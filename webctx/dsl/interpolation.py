"""
補間エンジン — ステップテキスト内のプレースホルダ展開

サポートする構文:
  - ${name}  → バインド値で置換（未バインドなら UnboundAttributeError）
  - $<name>  → バインド値で置換（未バインドなら UnboundAttributeError）
  - $name    → バインド値で置換（未バインドならそのまま残す）
               a.b.c のようなドット区切りは長い名前から順に試し、
               "$a.txt" は a が解決できれば "<a の値>.txt" になる

$[javascript:...] / $[xpath:...] / $[regex:...] は解決失敗を示す診断用の
プレースホルダであり、展開対象にしない（内部の $ も含めてそのまま残す）。
対応する ] の無い $[ は通常の文字列として扱う。

置換した値にプレースホルダが含まれる場合は、置換前に再帰的に展開する。
再帰は最大 MAX_DEPTH 段までとし、それを超えた値は展開せずに置換する。
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Iterator, Optional

from ..core.errors import UnboundAttributeError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# プレースホルダパターン
# ---------------------------------------------------------------------------

_PLACEHOLDER = re.compile(
    r"\$\{(?P<braced>[^}]+)\}"
    r"|\$<(?P<angled>[^>]+)>"
    r"|\$(?P<bare>[A-Za-z_]\w*(?:\.\w+)*)"
)

_DIAGNOSTIC_START = "$["

MAX_DEPTH = 16
"""ネストしたプレースホルダの最大展開段数。"""

Resolve = Callable[[str], Awaitable[str]]


def has_placeholders(text: str) -> bool:
    """text に展開対象のプレースホルダが含まれるかを返す。"""
    spans = _diagnostic_spans(text)
    return any(not _inside(m.start(), spans) for m in _PLACEHOLDER.finditer(text))


# ---------------------------------------------------------------------------
# Interpolator 本体
# ---------------------------------------------------------------------------

class Interpolator:
    """テキスト内のプレースホルダをバインド値で置換するエンジン。

    名前の解決はコンストラクタで受け取る非同期関数に委譲する。
    通常は AttributeResolver.resolve_bound_value を渡す。

    使用例::

        interpolator = Interpolator(resolver.resolve_bound_value)
        text = await interpolator.interpolate("検索語: $<search term>")
    """

    def __init__(self, resolve: Resolve) -> None:
        """補間エンジンを初期化する。

        Args:
            resolve: 名前をバインド値に解決する非同期関数。
                未バインドの場合は UnboundAttributeError を送出すること
        """
        self._resolve = resolve

    async def interpolate(self, text: str) -> str:
        """テキスト内のプレースホルダを展開する。

        プレースホルダを含まないテキストはそのまま返す。

        Raises:
            UnboundAttributeError: ${name} / $<name> の名前が未バインドの場合
        """
        return await self._expand(text, 0)

    # ----- 内部メソッド -----

    async def _expand(self, text: str, depth: int) -> str:
        spans = _diagnostic_spans(text)
        parts: list[str] = []
        pos = 0
        for match in _PLACEHOLDER.finditer(text):
            if _inside(match.start(), spans):
                continue
            parts.append(text[pos:match.start()])
            parts.append(await self._replace(match, depth))
            pos = match.end()
        if not parts:
            return text
        parts.append(text[pos:])
        return "".join(parts)

    async def _replace(self, match: re.Match, depth: int) -> str:
        bare = match.group("bare")
        if bare is None:
            name = (match.group("braced") or match.group("angled")).strip()
            return await self._expand_value(name, await self._resolve(name), depth)

        for name, rest in _bare_candidates(bare):
            try:
                value = await self._resolve(name)
            except UnboundAttributeError:
                continue
            return await self._expand_value(name, value, depth) + rest

        logger.debug("未バインドの $%s はそのまま残します", bare)
        return match.group(0)

    async def _expand_value(self, name: str, value: str, depth: int) -> str:
        if not has_placeholders(value):
            return value
        if depth + 1 >= MAX_DEPTH:
            logger.warning(
                "プレースホルダの展開が %d 段を超えたため打ち切りました: %s", MAX_DEPTH, name
            )
            return value
        return await self._expand(value, depth + 1)


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _bare_candidates(name: str) -> Iterator[tuple[str, str]]:
    """$name の候補名と残りの文字列を長い順に返す。

    "a.b.c" → ("a.b.c", ""), ("a.b", ".c"), ("a", ".b.c")
    """
    segments = name.split(".")
    for i in range(len(segments), 0, -1):
        yield ".".join(segments[:i]), "".join("." + s for s in segments[i:])


def _diagnostic_spans(text: str) -> list[tuple[int, int]]:
    """$[...] 診断プレースホルダの範囲を返す（括弧の入れ子を考慮）。

    対応する ] が無い $[ は診断プレースホルダとして扱わない。
    """
    spans: list[tuple[int, int]] = []
    start = text.find(_DIAGNOSTIC_START)
    while start != -1:
        end = _closing_bracket(text, start + 1)
        if end is None:
            start = text.find(_DIAGNOSTIC_START, start + len(_DIAGNOSTIC_START))
            continue
        spans.append((start, end))
        start = text.find(_DIAGNOSTIC_START, end)
    return spans


def _closing_bracket(text: str, open_index: int) -> Optional[int]:
    """text[open_index] の [ に対応する ] の直後の位置を返す。無ければ None。"""
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "[":
            depth += 1
        elif text[i] == "]":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _inside(index: int, spans: list[tuple[int, int]]) -> bool:
    return any(start <= index < end for start, end in spans)
