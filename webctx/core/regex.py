"""
正規表現抽出 — ソース文字列から正規表現のキャプチャグループを取り出す
"""

from __future__ import annotations

import logging
import re

from .errors import RegexExtractionError

logger = logging.getLogger(__name__)


def extract_by_regex(pattern: str, source: str) -> str:
    """source 内で pattern に最初に一致した箇所の第 1 グループを返す。

    グループを持たないパターンの場合は一致全体を返す。

    Args:
        pattern: 正規表現（例: r"id=(\\d+)"）
        source: 抽出対象の文字列

    Returns:
        抽出した文字列

    Raises:
        RegexExtractionError: パターンが不正な場合、または一致しない場合
    """
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise RegexExtractionError(f"正規表現が不正です: {pattern}: {exc}") from exc

    match = compiled.search(source)
    if match is None:
        raise RegexExtractionError(f"正規表現に一致しませんでした: {pattern}")

    value = match.group(1) if compiled.groups else match.group(0)
    if value is None:
        raise RegexExtractionError(f"キャプチャグループが一致しませんでした: {pattern}")
    logger.debug("extract_by_regex(%s)='%s'", pattern, value)
    return value
