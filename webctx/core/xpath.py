"""
XPath 評価 — XML 文字列に対する XPath 式の評価

xml.etree.ElementTree の XPath サブセットで評価する。
ElementTree が扱えない末尾の text() と @属性 ステップはここで処理する。

評価結果の型（XmlNodeType）:
  - text:    最初に一致したノードのテキスト（子孫テキストを連結）
  - node:    最初に一致したノードの XML 文字列
  - nodeset: 一致した全ノードの XML 文字列を改行で連結
"""

from __future__ import annotations

import enum
import logging
import re
import xml.etree.ElementTree as ET

from .errors import XPathEvaluationError

logger = logging.getLogger(__name__)

_TEXT_STEP = re.compile(r"/text\(\)$")
_ATTR_STEP = re.compile(r"/@([\w:.-]+)$")


class XmlNodeType(str, enum.Enum):
    """XPath 評価結果の型。"""

    TEXT = "text"
    NODE = "node"
    NODESET = "nodeset"

    @classmethod
    def parse(cls, value: str) -> XmlNodeType:
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise XPathEvaluationError(
                f"未知の XPath 評価型です: {value}（text / node / nodeset）"
            ) from None


def evaluate_xpath(expression: str, source: str, target_type: XmlNodeType) -> str:
    """XML 文字列に対して XPath 式を評価する。

    Args:
        expression: XPath 式（例: "//item[@id='1']/name/text()"）
        source: 評価対象の XML 文字列
        target_type: 評価結果の型

    Returns:
        評価結果の文字列

    Raises:
        XPathEvaluationError: XML の解析・XPath の評価に失敗した場合、
            または一致するノードが無い場合
    """
    try:
        root = ET.fromstring(source)
    except ET.ParseError as exc:
        raise XPathEvaluationError(f"XML を解析できません: {exc}") from exc

    path = expression.strip()
    attribute = None
    text_only = False

    attr_match = _ATTR_STEP.search(path)
    if attr_match:
        attribute = attr_match.group(1)
        path = path[: attr_match.start()]
    elif _TEXT_STEP.search(path):
        text_only = True
        path = _TEXT_STEP.sub("", path)

    # ElementTree は文書ルートからの絶対パスを扱えないため、ルート基準に書き換える
    nodes = _find_all(root, path)
    if not nodes:
        raise XPathEvaluationError(f"XPath に一致するノードがありません: {expression}")

    if attribute is not None:
        values = [n.get(attribute) for n in nodes if n.get(attribute) is not None]
        if not values:
            raise XPathEvaluationError(f"属性 {attribute} を持つノードがありません: {expression}")
        if target_type is XmlNodeType.NODESET:
            return "\n".join(values)
        return values[0]

    if target_type is XmlNodeType.TEXT or text_only:
        return "".join(nodes[0].itertext())
    if target_type is XmlNodeType.NODE:
        return ET.tostring(nodes[0], encoding="unicode").strip()
    return "\n".join(ET.tostring(n, encoding="unicode").strip() for n in nodes)


def _find_all(root: ET.Element, path: str) -> list[ET.Element]:
    """ルート要素を基準に path に一致する要素を返す。"""
    if path in ("", "/", "."):
        return [root]
    if path.startswith("//"):
        own = [root] if _matches_root(root, path[2:]) else []
        return own + _safe_findall(root, "." + path)
    if path.startswith("/"):
        # "/root/child" → ルート要素名を確認してから残りを相対評価する
        head, _, rest = path[1:].partition("/")
        if not _matches_root(root, head):
            return []
        return [root] if not rest else _safe_findall(root, rest)
    return _safe_findall(root, path)


def _matches_root(root: ET.Element, step: str) -> bool:
    name = step.split("[", 1)[0]
    return "/" not in step and name in ("*", root.tag) and "[" not in step


def _safe_findall(root: ET.Element, path: str) -> list[ET.Element]:
    try:
        return root.findall(path)
    except SyntaxError as exc:
        raise XPathEvaluationError(f"XPath 式が不正です: {path}: {exc}") from exc
