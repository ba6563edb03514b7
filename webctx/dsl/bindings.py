"""
バインディングファイル — YAML で記述したバインディングをスコープスタックに読み込む

ファイル形式::

    feature:                      # 永続スコープのエントリ
      search term: playwright
    scopes:                       # 記述順に push するスコープ
      - name: google
        bindings:
          q/locator: css selector
          q/locator/css selector: "input[name=q]"

ruamel.yaml で読み込み、Pydantic モデル（BindingsFile）で検証してから
ScopedDataStack を構築する。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..core.scopes import FEATURE_SCOPE, ScopedDataStack

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# スキーマ
# ---------------------------------------------------------------------------

def _stringify(values: dict[str, Any]) -> dict[str, str]:
    """YAML のスカラー値を文字列に揃える（bool は JavaScript 表記）。"""
    result: dict[str, str] = {}
    for key, value in values.items():
        if isinstance(value, bool):
            result[str(key)] = "true" if value else "false"
        elif value is None:
            result[str(key)] = ""
        elif isinstance(value, (dict, list)):
            raise ValueError(f"{key} の値はスカラーである必要があります")
        else:
            result[str(key)] = str(value)
    return result


class ScopeBindings(BaseModel):
    """1 スコープ分のバインディング。"""

    name: str = Field(..., min_length=1, description="スコープ名")
    bindings: dict[str, str] = Field(default_factory=dict, description="キー → 値")

    @field_validator("name")
    @classmethod
    def _not_feature(cls, value: str) -> str:
        if value == FEATURE_SCOPE:
            raise ValueError(f"'{FEATURE_SCOPE}' は永続スコープ名のため使用できません（feature: に記述してください）")
        return value

    @field_validator("bindings", mode="before")
    @classmethod
    def _to_strings(cls, value: Any) -> Any:
        return _stringify(value) if isinstance(value, dict) else value


class BindingsFile(BaseModel):
    """バインディングファイル全体。"""

    feature: dict[str, str] = Field(default_factory=dict, description="永続スコープのエントリ")
    scopes: list[ScopeBindings] = Field(default_factory=list, description="push するスコープ")

    @field_validator("feature", mode="before")
    @classmethod
    def _to_strings(cls, value: Any) -> Any:
        return _stringify(value) if isinstance(value, dict) else value

    def to_stack(self) -> ScopedDataStack:
        """ScopedDataStack を構築する。最後に記述したスコープが現在のスコープになる。"""
        stack = ScopedDataStack()
        for key, value in self.feature.items():
            stack.feature.set(key, value)
        for scope in self.scopes:
            data = stack.add_scope(scope.name)
            for key, value in scope.bindings.items():
                data.set(key, value)
        return stack


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------

class BindingsLoader:
    """バインディング YAML ファイルの読み込み。

    使用例::

        loader = BindingsLoader()
        scopes = loader.load_stack(Path("bindings.yaml"))
    """

    def __init__(self) -> None:
        self._yaml = YAML(typ="safe")

    def load(self, path: Path) -> BindingsFile:
        """YAML ファイルを読み込み、BindingsFile に変換する。

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: YAML 構文エラー、またはスキーマ違反の場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"バインディングファイルが見つかりません: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            # 行番号付きエラーメッセージを生成
            line_info = ""
            if hasattr(e, "problem_mark") and e.problem_mark is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            return BindingsFile()
        if not isinstance(data, dict):
            raise ValueError("バインディングファイルのトップレベルはマッピングである必要があります")

        try:
            bindings = BindingsFile(**data)
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {_describe(e)}") from e

        logger.debug(
            "バインディングファイルを読み込みました: %s（feature: %d 件, スコープ: %d 個）",
            path, len(bindings.feature), len(bindings.scopes),
        )
        return bindings

    def load_stack(self, path: Path) -> ScopedDataStack:
        """YAML ファイルを読み込み、ScopedDataStack を構築する。"""
        return self.load(path).to_stack()


def _describe(error: PydanticValidationError) -> str:
    """検証エラーを "位置: メッセージ" の列に整形する。"""
    messages = []
    for err in error.errors():
        loc_parts = [str(part) for part in err.get("loc", [])]
        location = " -> ".join(loc_parts) if loc_parts else "unknown"
        messages.append(f"{location}: {err.get('msg', '不明なエラー')}")
    return "; ".join(messages)
