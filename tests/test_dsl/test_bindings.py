"""
BindingsLoader のユニットテスト

バインディング YAML ファイルの読み込み、スキーマ検証、
ScopedDataStack への変換を検証する。
"""

from pathlib import Path

import pytest

from webctx.dsl.bindings import BindingsFile, BindingsLoader

SAMPLE = """\
feature:
  search term: playwright
  retries: 3
  enabled: true
scopes:
  - name: google
    bindings:
      q/locator: css selector
      q/locator/css selector: "input[name=q]"
  - name: results
    bindings:
      first result/locator: xpath
      first result/locator/xpath: "(//h3)[1]"
"""


@pytest.fixture
def loader() -> BindingsLoader:
    return BindingsLoader()


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "bindings.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoad:
    """load のテスト。"""

    def test_sample(self, loader: BindingsLoader, tmp_path: Path):
        bindings = loader.load(_write(tmp_path, SAMPLE))

        assert bindings.feature == {"search term": "playwright", "retries": "3", "enabled": "true"}
        assert [s.name for s in bindings.scopes] == ["google", "results"]
        assert bindings.scopes[0].bindings["q/locator/css selector"] == "input[name=q]"

    def test_empty_file(self, loader: BindingsLoader, tmp_path: Path):
        assert loader.load(_write(tmp_path, "")) == BindingsFile()

    def test_missing_file(self, loader: BindingsLoader, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

    def test_syntax_error(self, loader: BindingsLoader, tmp_path: Path):
        with pytest.raises(ValueError, match="YAML 構文エラー"):
            loader.load(_write(tmp_path, "feature:\n  key: [unclosed\n"))

    def test_schema_error_has_location(self, loader: BindingsLoader, tmp_path: Path):
        """スキーマ違反は位置付きの ValueError になること。"""
        with pytest.raises(ValueError, match="scopes -> 0 -> name"):
            loader.load(_write(tmp_path, "scopes:\n  - bindings: {}\n"))

    def test_feature_scope_name_rejected(self, loader: BindingsLoader, tmp_path: Path):
        with pytest.raises(ValueError, match="永続スコープ名"):
            loader.load(_write(tmp_path, "scopes:\n  - name: feature\n"))

    def test_nested_value_rejected(self, loader: BindingsLoader, tmp_path: Path):
        with pytest.raises(ValueError, match="スカラー"):
            loader.load(_write(tmp_path, "feature:\n  key:\n    nested: 1\n"))

    def test_top_level_list_rejected(self, loader: BindingsLoader, tmp_path: Path):
        with pytest.raises(ValueError, match="マッピング"):
            loader.load(_write(tmp_path, "- a\n"))


class TestToStack:
    """ScopedDataStack への変換のテスト。"""

    def test_scopes_pushed_in_order(self, loader: BindingsLoader, tmp_path: Path):
        stack = loader.load_stack(_write(tmp_path, SAMPLE))

        assert len(stack) == 3
        assert stack.current.scope == "results"
        assert stack.get("first result/locator") == "xpath"
        # feature スコープは常に参照できる
        assert stack.get("search term") == "playwright"
        # 中間のスコープは現在のスコープからは見えない
        assert stack.get_opt("q/locator") is None

    def test_popping_reveals_previous_scope(self, loader: BindingsLoader, tmp_path: Path):
        stack = loader.load_stack(_write(tmp_path, SAMPLE))
        stack.pop_scope()
        assert stack.get("q/locator/css selector") == "input[name=q]"

    def test_null_value_becomes_empty(self, loader: BindingsLoader, tmp_path: Path):
        stack = loader.load_stack(_write(tmp_path, "feature:\n  blank:\n"))
        assert stack.get("blank") == ""
