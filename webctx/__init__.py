"""
webctx — ウェブテスト実行時のバインディング解決と要素操作

ステップ実行エンジンが参照する実行コンテキストを提供する:
  - core: スコープ付きデータストア、属性解決エンジン、要素アクチュエータ、待機、設定
  - dsl: ステップテキストの補間エンジン、バインディングファイルの読み込み
  - cli: バインディングファイルを使った解決・補間の確認コマンド
"""

__version__ = "0.1.0"

from .core.context import WebContext
from .core.scopes import ScopedDataStack
from .core.settings import Settings

__all__ = ["ScopedDataStack", "Settings", "WebContext", "__version__"]
