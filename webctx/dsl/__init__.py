# DSL モジュール
# ステップテキストの補間エンジンと、バインディング YAML ファイルの読み込みを提供

from . import interpolation  # noqa: F401
from . import bindings  # noqa: F401
