"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

webctx コマンドとして以下のサブコマンドを提供する:
  - dump: バインディングファイルを読み込み、スコープスタックを JSON で表示
  - resolve: ページを開いて名前を解決し、結果を表示
  - interpolate: ページを開いてテキストのプレースホルダを展開し、結果を表示
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

import typer

from .core.context import WebContext
from .core.errors import WebContextError
from .core.scopes import ScopedDataStack
from .core.settings import Settings
from .dsl.bindings import BindingsLoader

Action = Callable[[WebContext], Awaitable[str]]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "webctx — バインディング解決の確認ツール\n\n"
        "基本の流れ:\n"
        "  1. webctx dump bindings.yaml            読み込んだスコープを確認\n"
        "  2. webctx resolve bindings.yaml NAME    ページ上で名前を解決\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="解決過程のログを表示する"),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# dump コマンド
# ---------------------------------------------------------------------------

@app.command()
def dump(
    bindings_file: Path = typer.Argument(..., help="バインディング YAML ファイル"),
) -> None:
    """バインディングファイルを読み込み、スコープスタックを JSON で表示する。"""
    try:
        scopes = BindingsLoader().load_stack(bindings_file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(scopes.to_json())


# ---------------------------------------------------------------------------
# resolve / interpolate コマンド
# ---------------------------------------------------------------------------

@app.command()
def resolve(
    bindings_file: Path = typer.Argument(..., help="バインディング YAML ファイル"),
    name: str = typer.Argument(..., help="解決する名前"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="解決前に開く URL"),
    headed: bool = typer.Option(False, "--headed/--headless", help="ブラウザ表示モード（デフォルト: 非表示）"),
    settings_file: Optional[Path] = typer.Option(None, "--settings", "-s", help="設定 YAML ファイル"),
) -> None:
    """ページを開き、名前をバインド値に解決して表示する。"""

    async def _resolve(context: WebContext) -> str:
        return await context.resolver.resolve_bound_value(name)

    typer.echo(_run(bindings_file, settings_file, url, headed, _resolve))


@app.command()
def interpolate(
    bindings_file: Path = typer.Argument(..., help="バインディング YAML ファイル"),
    text: str = typer.Argument(..., help="展開するテキスト（例: 'hello $<name>'）"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="展開前に開く URL"),
    headed: bool = typer.Option(False, "--headed/--headless", help="ブラウザ表示モード（デフォルト: 非表示）"),
    settings_file: Optional[Path] = typer.Option(None, "--settings", "-s", help="設定 YAML ファイル"),
) -> None:
    """ページを開き、テキスト内のプレースホルダを展開して表示する。"""

    async def _interpolate(context: WebContext) -> str:
        return await context.parse_step(text)

    typer.echo(_run(bindings_file, settings_file, url, headed, _interpolate))


# ---------------------------------------------------------------------------
# 内部関数
# ---------------------------------------------------------------------------

def _run(
    bindings_file: Path,
    settings_file: Optional[Path],
    url: Optional[str],
    headed: bool,
    action: Action,
) -> str:
    """設定とバインディングを読み込み、ブラウザ上で action を実行する。

    エラー時はメッセージを表示して終了コード 1 で終了する。
    """
    try:
        scopes = BindingsLoader().load_stack(bindings_file)
        settings = Settings.load(settings_file)
        return asyncio.run(_with_browser(scopes, settings, url, headed, action))
    except (FileNotFoundError, ValueError, WebContextError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


async def _with_browser(
    scopes: ScopedDataStack,
    settings: Settings,
    url: Optional[str],
    headed: bool,
    action: Action,
) -> str:
    from playwright.async_api import async_playwright

    from .core.driver import PlaywrightDriver

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=not headed)
        try:
            page = await browser.new_page()
            if url:
                logger.info("ページを開きます: %s", url)
                await page.goto(url)
            driver = PlaywrightDriver(page, locate_timeout=float(settings.web.wait_seconds))
            context = WebContext(driver, scopes=scopes, settings=settings)
            return await action(context)
        finally:
            await browser.close()
