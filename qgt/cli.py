"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

qgt コマンドとして以下のサブコマンドを提供する:
  - run: 組み込みシナリオの実行とレポート出力
  - list-scenarios: シナリオ一覧
  - report: report.json から HTML レポートを再生成
  - init: 設定ファイル（qgt.yaml）テンプレート生成
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "qgt — QA Guild 検証ハーネス\n\n"
        "基本の流れ:\n"
        "  1. qgt init              設定ファイル（qgt.yaml）を生成\n"
        "  2. qgt run --base-url URL  シナリオを実行\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)

CONFIG_TEMPLATE = (
    "# qgt ハーネス設定\n"
    "# CLI 引数 > 環境変数（QGT_*） > このファイル の順に優先されます\n"
    "base_url: http://localhost:3000\n"
    "headed: false\n"
    "workers: 1\n"
    "timeout_ms: 10000\n"
    "interval_ms: 300\n"
    "navigation_timeout_ms: 10000\n"
    "max_iterations: 20\n"
    "settle_ms: 1000\n"
    "artifacts_dir: artifacts\n"
)


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="プロジェクトディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """設定ファイルテンプレート（qgt.yaml）と成果物ディレクトリを生成する。"""
    try:
        (project_dir / "artifacts").mkdir(parents=True, exist_ok=True)

        config_path = project_dir / "qgt.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")

        typer.echo(f"プロジェクトを初期化しました: {project_dir.resolve()}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# run コマンド
# ---------------------------------------------------------------------------

@app.command()
def run(
    base_url: Optional[str] = typer.Option(None, "--base-url", "-u", help="テスト対象のベース URL"),
    headed: Optional[bool] = typer.Option(None, "--headed/--headless", help="ブラウザ表示モード（デフォルト: 非表示）"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="並列実行シナリオ数"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="状態待機のタイムアウト（ミリ秒）"),
    interval: Optional[int] = typer.Option(None, "--interval", help="ポーリング間隔（ミリ秒）"),
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", help="勝利・失敗までの操作回数上限"),
    settle: Optional[int] = typer.Option(None, "--settle", help="クランプ境界で値の保持を確認する期間（ミリ秒）"),
    slow_mo: Optional[int] = typer.Option(None, "--slow-mo", help="各操作間の遅延（ミリ秒）"),
    scenario: Optional[List[str]] = typer.Option(None, "--scenario", "-s", help="実行するシナリオ名（複数指定可）"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="実行するシナリオのタグ（複数指定可）"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="設定ファイル（デフォルト: ./qgt.yaml）"),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir", "-o", help="レポート出力先（デフォルト: artifacts_dir）"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="DEBUG ログを出力する"),
) -> None:
    """組み込みシナリオを実行し、JSON / JUnit XML / HTML レポートを出力する。"""
    import asyncio

    from .config import load_config
    from .core.reporting import Reporter
    from .core.runner import ScenarioRunner
    from .scenarios import select_scenarios

    _setup_logging(verbose)

    try:
        config = load_config(
            config_file,
            base_url=base_url,
            headed=headed,
            workers=workers,
            timeout_ms=timeout,
            interval_ms=interval,
            max_iterations=max_iterations,
            settle_ms=settle,
            slow_mo=slow_mo,
        )
        scenarios = select_scenarios(scenario, tag)
        if not scenarios:
            typer.echo("エラー: 条件に一致するシナリオがありません", err=True)
            raise typer.Exit(code=1)

        typer.echo(f"対象: {config.base_url}（{len(scenarios)} シナリオ, workers={config.workers}）")

        runner = ScenarioRunner(config)
        results = asyncio.run(runner.run_all(scenarios))

        for result in results:
            typer.echo(f"[{result.status}] {result.scenario_name} ({result.duration_ms:.0f}ms)")
            if result.reason:
                typer.echo(f"    {result.reason}")

        output_dir = report_dir or config.artifacts_dir
        reporter = Reporter()
        reporter.generate_json(results, output_dir)
        reporter.generate_junit_xml(results, output_dir)
        html_path = reporter.generate_html(results, output_dir)

        passed = sum(1 for r in results if r.passed)
        typer.echo(f"\n結果: {passed}/{len(results)} passed")
        typer.echo(f"レポート: {html_path}")

        if passed != len(results):
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# list-scenarios コマンド
# ---------------------------------------------------------------------------

@app.command("list-scenarios")
def list_scenarios(
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="タグで絞り込む"),
) -> None:
    """組み込みシナリオの一覧を表示する。"""
    from .scenarios import select_scenarios

    scenarios = select_scenarios(tags=tag)
    for s in scenarios:
        tags = f" [{', '.join(s.tags)}]" if s.tags else ""
        typer.echo(f"  {s.name:24s} {s.description}{tags}")

    typer.echo(f"\n合計: {len(scenarios)} シナリオ")


# ---------------------------------------------------------------------------
# report コマンド
# ---------------------------------------------------------------------------

@app.command()
def report(
    artifacts_dir: Path = typer.Argument(..., help="report.json のあるディレクトリ"),
) -> None:
    """既存の report.json から HTML レポートを再生成する。"""
    from .core.reporting import Reporter

    try:
        report_json_path = artifacts_dir / "report.json"
        if not report_json_path.exists():
            typer.echo(
                f"エラー: {report_json_path} が見つかりません", err=True,
            )
            raise typer.Exit(code=1)

        reporter = Reporter()
        results = reporter.load_json(report_json_path)
        html_path = reporter.generate_html(results, artifacts_dir)
        typer.echo(f"HTML レポートを生成しました: {html_path}")
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
