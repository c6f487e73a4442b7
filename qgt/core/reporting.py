"""
Reporter — シナリオ実行レポートの生成

ScenarioResult のリストを受け取り、JSON / HTML / JUnit XML 形式のレポートを生成する。

主な機能:
  - generate_json(): JSON レポート（report.json）の生成
  - generate_html(): Jinja2 テンプレートを使用した HTML レポート（report.html）の生成
  - generate_junit_xml(): JUnit XML レポート（junit.xml）の生成（CI 統合用）
  - load_json(): report.json から ScenarioResult を復元（HTML 再生成用）
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader

from .runner import ScenarioResult, StepResult

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

SUITE_NAME = "qa-guild"


class Reporter:
    """シナリオ実行レポートの生成クラス。"""

    def __init__(self, suite_name: str = SUITE_NAME) -> None:
        self._suite_name = suite_name

    # -------------------------------------------------------------------
    # JSON レポート
    # -------------------------------------------------------------------

    def generate_json(self, results: list[ScenarioResult], output_dir: Path) -> Path:
        """JSON レポートを生成する。

        Args:
            results: シナリオ実行結果のリスト
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.json のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        output_path = output_dir / "report.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self._build_report_dict(results), f, ensure_ascii=False, indent=2)

        logger.info("JSON レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # HTML レポート
    # -------------------------------------------------------------------

    def generate_html(self, results: list[ScenarioResult], output_dir: Path) -> Path:
        """Jinja2 テンプレート（templates/report.html.j2）で HTML レポートを生成する。"""
        output_dir.mkdir(parents=True, exist_ok=True)

        env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )
        template = env.get_template("report.html.j2")
        html_content = template.render(report=self._build_report_dict(results))

        output_path = output_dir / "report.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info("HTML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # JUnit XML レポート
    # -------------------------------------------------------------------

    def generate_junit_xml(self, results: list[ScenarioResult], output_dir: Path) -> Path:
        """JUnit XML レポートを生成する。

        シナリオを testcase として出力し、failed は failure 要素、
        error は error 要素で表す。
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        summary = self._compute_summary(results)
        testsuites = ET.Element("testsuites")
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", self._suite_name)
        testsuite.set("tests", str(summary["total"]))
        testsuite.set("failures", str(summary["failed"]))
        testsuite.set("errors", str(summary["error"]))
        testsuite.set("time", f"{sum(r.duration_ms for r in results) / 1000:.3f}")

        for result in results:
            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", result.scenario_name)
            testcase.set("classname", self._suite_name)
            testcase.set("time", f"{result.duration_ms / 1000:.3f}")

            if result.status in ("failed", "error"):
                element = ET.SubElement(
                    testcase, "failure" if result.status == "failed" else "error",
                )
                element.set("message", result.reason or "")
                element.text = "\n".join(
                    f"[{s.status}] {s.step_name}: {s.error}"
                    for s in result.steps
                    if s.error
                ) or (result.reason or "")

        tree = ET.ElementTree(testsuites)
        output_path = output_dir / "junit.xml"
        ET.indent(tree, space="  ")
        tree.write(
            str(output_path),
            encoding="unicode",
            xml_declaration=True,
        )

        logger.info("JUnit XML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # report.json からの復元
    # -------------------------------------------------------------------

    def load_json(self, report_path: Path) -> list[ScenarioResult]:
        """report.json を読み込み、ScenarioResult のリストを復元する。"""
        with open(report_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        results = []
        for s in data.get("scenarios", []):
            steps = [
                StepResult(
                    step_name=st.get("step_name", ""),
                    step_index=st.get("step_index", 0),
                    status=st.get("status", "passed"),
                    duration_ms=st.get("duration_ms", 0.0),
                    error=st.get("error"),
                    error_type=st.get("error_type"),
                    screenshot_path=(
                        Path(st["screenshot_path"]) if st.get("screenshot_path") else None
                    ),
                )
                for st in s.get("steps", [])
            ]
            results.append(
                ScenarioResult(
                    scenario_name=s.get("name", ""),
                    status=s.get("status", "passed"),
                    reason=s.get("reason"),
                    steps=steps,
                    duration_ms=s.get("duration_ms", 0.0),
                    started_at=_parse_datetime(s.get("started_at")),
                    finished_at=_parse_datetime(s.get("finished_at")),
                )
            )
        return results

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _build_report_dict(self, results: list[ScenarioResult]) -> dict[str, Any]:
        scenarios = []
        for result in results:
            scenarios.append({
                "name": result.scenario_name,
                "status": result.status,
                "reason": result.reason,
                "duration_ms": result.duration_ms,
                "started_at": (
                    result.started_at.isoformat() if result.started_at else None
                ),
                "finished_at": (
                    result.finished_at.isoformat() if result.finished_at else None
                ),
                "steps": [
                    {
                        "step_name": step.step_name,
                        "step_index": step.step_index,
                        "status": step.status,
                        "duration_ms": step.duration_ms,
                        "error": step.error,
                        "error_type": step.error_type,
                        "screenshot_path": (
                            step.screenshot_path.as_posix() if step.screenshot_path else None
                        ),
                    }
                    for step in result.steps
                ],
            })

        return {
            "suite": self._suite_name,
            "summary": self._compute_summary(results),
            "scenarios": scenarios,
        }

    def _compute_summary(self, results: list[ScenarioResult]) -> dict[str, int]:
        return {
            "total": len(results),
            "passed": sum(1 for r in results if r.status == "passed"),
            "failed": sum(1 for r in results if r.status == "failed"),
            "error": sum(1 for r in results if r.status == "error"),
        }


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
