"""
Tests for the HTML report renderer.
"""

from __future__ import annotations

from engine.analyzer import EngineOptions, analyze
from ingestion.excel_parser import AssessorInfo
from reporting.render import generate_report


def test_report_renders_scores_and_findings(tmp_path, make_question):
    questions = [
        make_question("A.5", "affirmative", framework_ref="EDM01.02"),
        make_question("A.8", "negative", framework_ref="EDM01.02"),
    ]
    result = analyze(questions, [])
    out = tmp_path / "report.html"

    path = generate_report(result, out_path=str(out), questions=questions,
                           assessor=AssessorInfo(organization="Dana Pensiun Beta"))

    html = out.read_text(encoding="utf-8")
    assert path == str(out)
    assert "Questionnaire Integrity Report" in html
    assert "Dana Pensiun Beta" in html
    assert result.findings[0].rule_name in html
    assert "EDM" in html
    assert ">90<" in html


def test_report_escapes_content(tmp_path, make_question):
    questions = [make_question("A.5", "affirmative"), make_question("A.8", "negative")]
    result = analyze(questions, [])
    out = tmp_path / "report.html"

    generate_report(result, out_path=str(out), questions=questions,
                    assessor=AssessorInfo(organization="<script>alert(1)</script>"))

    html = out.read_text(encoding="utf-8")
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html


def test_report_without_aggregation(tmp_path):
    result = analyze([], [], options=EngineOptions(include_aggregation=False))
    out = tmp_path / "report.html"

    generate_report(result, out_path=str(out))

    html = out.read_text(encoding="utf-8")
    assert "Aggregation was disabled" in html
    assert "No inconsistencies detected" in html
