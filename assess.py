# assess.py - Questionnaire Integrity Assessor
import argparse
import json
import logging
import os
import time

from agent.why_reasoning import STATUS_FILTERS, print_rule_board, rule_status_board
from ai.secondary_validator import (
    QuotaExhaustedError,
    RateLimitError,
    SecondaryValidator,
    SecondaryValidatorError,
    combine_for_display,
)
from config.settings import get_settings
from engine.aggregation import overall_compliance
from engine.analyzer import EngineOptions, analyze
from engine.scoring import score_label
from engine.telemetry import AnalysisTelemetry
from ingestion.excel_parser import QuestionnaireParseError, parse_workbook
from ingestion.loader import load_questions, load_rules
from reporting.render import generate_report
from reporting.workbook import compare_exports, export_workbook
from rule_packs.loader import RulePackError, load_pack


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _load_input(path: str):
    """Questions (and assessor info for workbooks) from .xlsx or .json."""
    if path.lower().endswith((".xlsx", ".xlsm")):
        parsed = parse_workbook(path)
        return parsed.questions, parsed.assessor
    return load_questions(path), None


def _write_json(path: str, payload: dict) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def _print_comparison(records: list[dict]) -> None:
    print("\n┌─ Organisation Comparison ─────────────────────────────────┐")
    for rank, r in enumerate(records, start=1):
        label = r["organization"] or r["file_name"]
        aspects = "  ".join(f"{a['aspect']}={a['compliance']}%" for a in r["aspects"])
        print(f"│ {rank:>2}. {label[:28]:<28} {r['overall_compliance']:>3}%  {aspects}")
    print("└───────────────────────────────────────────────────────────┘")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Questionnaire Integrity Assessor")
    p.add_argument("input", nargs="?",
                   help="Filled questionnaire (.xlsx) or question list (.json)")
    p.add_argument("--rules", metavar="FILE",
                   help="Operator rules JSON (default: the rule pack's rules.json)")
    p.add_argument("--pack", help="Rule pack name (default: RULE_PACK or 'cobit')")
    p.add_argument("--pack-version", help="Rule pack version (default: RULE_PACK_VERSION or 'v1.0')")
    p.add_argument("--no-static-pairs", action="store_true", help="Skip static cross-validation pairs")
    p.add_argument("--no-pattern", action="store_true", help="Skip the parent/child pattern detector")
    p.add_argument("--no-aggregation", action="store_true", help="Skip per-aspect aggregation")
    p.add_argument("--parallel", action="store_true", help="Run finding passes on a thread pool")
    p.add_argument("--json-out", metavar="FILE", help="Write the result JSON")
    p.add_argument("--xlsx-out", metavar="FILE", help="Export the assessment workbook")
    p.add_argument("--html-out", metavar="FILE", help="Render the HTML report")
    p.add_argument("--rule-board", choices=STATUS_FILTERS, metavar="FILTER",
                   help="Print per-rule detected/clean status (all, detected, clean)")
    p.add_argument("--ai", action="store_true", help="Also run the remote secondary validator")
    p.add_argument("--pretty", action="store_true", help="Pretty-print final JSON to stdout")
    p.add_argument("--compare", nargs="+", metavar="FILE",
                   help="Rank previously exported workbooks by overall compliance and exit")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    args = p.parse_args(argv)
    if not args.input and not args.compare:
        p.error("an input questionnaire or --compare is required")
    return args


# ------------------------------------------------------------------
# Main
# ------------------------------------------------------------------

def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()

    print("╔══════════════════════════════════════╗")
    print("║   Questionnaire Integrity Assessor   ║")
    print("╚══════════════════════════════════════╝")

    # ── Comparison of exported workbooks (no analysis) ────────────
    if args.compare:
        try:
            records = compare_exports(args.compare)
        except QuestionnaireParseError as e:
            print(f"\n  ✗ {e}")
            return 1
        _print_comparison(records)
        if args.pretty:
            print(json.dumps(records, indent=2))
        return 0

    # ── Inputs ────────────────────────────────────────────────────
    run_start = time.perf_counter()
    try:
        questions, assessor = _load_input(args.input)
        pack = load_pack(args.pack or settings.rule_pack, args.pack_version or settings.rule_pack_version)
        rules = load_rules(args.rules) if args.rules else pack.rules
    except (QuestionnaireParseError, RulePackError) as e:
        print(f"\n  ✗ {e}")
        return 1

    print(f"\n  Input:           {args.input}")
    if assessor and assessor.organization:
        print(f"  Organization:    {assessor.organization}")
    print(f"  Rule pack:       {pack.name} {pack.version}")
    print(f"  Rules:           {len(rules)}{' (' + args.rules + ')' if args.rules else ''}")

    # ── Engine ────────────────────────────────────────────────────
    options = EngineOptions(
        include_static_pairs=not args.no_static_pairs,
        include_pattern_detector=not args.no_pattern,
        include_aggregation=not args.no_aggregation,
        parallel=args.parallel,
        cross_validation_pairs=pack.cross_validation_pairs,
    )
    telemetry = AnalysisTelemetry()
    result = analyze(questions, rules, options=options, telemetry=telemetry)
    output = result.to_dict()
    output["telemetry"] = telemetry.to_dict()

    print(f"\n  Answered:        {result.answered_questions} / {result.total_questions}")
    print(f"  Findings:        {len(result.findings)}"
          f"  ({result.major_findings} major, {result.minor_findings} minor)")
    print(f"  Honesty score:   {result.honesty_score}  ({score_label(result.honesty_score)})")
    print(f"  Compliance idx:  {result.compliance_index}")
    if result.aspect_scores:
        print(f"  Overall compl.:  {overall_compliance(result.aspect_scores)}%")
        for a in result.aspect_scores:
            print(f"    {a.aspect}  {a.aspect_name[:44]:<44} {a.compliance_score:>3}%"
                  f"  ({len(a.findings)} findings)")

    if args.rule_board:
        print_rule_board(rule_status_board(
            tuple(rules) + tuple(options.cross_validation_pairs or ()),
            result.findings,
            status_filter=args.rule_board,
        ))

    # ── Remote secondary validator (optional, independent) ────────
    if args.ai:
        print("\nRequesting secondary validation …")
        try:
            remote = SecondaryValidator(settings).validate(questions)
            output["secondary_validation"] = combine_for_display(result, remote)
            print(f"  Remote findings: {len(remote.get('findings', []))}"
                  f"  (risk: {remote.get('overall_risk_level')},"
                  f" consistency: {remote.get('consistency_score')})")
            if remote.get("parse_error"):
                print("  ⚠ Remote answer could not be parsed; neutral report used")
        except RateLimitError as e:
            print(f"  ⚠ Rate limited: {e}")
        except QuotaExhaustedError as e:
            print(f"  ⚠ Quota exhausted: {e}")
        except SecondaryValidatorError as e:
            print(f"  ⚠ Secondary validation skipped: {e}")

    # ── Outputs ───────────────────────────────────────────────────
    written = []
    if args.json_out:
        _write_json(args.json_out, output)
        written.append(args.json_out)
    if args.xlsx_out:
        written.append(export_workbook(result, questions, args.xlsx_out, assessor=assessor))
    if args.html_out:
        written.append(generate_report(result, out_path=args.html_out,
                                       questions=questions, assessor=assessor))

    print("\n┌─ Runtime Telemetry ──────────────────┐")
    for line in telemetry.summary_lines():
        print(f"│ {line}")
    print(f"│   Total:            {round(time.perf_counter() - run_start, 3)}s")
    print("└──────────────────────────────────────┘")

    if written:
        print(f"\n✓ Done.  {'  |  '.join(written)}")
    else:
        print("\n✓ Done.")

    if args.pretty:
        print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
