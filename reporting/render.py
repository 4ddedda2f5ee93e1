from jinja2 import Environment, FileSystemLoader, select_autoescape
import os

from agent.why_reasoning import explain_finding, explain_relationship
from engine.aggregation import framework_domain_breakdown, overall_compliance
from engine.scoring import score_label, score_status
from schemas.taxonomy import ASPECT_FRAMEWORK_MAPPING, ASPECT_SHORT_LABELS


def _build_report_context(result, questions, assessor) -> dict:
    """
    Derive all report-specific fields from the engine result.
    Returns a new dict to be merged into the template context.
    """
    questions = list(questions or [])

    # ── 1. Headline scores ────────────────────────────────────────
    overall = overall_compliance(result.aspect_scores)
    headline = {
        "honesty_score": result.honesty_score,
        "honesty_label": score_label(result.honesty_score),
        "honesty_status": score_status(result.honesty_score),
        "compliance_index": result.compliance_index,
        "compliance_label": score_label(result.compliance_index),
        "overall_compliance": overall,
        "overall_status": score_status(overall),
    }

    # ── 2. Per-aspect cards ───────────────────────────────────────
    aspect_cards = []
    for a in result.aspect_scores:
        aspect_cards.append({
            "aspect": a.aspect,
            "name": a.aspect_name,
            "short_name": ASPECT_SHORT_LABELS.get(a.aspect, a.aspect),
            "domains": ASPECT_FRAMEWORK_MAPPING.get(a.aspect, []),
            "total": a.total_questions,
            "answered": a.answered_questions,
            "affirmative": a.affirmative_answers,
            "negative": a.negative_answers,
            "compliance": a.compliance_score,
            "status": score_status(a.compliance_score),
            "domain_breakdown": framework_domain_breakdown(questions, a.aspect),
            "findings": [
                {
                    **f.to_dict(),
                    "explanation": explain_finding(f, questions),
                    "relationship": explain_relationship(f, questions),
                }
                for f in a.findings
            ],
        })

    # ── 3. Findings table (major first, stable otherwise) ─────────
    findings = sorted(
        (f.to_dict() for f in result.findings),
        key=lambda f: 0 if f["severity"] == "major" else 1,
    )

    return {
        "headline": headline,
        "aspect_cards": aspect_cards,
        "findings": findings,
        "assessor": assessor.to_dict() if assessor else {},
    }


def generate_report(result, out_path: str = None, *, questions=None, assessor=None,
                    template_name: str = "report_template.html"):
    base_dir = os.path.dirname(__file__)
    env = Environment(
        loader=FileSystemLoader(base_dir),
        autoescape=select_autoescape(["html", "xml"])
    )

    report_ctx = _build_report_context(result, questions, assessor)
    context = {**result.to_dict(), **report_ctx}

    template = env.get_template(template_name)
    html = template.render(**context)

    if out_path is None:
        out_path = os.path.join(os.getcwd(), "report.html")
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(html)
    return out_path
