"""Grading and human-readable report formatting for quality scores."""

GRADE_THRESHOLDS = [("A", 90), ("B", 80), ("C", 70), ("D", 60)]

BREAKDOWN_LABELS = [
    ("readability", "Readability"),
    ("seo_optimization", "SEO"),
    ("content_depth", "Depth"),
    ("structure", "Structure"),
    ("engagement", "Engagement"),
    ("uniqueness", "Uniqueness"),
]


def compute_grade(overall_score: int) -> str:
    """Letter grade for an overall score.

    A = 90+
    B = 80-89
    C = 70-79
    D = 60-69
    F = below 60
    """
    for grade, threshold in GRADE_THRESHOLDS:
        if overall_score >= threshold:
            return grade
    return "F"


def format_quality_report(result: dict, keyword: str) -> str:
    """Format a score_content result as a readable CLI report."""
    lines = [
        f"{'='*60}",
        f"QUALITY REPORT: {keyword}",
        f"{'='*60}",
        f"Overall Score: {result['overall_score']}/100 (Grade: {result['grade']})",
        "",
        "Breakdown:",
    ]
    for key, label in BREAKDOWN_LABELS:
        lines.append(f"  - {label + ':':<12} {result['breakdown'][key]}%")

    high = [s for s in result["suggestions"] if s["severity"] == "high"]
    if high:
        lines.append(f"\nHIGH PRIORITY ISSUES ({len(high)}):")
        for s in high:
            lines.append(f"  - {s['message']}")

    others = [s for s in result["suggestions"] if s["severity"] != "high"]
    if others:
        lines.append(f"\nSUGGESTIONS ({len(others)}):")
        for s in others:
            lines.append(f"  ~ [{s['severity']}] {s['message']}: {s['recommendation']}")

    if not result["suggestions"]:
        lines.append("\nNo suggestions, content looks good!")

    lines.append(f"{'='*60}")
    return "\n".join(lines)
