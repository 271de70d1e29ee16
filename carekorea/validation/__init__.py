"""Content quality scoring, grading, and reporting."""

from carekorea.validation.checks import meets_quality_threshold, score_content
from carekorea.validation.report import format_quality_report

__all__ = ["score_content", "meets_quality_threshold", "format_quality_report"]
