"""
SessionOrder Pattern Analysis

Cross-incident insights for the tutor: which behaviors dominate, when in
a session they happen, whether severity is trending up, and which
categories tend to show up together.

Usage:
    report = analyze_patterns(incidents, methodology)
    if report.has_patterns:
        for line in report.insights:
            print(line)
"""
from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Optional, Sequence

from ..models import Incident
from .methodology import Methodology


TOP_CATEGORY_LIMIT = 3
CORRELATION_LIMIT = 3
CORRELATION_MIN_COUNT = 2
TREND_MIN_INCIDENTS = 3
TREND_THRESHOLD = 0.3
DOMINANT_CATEGORY_PERCENT = 40

NO_DATA_MESSAGE = "Not enough data for pattern analysis"

# (key, label, start inclusive, end exclusive) in session seconds
TIME_BUCKETS: tuple[tuple[str, str, int, Optional[int]], ...] = (
    ("first5", "First 5 min", 0, 300),
    ("early", "5-15 min", 300, 900),
    ("mid", "15-30 min", 900, 1800),
    ("late", "30-45 min", 1800, 2700),
    ("end", "45+ min", 2700, None),
)


@dataclass
class CategoryShare:
    category: str
    label: str
    count: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "count": self.count,
            "percentage": self.percentage,
        }


@dataclass
class TimePatterns:
    buckets: dict[str, dict[str, Any]]
    peak_time: Optional[str]
    peak_count: int
    is_early_heavy: bool
    is_late_heavy: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "buckets": self.buckets,
            "peakTime": self.peak_time,
            "peakCount": self.peak_count,
            "isEarlyHeavy": self.is_early_heavy,
            "isLateHeavy": self.is_late_heavy,
        }


@dataclass
class SeverityTrend:
    """trend is escalating, deescalating, stable or insufficient_data."""
    trend: str
    avg_first: Optional[float] = None
    avg_second: Optional[float] = None
    overall: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"trend": self.trend}
        if self.avg_first is not None:
            result["avgFirst"] = self.avg_first
            result["avgSecond"] = self.avg_second
            result["overall"] = self.overall
        return result


@dataclass
class PatternReport:
    has_patterns: bool
    total_incidents: int = 0
    top_categories: list[CategoryShare] = field(default_factory=list)
    time_patterns: Optional[TimePatterns] = None
    severity_trend: Optional[SeverityTrend] = None
    correlations: list[dict[str, Any]] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if not self.has_patterns:
            return {"hasPatterns": False, "message": self.message}
        return {
            "hasPatterns": True,
            "totalIncidents": self.total_incidents,
            "topCategories": [c.to_dict() for c in self.top_categories],
            "timePatterns": self.time_patterns.to_dict() if self.time_patterns else None,
            "severityTrend": self.severity_trend.to_dict() if self.severity_trend else None,
            "correlations": list(self.correlations),
            "insights": list(self.insights),
        }


# =============================================================================
# Analyses
# =============================================================================

def _label(methodology: Optional[Methodology], category_id: str, short: bool = False) -> str:
    category = methodology.category(category_id) if methodology else None
    if category is None:
        return category_id
    return category.short_label if short else category.label


def top_categories(
    incidents: Sequence[Incident],
    methodology: Optional[Methodology] = None,
) -> list[CategoryShare]:
    counts = Counter(i.category.value for i in incidents)
    total = len(incidents)
    return [
        CategoryShare(
            category=category,
            label=_label(methodology, category),
            count=count,
            percentage=round(count / total * 100),
        )
        for category, count in counts.most_common(TOP_CATEGORY_LIMIT)
    ]


def analyze_time_patterns(incidents: Sequence[Incident]) -> TimePatterns:
    buckets = {
        key: {"label": label, "count": 0, "range": [start, end]}
        for key, label, start, end in TIME_BUCKETS
    }
    for incident in incidents:
        seconds = incident.time_into_session or 0
        for key, _, start, end in TIME_BUCKETS:
            if seconds >= start and (end is None or seconds < end):
                buckets[key]["count"] += 1
                break

    peak_time: Optional[str] = None
    peak_count = 0
    for key, label, _, _ in TIME_BUCKETS:
        if buckets[key]["count"] > peak_count:
            peak_count = buckets[key]["count"]
            peak_time = label

    half = len(incidents) / 2
    return TimePatterns(
        buckets=buckets,
        peak_time=peak_time,
        peak_count=peak_count,
        is_early_heavy=buckets["first5"]["count"] + buckets["early"]["count"] > half,
        is_late_heavy=buckets["late"]["count"] + buckets["end"]["count"] > half,
    )


def analyze_severity_trend(incidents: Sequence[Incident]) -> SeverityTrend:
    """Compare average severity of the earlier half to the later half."""
    if len(incidents) < TREND_MIN_INCIDENTS:
        return SeverityTrend(trend="insufficient_data")

    ordered = sorted(incidents, key=lambda i: i.timestamp)
    mid = len(ordered) // 2
    first, second = ordered[:mid], ordered[mid:]
    avg_first = sum(i.severity for i in first) / len(first)
    avg_second = sum(i.severity for i in second) / len(second)

    if avg_second > avg_first + TREND_THRESHOLD:
        trend = "escalating"
    elif avg_second < avg_first - TREND_THRESHOLD:
        trend = "deescalating"
    else:
        trend = "stable"

    return SeverityTrend(
        trend=trend,
        avg_first=round(avg_first, 1),
        avg_second=round(avg_second, 1),
        overall=round((avg_first + avg_second) / 2, 1),
    )


def analyze_correlations(
    incidents: Sequence[Incident],
    methodology: Optional[Methodology] = None,
) -> list[dict[str, Any]]:
    """Category pairs that co-occur in at least two sessions."""
    by_session: dict[str, set[str]] = defaultdict(set)
    for incident in incidents:
        by_session[incident.session_id].add(incident.category.value)

    pairs: Counter[tuple[str, str]] = Counter()
    for categories in by_session.values():
        for pair in combinations(sorted(categories), 2):
            pairs[pair] += 1

    frequent = [(pair, n) for pair, n in pairs.most_common() if n >= CORRELATION_MIN_COUNT]
    return [
        {
            "categories": [_label(methodology, a, short=True), _label(methodology, b, short=True)],
            "count": count,
        }
        for (a, b), count in frequent[:CORRELATION_LIMIT]
    ]


def generate_insights(
    categories: Sequence[CategoryShare],
    time_patterns: TimePatterns,
    trend: SeverityTrend,
) -> list[str]:
    insights: list[str] = []

    if categories and categories[0].percentage >= DOMINANT_CATEGORY_PERCENT:
        top = categories[0]
        insights.append(
            f"{top.label} accounts for {top.percentage}% of incidents. "
            "Consider targeted strategies for this behavior."
        )

    if time_patterns.is_early_heavy:
        insights.append(
            "Most incidents occur early in sessions. Consider stronger warm-up "
            "routines or expectation setting at the start."
        )
    elif time_patterns.is_late_heavy:
        insights.append(
            "Incidents cluster toward session end. Consider shorter sessions, "
            "more breaks, or energy management strategies."
        )

    if trend.trend == "escalating":
        insights.append(
            "Severity appears to be increasing over time. Review de-escalation "
            "strategies and early intervention."
        )
    elif trend.trend == "deescalating":
        insights.append(
            "Good news: severity is trending downward. Current strategies appear effective."
        )

    if not insights:
        insights.append("No significant patterns detected. Continue monitoring.")
    return insights


def analyze_patterns(
    incidents: Sequence[Incident],
    methodology: Optional[Methodology] = None,
) -> PatternReport:
    if not incidents:
        return PatternReport(has_patterns=False, message=NO_DATA_MESSAGE)

    categories = top_categories(incidents, methodology)
    time_patterns = analyze_time_patterns(incidents)
    trend = analyze_severity_trend(incidents)

    return PatternReport(
        has_patterns=True,
        total_incidents=len(incidents),
        top_categories=categories,
        time_patterns=time_patterns,
        severity_trend=trend,
        correlations=analyze_correlations(incidents, methodology),
        insights=generate_insights(categories, time_patterns, trend),
    )
