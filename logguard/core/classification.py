# logguard/core/classification.py
"""
Display classification shared by the table, the detail view and the CSV export

Every function here is total: unknown or malformed input falls back to a
neutral value instead of raising.
"""

import math
import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class DetectionCategory(str, Enum):
    """Coarse grouping of the detection method that produced an anomaly"""
    TRADITIONAL = "Traditional"
    ADVANCED = "Advanced"
    GENAI = "GenAI"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    """Risk score bands"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# Raw detection method -> display category
METHOD_CATEGORIES: Dict[str, DetectionCategory] = {
    "traditional": DetectionCategory.TRADITIONAL,
    "traditional_ml": DetectionCategory.TRADITIONAL,
    "advanced_ml": DetectionCategory.ADVANCED,
    "openai": DetectionCategory.GENAI,
    "gemini": DetectionCategory.GENAI,
    "ai": DetectionCategory.GENAI,
}

# (color, icon) used by the dashboard badges
CATEGORY_STYLES: Dict[DetectionCategory, Tuple[str, str]] = {
    DetectionCategory.TRADITIONAL: ("#60a5fa", "database"),
    DetectionCategory.ADVANCED: ("#c084fc", "bar-chart"),
    DetectionCategory.GENAI: ("#4ade80", "brain"),
    DetectionCategory.UNKNOWN: ("#94a3b8", "help-circle"),
}

SEVERITY_COLORS: Dict[Severity, str] = {
    Severity.CRITICAL: "#ff4b4b",  # Red
    Severity.HIGH: "#ff8c00",  # Orange
    Severity.MEDIUM: "#ffd700",  # Yellow
    Severity.LOW: "#00d4ff",  # Cyan
}

STATUS_LABELS: Dict[str, str] = {
    "pending": "Pending Review",
    "under_review": "Under Review",
    "confirmed": "Confirmed",
    "false_positive": "False Positive",
    "dismissed": "Dismissed",
}

RISK_SCORE_MIN = 0.0
RISK_SCORE_MAX = 10.0


def classify_detection_method(method: Any) -> DetectionCategory:
    """
    Map a raw detection method to its display category

    Args:
        method: Value of Anomaly.detection_method (any type is tolerated)

    Returns:
        One of the four DetectionCategory members, never raises
    """
    if not isinstance(method, str):
        return DetectionCategory.UNKNOWN
    return METHOD_CATEGORIES.get(method, DetectionCategory.UNKNOWN)


def category_style(category: DetectionCategory) -> Tuple[str, str]:
    """Color and icon for a category badge"""
    return CATEGORY_STYLES.get(category, CATEGORY_STYLES[DetectionCategory.UNKNOWN])


def parse_risk_score(value: Any) -> Optional[float]:
    """
    Parse a risk score the way the backend sends it (number or decimal string)

    Returns None for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(score):
        return None
    return score


def clamp_risk_score(score: float) -> float:
    return max(RISK_SCORE_MIN, min(RISK_SCORE_MAX, score))


def severity_for(score: Any) -> Severity:
    """
    Band a risk score: <4 Low, [4,7) Medium, [7,9) High, >=9 Critical

    Unparseable scores are treated as Low.
    """
    parsed = parse_risk_score(score)
    if parsed is None:
        return Severity.LOW
    if parsed >= 9:
        return Severity.CRITICAL
    if parsed >= 7:
        return Severity.HIGH
    if parsed >= 4:
        return Severity.MEDIUM
    return Severity.LOW


def risk_badge(score: Any) -> str:
    """Badge text such as '9.4 Critical'"""
    parsed = parse_risk_score(score)
    if parsed is None:
        return "N/A"
    return f"{parsed:.1f} {severity_for(parsed).value}"


def status_label(status: Any) -> str:
    """Human label for an anomaly status"""
    value = getattr(status, "value", status)
    if not isinstance(value, str):
        return "Unknown"
    return STATUS_LABELS.get(value, value.replace("_", " ").title())


def format_anomaly_type(anomaly_type: Any) -> str:
    """'suspicious_access' -> 'Suspicious Access'"""
    if not isinstance(anomaly_type, str):
        return ""
    spaced = anomaly_type.replace("_", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)
