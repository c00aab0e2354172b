from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from geoaudit.schemas.audit import (
    AuditReport,
    MentionResult,
    PerformanceResult,
    SecurityResult,
    StructuredDataResult,
)

PERFORMANCE_FAST: Final[int] = 90
PERFORMANCE_OK: Final[int] = 50

POINTS_PERFORMANCE_FAST: Final[int] = 20
POINTS_PERFORMANCE_OK: Final[int] = 10
POINTS_MOBILE: Final[int] = 15
POINTS_HTTPS: Final[int] = 15
POINTS_CHATGPT: Final[int] = 20
POINTS_GEMINI: Final[int] = 20
POINTS_STRUCTURED_DATA: Final[int] = 10

# Report copy thresholds, separate from the scoring weights above.
PAGESPEED_PROBLEM_BELOW: Final[int] = 60
SLOW_LOAD_SECONDS: Final[float] = 3.0

MONTHLY_VISITS: Final[int] = 1000
BASE_CONVERSION: Final[float] = 0.03
AVERAGE_ORDER_VALUE: Final[int] = 35


def compute_score(
    performance: PerformanceResult,
    security: SecurityResult,
    chatgpt: MentionResult,
    gemini: MentionResult,
    structured_data: StructuredDataResult,
) -> int:
    """Weighted checklist; the weights sum to 100 so the result stays in [0, 100]."""
    score = 0
    if performance.score >= PERFORMANCE_FAST:
        score += POINTS_PERFORMANCE_FAST
    elif performance.score >= PERFORMANCE_OK:
        score += POINTS_PERFORMANCE_OK
    if performance.mobile_friendly:
        score += POINTS_MOBILE
    if security.secure:
        score += POINTS_HTTPS
    if chatgpt.mentioned:
        score += POINTS_CHATGPT
    if gemini.mentioned:
        score += POINTS_GEMINI
    if structured_data.present:
        score += POINTS_STRUCTURED_DATA
    return score


@dataclass(frozen=True)
class VisibilityBand:
    key: str
    label: str
    emoji: str
    color: str


BAND_GOOD = VisibilityBand(key="good", label="DOBRA", emoji="🟢", color="#10b981")
BAND_MEDIUM = VisibilityBand(key="medium", label="ŚREDNIA", emoji="🟡", color="#f59e0b")
BAND_LOW = VisibilityBand(key="low", label="NISKA", emoji="🔴", color="#ef4444")


def visibility_band(score: int) -> VisibilityBand:
    if score >= 70:
        return BAND_GOOD
    if score >= 40:
        return BAND_MEDIUM
    return BAND_LOW


def count_problems(report: AuditReport) -> int:
    checks = [
        report.performance.score < PAGESPEED_PROBLEM_BELOW,
        not report.performance.mobile_friendly,
        not report.security.secure,
        not report.chatgpt.mentioned,
        not report.gemini.mentioned,
        not report.structured_data.present,
    ]
    return sum(1 for failed in checks if failed)


def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def estimate_monthly_loss(score: int) -> int:
    """Rough monthly revenue at risk in PLN for a small site."""
    missing = (100 - score) / 100
    return _half_up(MONTHLY_VISITS * BASE_CONVERSION * AVERAGE_ORDER_VALUE * missing)


@dataclass(frozen=True)
class ImpactItem:
    title: str
    description: str
    monthly_loss: int
    monthly_views: int
    fix_time: str


def business_impact(report: AuditReport, limit: int = 2) -> list[ImpactItem]:
    items: list[ImpactItem] = []
    performance = report.performance
    if performance.score < PAGESPEED_PROBLEM_BELOW:
        loss = _half_up(1700 * (performance.load_time / 4.2))
        items.append(
            ImpactItem(
                title=f"Strona ładuje się {performance.load_time}s",
                description=(
                    "Wolne ładowanie powoduje, że użytkownicy opuszczają stronę zanim się załaduje. "
                    "Google karze wolne strony niższą pozycją w wynikach wyszukiwania."
                ),
                monthly_loss=loss,
                monthly_views=loss * 5,
                fix_time="1-2 tygodnie",
            )
        )
    if not report.chatgpt.mentioned or not report.gemini.mentioned:
        items.append(
            ImpactItem(
                title="ChatGPT/Gemini nie znają Twojej firmy",
                description=(
                    "AI asystenci mają dostęp do milionów użytkowników dziennie. Brak widoczności w AI "
                    "oznacza utratę klientów, którzy pytają AI zamiast Google."
                ),
                monthly_loss=1300,
                monthly_views=6500,
                fix_time="2-3 tygodnie",
            )
        )
    if not performance.mobile_friendly:
        items.append(
            ImpactItem(
                title="Strona nie działa dobrze na telefonach",
                description=(
                    "Ponad 70% użytkowników przegląda internet na telefonach. Strona, która źle działa "
                    "na mobile, traci większość potencjalnych klientów."
                ),
                monthly_loss=1040,
                monthly_views=5200,
                fix_time="1 tydzień",
            )
        )
    if not report.structured_data.present:
        items.append(
            ImpactItem(
                title="Brak Schema Markup",
                description=(
                    "Schema Markup to język, którym Google i AI rozumieją Twoją stronę. "
                    "Bez niego strona jest jak książka bez spisu treści."
                ),
                monthly_loss=760,
                monthly_views=3800,
                fix_time="3-5 dni",
            )
        )
    return items[:limit]


def format_number(value: int | float) -> str:
    """Polish grouping: a non-breaking space every three digits from 10 000 up."""
    number = int(value)
    if abs(number) < 10000:
        return str(number)
    return f"{number:,}".replace(",", "\u00a0")
