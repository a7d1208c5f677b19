from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------
# Readiness / session
# ---------------------------------------------------------------------


@dataclass
class ArtifactReadiness:
    summary: bool = False
    benchmark: bool = False
    gap: bool = False

    @property
    def all(self) -> bool:
        return self.summary and self.benchmark and self.gap

    def to_dict(self) -> Dict[str, bool]:
        return {
            "summary": self.summary,
            "benchmark": self.benchmark,
            "gap": self.gap,
            "all": self.all,
        }


@dataclass
class ReadinessResponse:
    """
    Result of one fetch cycle for a document.

    `errors` maps an artifact name ("summary", "benchmark", "gap") to a short
    description of why it is not ready; absence is recorded as "not_found".
    """
    document_id: str
    summary: Optional[Dict[str, Any]] = None
    benchmark: Optional[Dict[str, Any]] = None
    gap: Optional[List[Any]] = None
    errors: Dict[str, str] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)

    @property
    def ready(self) -> ArtifactReadiness:
        return ArtifactReadiness(
            summary=self.summary is not None,
            benchmark=self.benchmark is not None,
            gap=self.gap is not None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready.to_dict(),
            "summary": self.summary,
            "benchmark": self.benchmark,
            "gap": self.gap,
        }


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    ALL_READY = "all_ready"


@dataclass
class DocumentSession:
    """State held for the one document currently being watched."""
    document_id: str
    batch_path: Optional[str] = None
    state: PollState = PollState.POLLING
    cycles: int = 0
    response: Optional[ReadinessResponse] = None
    last_error: Optional[str] = None

    @property
    def readiness(self) -> ArtifactReadiness:
        if self.response is None:
            return ArtifactReadiness()
        return self.response.ready


@dataclass
class SubmissionResult:
    document_id: str
    batch_path: str
    job_run_id: Optional[int] = None
    text_sha256: str = ""
    computed_document_id: str = ""


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------


@dataclass
class CanonicalSummary:
    company_name: str = ""
    sector: str = ""
    country: str = ""
    region: str = ""
    year: Any = ""
    employees: Any = ""
    revenue: Any = ""
    framework: Any = ""
    future_framework: Any = ""
    scope_1: Optional[float] = None
    scope_1_unit: str = ""
    scope_2: Optional[float] = None
    scope_2_unit: str = ""
    electricity: Any = ""
    electricity_unit: str = ""
    water: Any = ""
    water_unit: str = ""
    un_sdg: List[Any] = field(default_factory=list)
    materiality_topics: List[Any] = field(default_factory=list)


# ---------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------


@dataclass
class CompanyEmissionsProfile:
    company_name: str = ""
    start_year: Optional[int] = None
    target_year: Optional[int] = None
    scope_1: Optional[float] = None
    scope_2: Optional[float] = None
    scope_1_2: Optional[float] = None
    scope_1_target: Optional[float] = None
    scope_2_target: Optional[float] = None
    scope_1_2_target: Optional[float] = None
    reduction_raw: Optional[float] = None


@dataclass
class DerivedTargets:
    s1b: Optional[float] = None
    s2b: Optional[float] = None
    s12b: Optional[float] = None
    s1t: Optional[float] = None
    s2t: Optional[float] = None
    s12t: Optional[float] = None
    reduction: Optional[float] = None


@dataclass
class TrajectoryPoint:
    year: int
    value: float


@dataclass
class TrajectorySeries:
    name: str
    points: List[TrajectoryPoint] = field(default_factory=list)


@dataclass
class PeerRow:
    company: str = ""
    sector: str = ""
    country: str = ""
    region: str = ""
    base_year: str = ""
    target_year: str = ""
    reduction_display: str = ""
    reduction_pct: Optional[float] = None
    synthetic: bool = False


@dataclass
class PeerStatistics:
    rows: List[PeerRow]
    mean_pct: Optional[float]
    median_pct: Optional[float]
    parsed_count: int


class Ambition(str, Enum):
    MORE_THAN_BOTH = "more ambitious than the median companies in both country and region"
    LESS_THAN_BOTH = "less ambitious than the median companies in both country and region"
    ABOVE_COUNTRY_BELOW_REGION = "above the country median but below the regional median"
    ABOVE_REGION_BELOW_COUNTRY = "above the regional median but below the country median"
    IN_LINE = "roughly in line with peer medians"
    UNCLEAR = "unclear relative to peers (missing company target)"


# ---------------------------------------------------------------------
# Gap
# ---------------------------------------------------------------------


SEVERITY_LEVELS = (0, 1, 2, 3)

SEVERITY_LABELS: Dict[int, str] = {
    0: "Present",
    1: "Partial",
    2: "Partial GRI+IFRS",
    3: "Missing",
}

SEVERITY_LEGEND: Dict[int, str] = {
    0: "GRI & IFRS RE Present",
    1: "Partial (no IFRS RE)",
    2: "Partial GRI & IFRS RE",
    3: "Missing GRI & IFRS RE",
}


@dataclass
class GapFinding:
    source_code: str = ""
    value: Any = None
    framework_code: str = ""
    framework_name: str = ""
    framework_status: str = ""
    sector_code: str = ""
    sector_name: str = ""
    sector_status: str = ""
    severity: Any = None

    @property
    def severity_level(self) -> Optional[int]:
        """The severity as 0-3, or None when it is not one of those."""
        sev = self.severity
        if isinstance(sev, bool):
            return None
        if isinstance(sev, float) and sev.is_integer():
            sev = int(sev)
        if isinstance(sev, str) and sev.strip().isdigit():
            sev = int(sev.strip())
        return sev if isinstance(sev, int) and sev in SEVERITY_LEVELS else None


@dataclass
class CategoryBreakdown:
    category: str
    counts: Dict[int, int] = field(default_factory=lambda: {s: 0 for s in SEVERITY_LEVELS})
    unknown: int = 0
    topic: Optional[str] = None

    @property
    def total(self) -> int:
        return sum(self.counts.values()) + self.unknown


@dataclass
class GapSummary:
    total: int
    known_total: int
    counts: Dict[int, int]
    percentages: Dict[int, float]
    unknown: int
    categories: List[CategoryBreakdown]
    category_count: int

    @property
    def missing(self) -> int:
        return self.counts[3]

    @property
    def present(self) -> int:
        return self.counts[0]
