from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from suraksha_jal.schemas import Report, ReportSource, ReportSubmission
from suraksha_jal.storage import REPORTS_KEY, KeyValueStore, read_json, write_json

HEALTH_WORKER = "Health Worker"

# (disease, location, cases, days ago)
_SEED = [
    ("Cholera", "Mumbai, Maharashtra", 15, 0),
    ("Typhoid", "Delhi, NCT", 8, 1),
    ("Hepatitis A", "Kolkata, West Bengal", 5, 2),
    ("Cholera", "Chennai, Tamil Nadu", 12, 3),
    ("Typhoid", "Mumbai, Maharashtra", 6, 4),
    ("Giardiasis", "Pune, Maharashtra", 7, 1),
    ("Dysentery", "Jaipur, Rajasthan", 9, 0),
]


def seed_reports(today: Optional[date] = None) -> List[Report]:
    """Built-in mock reports, dated relative to today, ids 1..7"""
    today = today or date.today()
    return [
        Report(
            id=i,
            disease=disease,
            location=location,
            cases=cases,
            date=(today - timedelta(days=days_ago)).isoformat(),
            source="System",
        )
        for i, (disease, location, cases, days_ago) in enumerate(_SEED, start=1)
    ]


def as_report(item) -> Report:
    if isinstance(item, Report):
        return item
    if isinstance(item, BaseModel):
        item = item.model_dump()
    return Report.model_validate(item)


def merge_reports(*collections: Iterable) -> List[Report]:
    """Concatenate collections and keep the first report seen for each id"""
    seen = set()
    merged = []
    for collection in collections:
        for item in collection:
            report = as_report(item)
            if report.id in seen:
                continue
            seen.add(report.id)
            merged.append(report)
    return merged


def _date_ordinal(report: Report) -> int:
    try:
        return date.fromisoformat(report.date).toordinal()
    except ValueError:
        return 0


def sort_reports(reports: Iterable[Report]) -> List[Report]:
    """Health worker reports first, then newest first; stable otherwise"""
    return sorted(reports, key=lambda r: (r.source != HEALTH_WORKER, -_date_ordinal(r)))


def filter_reports(reports: List[Report], query: Optional[str] = None, user_address: Optional[str] = None) -> List[Report]:
    """Search by disease or location; without a search, prefer the user's area.

    The user's area is the first comma-separated part of their address. If
    nothing matches it, every report is returned.
    """
    if query:
        q = query.lower()
        return [r for r in reports if q in r.disease.lower() or q in r.location.lower()]
    if user_address:
        primary = user_address.split(",")[0].strip().lower()
        if primary:
            nearby = [r for r in reports if primary in r.location.lower()]
            if nearby:
                return nearby
    return list(reports)


class ReportRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def stored(self) -> List[Report]:
        reports = []
        for item in read_json(self.store, REPORTS_KEY, []):
            try:
                reports.append(Report.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed stored report {!r}: {}", item, e)
        return reports

    def _prepend(self, reports: List[Report]) -> None:
        existing = read_json(self.store, REPORTS_KEY, [])
        new_items = [r.model_dump(exclude_none=True) for r in reports]
        write_json(self.store, REPORTS_KEY, new_items + existing)

    def submit(self, submission: ReportSubmission, source: ReportSource, now: Optional[datetime] = None) -> Report:
        now = now or datetime.now()
        report = Report(
            id=int(now.timestamp() * 1000),
            disease=submission.disease,
            location=submission.location,
            cases=submission.cases,
            date=submission.date.isoformat(),
            source=source,
            severity=submission.severity,
            notes=submission.notes,
        )
        self._prepend([report])
        logger.info("Stored {} report {} ({} in {})", source, report.id, report.disease, report.location)
        return report

    def add(self, reports: Iterable) -> List[Report]:
        added = [as_report(r) for r in reports]
        if added:
            self._prepend(added)
        return added

    def listing(
        self,
        query: Optional[str] = None,
        user_address: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[Report]:
        combined = sort_reports(merge_reports(self.stored(), seed_reports(today)))
        return filter_reports(combined, query=query, user_address=user_address)
