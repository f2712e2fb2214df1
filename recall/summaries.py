"""
Turn completed hourly and daily buckets into summary documents.

Summaries are plain dataclasses with a to_dict() whose JSON rendering is
deterministic (sorted keys), so exported files diff cleanly between runs.
The short natural-language blurbs are assembled from fixed templates:

    "Used Code (12 min), Firefox (4 min). coding/development. Topics: ..."
    "Active for 2h 5m. mainly in Code, Firefox. Worked on: recall. ..."
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .aggregator import DailyBucket, HourlyBucket
from .categories import category_minutes
from .models import ActivityEntry, URLVisit
from .urls import extract_domain


@dataclass
class HourlySummary:
    hour: str
    date: str
    timeline: List[ActivityEntry] = field(default_factory=list)
    urls_visited: List[str] = field(default_factory=list)
    apps_used: Dict[str, int] = field(default_factory=dict)
    key_topics: List[str] = field(default_factory=list)
    working_summary: str = ""
    domains: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'hour': self.hour,
            'date': self.date,
            'timeline': [entry.to_dict() for entry in self.timeline],
            'urls_visited': list(self.urls_visited),
            'apps_used': dict(self.apps_used),
            'key_topics': list(self.key_topics),
            'working_summary': self.working_summary,
            'domains': dict(self.domains),
        }


@dataclass
class DailyJournal:
    date: str
    timeline: List[ActivityEntry] = field(default_factory=list)
    all_urls: List[URLVisit] = field(default_factory=list)
    app_summary: Dict[str, int] = field(default_factory=dict)
    key_moments: List[str] = field(default_factory=list)
    day_summary: str = ""
    top_domains: Dict[str, int] = field(default_factory=dict)
    projects_worked_on: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'date': self.date,
            'timeline': [entry.to_dict() for entry in self.timeline],
            'all_urls': [visit.to_dict() for visit in self.all_urls],
            'app_summary': dict(self.app_summary),
            'key_moments': list(self.key_moments),
            'day_summary': self.day_summary,
            'top_domains': dict(self.top_domains),
            'projects_worked_on': list(self.projects_worked_on),
        }


def minutes_from_seconds(seconds: int) -> int:
    """Whole minutes, but never 0 for a nonzero amount of time."""
    minutes = seconds // 60
    if minutes > 0:
        return minutes
    return 1 if seconds > 0 else 0


def _ranked(counts: Dict[str, int]) -> List[tuple]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def working_summary(apps: Dict[str, int], topics: List[str], urls: List[str]) -> str:
    """One-line blurb of what an hour was spent on."""
    parts = []

    top_apps = _ranked(apps)[:3]
    if top_apps:
        parts.append("Used " + ", ".join(f"{app} ({minutes} min)" for app, minutes in top_apps))

    categories = category_minutes(apps)
    if categories['dev'] > 10:
        parts.append("coding/development")
    if categories['browser'] > 10:
        parts.append("browsing/research")
    if categories['communication'] > 5:
        parts.append("communication")

    if topics:
        parts.append(f"Topics: {', '.join(topics[:3])}")

    domain_counts: Dict[str, int] = {}
    for url in urls:
        domain = extract_domain(url)
        if domain:
            domain_counts[domain] = domain_counts.get(domain, 0) + 1
    top_domains = _ranked(domain_counts)[:3]
    if top_domains:
        parts.append(f"Sites: {', '.join(domain for domain, _ in top_domains)}")

    return ". ".join(parts) if parts else "Light activity"


def day_summary(apps: Dict[str, int], urls: List[URLVisit], projects: List[str], moments: List[str]) -> str:
    """One-line blurb of the whole day."""
    parts = []

    total = sum(apps.values())
    hours, minutes = divmod(total, 60)
    if hours > 0:
        parts.append(f"Active for {hours}h {minutes}m")
    elif minutes > 0:
        parts.append(f"Active for {minutes} minutes")

    top_apps = _ranked(apps)[:3]
    if top_apps:
        parts.append(f"mainly in {', '.join(app for app, _ in top_apps)}")

    if projects:
        parts.append(f"Worked on: {', '.join(projects[:3])}")

    sites = [d for d in (extract_domain(visit.url) for visit in urls[:3]) if d]
    if sites:
        parts.append(f"Visited: {', '.join(sites)}")

    if moments:
        parts.append(f"Notable: {'; '.join(moments[:2])}")

    return ". ".join(parts) if parts else "No significant activity recorded"


def summarize_hour(snapshot: HourlyBucket, max_topics: int = 30) -> HourlySummary:
    apps_used = {app: minutes_from_seconds(s) for app, s in snapshot.app_seconds.items()}
    urls = list(snapshot.urls)
    topics = list(snapshot.topics)

    domains: Dict[str, int] = {}
    for url in urls:
        domain = extract_domain(url)
        if domain:
            domains[domain] = domains.get(domain, 0) + 1

    return HourlySummary(
        hour=f"{snapshot.hour or 0:02d}:00",
        date=snapshot.date or "",
        timeline=list(snapshot.timeline),
        urls_visited=urls,
        apps_used=apps_used,
        key_topics=topics[:max_topics],
        working_summary=working_summary(apps_used, topics, urls),
        domains=domains,
    )


def summarize_day(snapshot: DailyBucket, top_domains: int = 10) -> DailyJournal:
    # Most visited first, first-seen order among ties
    visits = sorted(snapshot.url_visits.values(), key=lambda v: -v.visit_count)
    app_summary = {app: minutes_from_seconds(s) for app, s in snapshot.app_seconds.items()}
    projects = sorted(snapshot.projects)

    return DailyJournal(
        date=snapshot.date or "",
        timeline=list(snapshot.timeline),
        all_urls=visits,
        app_summary=app_summary,
        key_moments=list(snapshot.key_moments),
        day_summary=day_summary(app_summary, visits, projects, snapshot.key_moments),
        top_domains=dict(_ranked(snapshot.domains)[:top_domains]),
        projects_worked_on=projects,
    )
