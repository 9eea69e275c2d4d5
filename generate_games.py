#!/usr/bin/env python3
import html
import os
import re
import sys
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytz
import requests
from icalendar import Calendar

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PUBLIC_DIR = os.path.join(BASE_DIR, "public")

ICS_URL = "https://westfieldstateowls.com/composite?print=ical"
TZ_NAME = "America/New_York"
TZ = pytz.timezone(TZ_NAME)
MAX_EVENTS = 5

DATE_ONLY = "date"
DATE_TIME = "date-time"

# Longer names first so "Field Hockey" wins over "Hockey".
KNOWN_SPORTS = [
    "Field Hockey",
    "Football",
    "Soccer",
    "Basketball",
    "Volleyball",
    "Hockey",
    "Lacrosse",
    "Baseball",
    "Softball",
    "Track",
    "Cross Country",
    "Golf",
    "Tennis",
]

UNKNOWN_SPORT = "Unknown"
ALL_DAY_LABEL = "All Day"

# First match wins.
ICON_KEYWORDS: List[Tuple[str, str]] = [
    ("basketball", "sports_basketball"),
    ("volleyball", "sports_volleyball"),
    ("softball", "sports_baseball"),
    ("baseball", "sports_baseball"),
    ("football", "sports_football"),
    ("soccer", "sports_soccer"),
    ("hockey", "sports_hockey"),
    ("tennis", "sports_tennis"),
    ("golf", "sports_golf"),
    ("cross country", "directions_run"),
    ("track", "directions_run"),
    ("swim", "pool"),
    ("diving", "pool"),
]
DEFAULT_ICON = "sports"

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

LAYOUTS = {
    "table": {
        "title": "Games",
        "out_file": "games.html",
    },
    "cards": {
        "title": "Upcoming Games",
        "out_file": "games-cards.html",
    },
}

FONT_STYLESHEET = "https://fonts.googleapis.com/css2?family=Oswald:wght@400;600&display=swap"
ICON_STYLESHEET = "https://fonts.googleapis.com/css2?family=Material+Symbols+Outlined"


@dataclass(frozen=True)
class CalendarEvent:
    kind: str
    uid: str
    summary: str
    start: Optional[datetime]
    categories: Optional[Tuple[str, ...]]
    datetype: str


@dataclass
class DisplayRow:
    sport: str
    date: str
    time: str
    opponent: str
    icon: Optional[str] = None
    all_day: bool = False


@dataclass
class SignageConfig:
    ics_url: str = ICS_URL
    layout: str = "cards"
    out_path: Optional[str] = None
    limit: int = MAX_EVENTS
    timezone: str = TZ_NAME
    timeout: Optional[int] = None

    def resolve_out_path(self) -> str:
        if self.out_path:
            return self.out_path
        return os.path.join(PUBLIC_DIR, layout_config(self.layout)["out_file"])


def log(msg: str) -> None:
    print(msg, file=sys.stderr)


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
            "Accept": "text/calendar,text/plain;q=0.9,*/*;q=0.8",
        }
    )
    return session


SESSION = build_session()


def fetch_url(url: str, timeout: Optional[int] = None, session: Optional[requests.Session] = None) -> str:
    log(f"Fetching {url}")
    resp = (session or SESSION).get(url, timeout=timeout)
    log(f"HTTP {resp.status_code} for {url}")
    resp.raise_for_status()
    if "charset" not in resp.headers.get("Content-Type", "").lower():
        resp.encoding = "utf-8-sig"
    return resp.text


def normalize_start(value, tz=TZ) -> Tuple[Optional[datetime], str]:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return tz.localize(value), DATE_TIME
        return value, DATE_TIME
    if isinstance(value, date):
        return tz.localize(datetime(value.year, value.month, value.day)), DATE_ONLY
    return None, DATE_TIME


def normalize_categories(prop) -> Optional[Tuple[str, ...]]:
    if prop is None:
        return None
    items = prop if isinstance(prop, list) else [prop]
    cats: List[str] = []
    for item in items:
        for value in item.cats:
            cleaned = str(value).strip()
            if cleaned:
                cats.append(cleaned)
    return tuple(cats)


def parse_calendar(raw: str, tz=TZ) -> Dict[str, CalendarEvent]:
    cal = Calendar.from_ical(raw.lstrip("\ufeff"))
    entries: Dict[str, CalendarEvent] = {}

    for idx, component in enumerate(cal.subcomponents):
        kind = (component.name or "").upper()
        uid = str(component.get("uid") or f"{kind.lower()}-{idx}")
        key = uid
        suffix = idx
        while key in entries:
            key = f"{uid}-{suffix}"
            suffix += 1

        dtstart = component.get("dtstart")
        start, datetype = normalize_start(dtstart.dt if dtstart is not None else None, tz)

        entries[key] = CalendarEvent(
            kind=kind,
            uid=uid,
            summary=str(component.get("summary") or "").strip(),
            start=start,
            categories=normalize_categories(component.get("categories")),
            datetype=datetype,
        )

    log(f"Parsed calendar entries: {len(entries)}")
    return entries


def select_upcoming(entries: Dict[str, CalendarEvent], now: datetime, limit: int = MAX_EVENTS) -> List[CalendarEvent]:
    upcoming = [
        e for e in entries.values()
        if e.kind == "VEVENT" and e.start is not None and e.start >= now
    ]
    upcoming.sort(key=lambda e: e.start)
    return upcoming[:limit]


def sport_from_summary(summary: str) -> str:
    lower = summary.lower()
    for sport in KNOWN_SPORTS:
        if sport.lower() in lower:
            return sport
    return summary.split(" ")[0]


def sport_from_categories(categories: Optional[Iterable[str]]) -> str:
    for category in categories or ():
        if category:
            return category
    return UNKNOWN_SPORT


SPORT_SOURCES: Dict[str, Callable[[CalendarEvent], str]] = {
    "summary": lambda e: sport_from_summary(e.summary),
    "category": lambda e: sport_from_categories(e.categories),
}


def sport_source(event: CalendarEvent) -> str:
    return "category" if event.categories is not None else "summary"


def extract_sport(event: CalendarEvent) -> str:
    return SPORT_SOURCES[sport_source(event)](event)


def simplify_opponent(summary: str) -> str:
    vs_idx = summary.lower().find("vs.")
    opponent = summary[vs_idx + 3:].strip() if vs_idx != -1 else summary
    # drop annotations like "(Women's Soccer)"
    return re.sub(r"\s*\([^)]*\)", "", opponent).strip()


def is_all_day(event: CalendarEvent) -> bool:
    if event.datetype == DATE_ONLY:
        return True
    if event.start is None:
        return False
    utc = event.start.astimezone(pytz.utc)
    return (utc.hour, utc.minute, utc.second, utc.microsecond) == (0, 0, 0, 0)


def icon_for_category(text: Optional[str]) -> str:
    lower = (text or "").lower()
    if not lower:
        return DEFAULT_ICON
    for keyword, icon in ICON_KEYWORDS:
        if keyword in lower:
            return icon
    return DEFAULT_ICON


def format_date(dt: datetime) -> str:
    return f"{MONTHS[dt.month - 1]} {dt.day}"


def format_time(dt: datetime) -> str:
    hour12 = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    return f"{hour12:02d}:{dt.minute:02d} {period}"


def build_row(event: CalendarEvent, tz=TZ) -> DisplayRow:
    all_day = is_all_day(event)
    if all_day and event.datetype == DATE_TIME:
        # 00:00Z markers keep their UTC date; 8:00 PM EDT shows as the next day.
        moment = event.start.astimezone(pytz.utc)
    else:
        moment = event.start.astimezone(tz)

    category_text = ", ".join(event.categories) if event.categories else None
    return DisplayRow(
        sport=extract_sport(event),
        date=format_date(moment),
        time=ALL_DAY_LABEL if all_day else format_time(moment),
        opponent=simplify_opponent(event.summary),
        icon=icon_for_category(category_text),
        all_day=all_day,
    )


def layout_config(layout: str) -> Dict[str, str]:
    cfg = LAYOUTS.get(layout)
    if cfg is None:
        raise ValueError(f"Unknown layout {layout!r}, expected one of: {', '.join(sorted(LAYOUTS))}")
    return cfg


TABLE_STYLE = """
  body {
    font-family: 'Oswald', sans-serif;
    background: transparent;
    margin: 20px;
    color: white;
  }
  table {
    border-collapse: collapse;
    width: 100%;
    font-size: 1.3em;
    background: transparent;
  }
  td {
    padding: 12px;
    border-bottom: 1px solid rgba(255, 255, 255, 0.2);
    vertical-align: middle;
    color: white;
    background: transparent;
  }
  tr:nth-child(odd),
  tr:nth-child(even) {
    background-color: transparent !important;
  }
"""

CARDS_STYLE = """
  body {
    font-family: 'Oswald', sans-serif;
    background: transparent;
    margin: 20px;
    color: white;
  }
  .games {
    display: flex;
    flex-direction: column;
    gap: 14px;
  }
  .card {
    display: flex;
    align-items: center;
    gap: 18px;
    padding: 14px 18px;
    border-radius: 12px;
    background: rgba(0, 0, 0, 0.35);
    border-left: 6px solid #c8102e;
  }
  .card .material-symbols-outlined {
    font-size: 2.6em;
    color: #f2c75c;
  }
  .card .details {
    display: flex;
    flex-direction: column;
  }
  .card .sport {
    font-size: 1.4em;
    font-weight: 600;
    text-transform: uppercase;
  }
  .card .opponent {
    font-size: 1.2em;
  }
  .card .when {
    margin-left: auto;
    text-align: right;
    font-size: 1.2em;
  }
  .card .when .time.all-day {
    font-style: italic;
  }
"""


def render_table_rows(rows: List[DisplayRow]) -> List[str]:
    parts: List[str] = []
    for row in rows:
        parts.append(
            "<tr>"
            f"<td class=\"sport\">{html.escape(row.sport)}</td>"
            f"<td class=\"date\">{html.escape(row.date)}</td>"
            f"<td class=\"time\">{html.escape(row.time)}</td>"
            f"<td class=\"opponent\">{html.escape(row.opponent)}</td>"
            "</tr>"
        )
    return parts


def render_cards(rows: List[DisplayRow]) -> List[str]:
    parts: List[str] = []
    for row in rows:
        time_class = "time all-day" if row.all_day else "time"
        parts.append(
            "<div class=\"card\">"
            f"<span class=\"material-symbols-outlined icon\">{html.escape(row.icon or DEFAULT_ICON)}</span>"
            "<div class=\"details\">"
            f"<span class=\"sport\">{html.escape(row.sport)}</span>"
            f"<span class=\"opponent\">{html.escape(row.opponent)}</span>"
            "</div>"
            "<div class=\"when\">"
            f"<div class=\"date\">{html.escape(row.date)}</div>"
            f"<div class=\"{time_class}\">{html.escape(row.time)}</div>"
            "</div>"
            "</div>"
        )
    return parts


def render_html(rows: List[DisplayRow], layout: str, generated_at: datetime) -> str:
    cfg = layout_config(layout)
    if layout == "table":
        style = TABLE_STYLE
        body = ["  <table>"] + [f"    {r}" for r in render_table_rows(rows)] + ["  </table>"]
    else:
        style = CARDS_STYLE
        body = ["  <div class=\"games\">"] + [f"    {c}" for c in render_cards(rows)] + ["  </div>"]

    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        "  <meta charset=\"UTF-8\" />",
        f"  <title>{html.escape(cfg['title'])}</title>",
        f"  <link rel=\"stylesheet\" href=\"{FONT_STYLESHEET}\" />",
        f"  <link rel=\"stylesheet\" href=\"{ICON_STYLESHEET}\" />",
        f"<style>{style}</style>",
        "</head>",
        "<body>",
        *body,
        "</body>",
        "</html>",
        f"<!-- Generated: {generated_at.isoformat()} -->",
    ]
    return "\n".join(lines) + "\n"


def write_html(content: str, out_path: str) -> None:
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(content)


def run(config: SignageConfig, now: Optional[datetime] = None, session: Optional[requests.Session] = None) -> str:
    tz = pytz.timezone(config.timezone)
    now = now or datetime.now(pytz.utc)
    out_path = config.resolve_out_path()

    raw = fetch_url(config.ics_url, timeout=config.timeout, session=session)
    entries = parse_calendar(raw, tz)
    events = select_upcoming(entries, now, config.limit)
    log(f"Upcoming events selected: {len(events)}")

    rows = [build_row(e, tz) for e in events]
    content = render_html(rows, config.layout, now.astimezone(tz))

    write_html(content, out_path)
    log(f"✅ {os.path.basename(out_path)} generated!")
    return out_path


def main(config: Optional[SignageConfig] = None) -> int:
    try:
        run(config or SignageConfig())
    except Exception as exc:
        log(f"❌ Failed to generate HTML: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
