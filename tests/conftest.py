from datetime import datetime

import pytest
import pytz
import requests

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=pytz.utc)


def make_ics(*blocks: str) -> str:
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Westfield State//Athletics//EN",
    ]
    for block in blocks:
        lines.extend(block.strip().splitlines())
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def vevent(uid: str, summary: str, dtstart: str, categories: str = None) -> str:
    lines = [
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"SUMMARY:{summary}",
        f"DTSTART{dtstart}",
    ]
    if categories is not None:
        lines.append(f"CATEGORIES:{categories}")
    lines.append("END:VEVENT")
    return "\n".join(lines)


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200, content_type: str = "text/calendar; charset=utf-8"):
        self.text = text
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.encoding = None

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    def __init__(self, response: FakeResponse = None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def feed():
    return make_ics(
        vevent("past-1", "Football vs. Framingham State", ":20261018T230000Z"),
        vevent("soc-1", "Team A vs. Team B (Soccer)", ":20261020T230000Z"),
        vevent("bb-1", "Westfield State vs. Worcester State", ":20261025T233000Z", "Men's Basketball"),
        vevent("fh-1", "Field Hockey vs. Smith College", ";TZID=America/New_York:20261021T160000"),
        vevent("xc-1", "Cross Country at Little East Championship", ";VALUE=DATE:20261024"),
        vevent("vb-1", "Volleyball vs. Westfield Tech (Women's Volleyball)", ":20261023T220000Z"),
        vevent("golf-1", "Golf Invitational", ":20261030T140000Z"),
        "BEGIN:VTODO\nUID:todo-1\nSUMMARY:Order programs\nDTSTART:20261020T120000Z\nEND:VTODO",
    )
