from __future__ import annotations

from datetime import date

import pytest

from appointment_watcher.utils import escape_markdown, format_long_date


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (date(2025, 9, 25), "Thursday, September 25th, 2025"),
        (date(2025, 10, 1), "Wednesday, October 1st, 2025"),
        (date(2025, 10, 2), "Thursday, October 2nd, 2025"),
        (date(2025, 10, 3), "Friday, October 3rd, 2025"),
        (date(2025, 10, 11), "Saturday, October 11th, 2025"),
        (date(2025, 10, 12), "Sunday, October 12th, 2025"),
        (date(2025, 10, 22), "Wednesday, October 22nd, 2025"),
    ],
)
def test_format_long_date(value: date, expected: str) -> None:
    assert format_long_date(value) == expected


def test_escape_markdown() -> None:
    assert escape_markdown("America/New_York") == "America/New\\_York"
    assert escape_markdown("*[x]`") == "\\*\\[x]\\`"
    assert escape_markdown("9:00 AM") == "9:00 AM"
