"""Recurrence rule evaluation for recurring transaction templates"""

import logging
import re
from datetime import date, datetime
from typing import Dict, List

from dateutil.rrule import MONTHLY, rrule, rrulebase, rrulestr

from peanuts_budget.infrastructure.observability.metrics import recurrence_fallback_counter
from peanuts_budget.utils.date_utils import floating_midnight, local_day

# dateutil raises all of these for unparsable RRULE text (bad pairs, unknown FREQ, ...)
RULE_PARSE_ERRORS = (ValueError, KeyError, TypeError, IndexError, AttributeError)

WEEKDAY_NAMES = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
FREQ_UNITS = {"DAILY": "day", "WEEKLY": "week", "MONTHLY": "month", "YEARLY": "year"}
INTERVAL_PATTERN = re.compile(r"INTERVAL=([+-]?\d+)", re.IGNORECASE)


def default_rule(start_date: date | datetime) -> rrule:
    """Monthly on the 1st, anchored at the template start"""
    return rrule(MONTHLY, bymonthday=1, dtstart=floating_midnight(start_date))


def build_rule(rule_text: str | None, start_date: date | datetime, template_id: str | None = None) -> rrulebase:
    """
    Parse an RRULE string anchored at the template's start date.

    The start date is the rule's epoch: interval rules (e.g. every second
    Monday) only land on periods whose offset from it is a multiple of the
    interval. Unparsable text never raises; it is logged and replaced by
    the default monthly rule. So is text that parses but cannot be
    evaluated (a zero or negative INTERVAL, BYMONTH=13, ...).
    """
    dtstart = floating_midnight(start_date)
    if not rule_text or not rule_text.strip():
        return _fallback(rule_text, start_date, template_id, "empty rule")

    # dateutil accepts these, then loops forever or fails on evaluation
    interval = _interval(rule_text)
    if interval is not None and interval < 1:
        return _fallback(rule_text, start_date, template_id, f"INTERVAL must be positive, got {interval}")

    try:
        rule = rrulestr(rule_text.strip(), dtstart=dtstart, ignoretz=True)
        # Some values are only checked on first evaluation
        rule.after(dtstart)
    except RULE_PARSE_ERRORS as e:
        return _fallback(rule_text, start_date, template_id, str(e))
    return rule


def _interval(rule_text: str) -> int | None:
    match = INTERVAL_PATTERN.search(rule_text)
    return int(match.group(1)) if match else None


def _report_malformed(rule_text: str | None, template_id: str | None, reason: str) -> None:
    recurrence_fallback_counter.labels(reason="malformed").inc()
    logging.warning(
        "Invalid recurrence rule, using default monthly rule",
        extra={"template_id": template_id, "rrule": rule_text, "error": reason},
    )


def _fallback(rule_text: str | None, start_date: date | datetime, template_id: str | None, reason: str) -> rrule:
    _report_malformed(rule_text, template_id, reason)
    return default_rule(start_date)


def next_occurrence(rule: rrulebase, from_date: date | datetime, template_id: str | None = None) -> date:
    """
    First occurrence strictly after the calendar day of `from_date`.

    An exhausted rule (COUNT used up, UNTIL passed) yields the day of
    `from_date` itself instead of failing, so scheduler loops keep running.
    Callers that need to tell the two apart should check `is_exhausted`.
    A rule that fails to evaluate is treated like a malformed one.
    """
    day = local_day(from_date)
    try:
        following = rule.after(floating_midnight(day), inc=False)
    except RULE_PARSE_ERRORS as e:
        _report_malformed(None, template_id, str(e))
        following = default_rule(day).after(floating_midnight(day), inc=False)
    if following is None:
        recurrence_fallback_counter.labels(reason="exhausted").inc()
        logging.warning(
            "Recurrence rule has no further occurrences",
            extra={"template_id": template_id, "from_date": day.isoformat()},
        )
        return day
    return following.date()


def is_exhausted(rule: rrulebase, from_date: date | datetime) -> bool:
    return rule.after(floating_midnight(from_date), inc=False) is None


def occurrences_between(rule: rrulebase, start: date | datetime, end: date | datetime) -> List[date]:
    """Occurrence days in [start, end], both inclusive"""
    return [
        occurrence.date()
        for occurrence in rule.between(floating_midnight(start), floating_midnight(end), inc=True)
    ]


def _rule_parts(rule_text: str) -> Dict[str, str]:
    text = rule_text.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]
    parts = {}
    for pair in text.split(";"):
        if not pair:
            continue
        name, value = pair.split("=", 1)
        parts[name.upper()] = value.upper()
    return parts


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _month_day_text(value: str) -> str:
    days = []
    for raw in value.split(","):
        n = int(raw)
        if n == -1:
            days.append("the last day")
        elif n < 0:
            days.append(f"the {_ordinal(-n)} to last day")
        else:
            days.append(f"the {_ordinal(n)}")
    return " and ".join(days)


def describe_schedule(rule_text: str | None) -> str:
    """
    Short English description of a rule, e.g. "Every 2 weeks on Monday".

    Returns "Invalid schedule" for text the rule parser rejects.
    """
    if not rule_text:
        return "Invalid schedule"
    try:
        rrulestr(rule_text.strip(), dtstart=datetime(2000, 1, 1), ignoretz=True)
        parts = _rule_parts(rule_text)
        unit = FREQ_UNITS[parts["FREQ"]]
        interval = int(parts.get("INTERVAL", "1"))
    except RULE_PARSE_ERRORS:
        return "Invalid schedule"
    if interval < 1:
        return "Invalid schedule"

    text = f"Every {unit}" if interval == 1 else f"Every {interval} {unit}s"

    if "BYDAY" in parts:
        names = [WEEKDAY_NAMES.get(day[-2:], day) for day in parts["BYDAY"].split(",")]
        text += " on " + ", ".join(names)
    if "BYMONTH" in parts and "BYMONTHDAY" in parts and len(parts["BYMONTH"].split(",")) == 1:
        month = MONTH_NAMES[int(parts["BYMONTH"]) - 1]
        day = int(parts["BYMONTHDAY"].split(",")[0])
        text += f" on {month} {day}" if day > 0 else f" on {_month_day_text(parts['BYMONTHDAY'])} of {month}"
    elif "BYMONTHDAY" in parts:
        text += " on " + _month_day_text(parts["BYMONTHDAY"])
    elif "BYMONTH" in parts:
        text += " in " + ", ".join(MONTH_NAMES[int(m) - 1] for m in parts["BYMONTH"].split(","))

    if "COUNT" in parts:
        count = int(parts["COUNT"])
        text += ", once" if count == 1 else f", {count} times"
    if "UNTIL" in parts:
        until = parts["UNTIL"][:8]
        text += f", until {until[:4]}-{until[4:6]}-{until[6:8]}"
    return text
