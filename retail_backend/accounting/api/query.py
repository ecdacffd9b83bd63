# accounting/api/query.py

from __future__ import annotations

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.exceptions import ValidationError


def parse_as_of(raw):
    """
    ?as_of=2026-01-31           -> date (accounting date cut-off)
    ?as_of=2026-01-31T18:00:00  -> aware datetime (posting time cut-off)
    """
    raw = (raw or "").strip()
    if not raw:
        return None

    dt = parse_datetime(raw)
    if dt is not None:
        if timezone.is_naive(dt):
            dt = timezone.make_aware(dt, timezone.get_current_timezone())
        return dt

    d = parse_date(raw)
    if d is not None:
        return d

    raise ValidationError({"as_of": "Use YYYY-MM-DD or an ISO datetime."})
