"""Tests for time formatting and token parsing helpers"""

from datetime import datetime, timezone

import jwt
import pytest

from paf_workflow.domain.enums import ApproverRole
from paf_workflow.domain.errors import AuthenticationError
from paf_workflow.utils.jwt import JWTValidator, get_current_actor
from paf_workflow.utils.time import format_duration, format_iso, minutes_between, minutes_since, parse_iso

from tests.conftest import make_token


@pytest.mark.parametrize("minutes, expected", [
    (0, "0m"),
    (45, "45m"),
    (60, "1h"),
    (150, "2h 30m"),
    (1440, "1d"),
    (1680, "1d 4h"),
    (-90, "-1h 30m"),
])
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


def test_iso_helpers():
    dt = parse_iso("2026-03-02T09:30:00Z")
    assert dt == datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
    assert format_iso(dt) == "2026-03-02T09:30:00Z"
    assert minutes_between(dt, parse_iso("2026-03-02T11:00:00+00:00")) == 90
    assert minutes_since(dt, now=parse_iso("2026-03-07T09:30:00Z")) == 5 * 24 * 60


class TestTokens:

    def test_actor_from_claims(self):
        actor = get_current_actor(f"Bearer {make_token('fin-9', 'finance', 'district-3')}")
        assert actor.actor_id == "fin-9"
        assert actor.role == ApproverRole.FINANCE
        assert actor.tenant_id == "district-3"

    def test_missing_header(self):
        with pytest.raises(AuthenticationError):
            get_current_actor("")

    def test_missing_subject(self):
        token = jwt.encode({"role": "hr"}, "test-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            JWTValidator().get_actor_context(token)

    def test_unknown_role(self):
        with pytest.raises(AuthenticationError) as exc_info:
            JWTValidator().get_actor_context(make_token("x-1", "janitor"))
        assert exc_info.value.details["role"] == "janitor"
