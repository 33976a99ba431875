"""
Tests for canonical status breakdowns and client status mappings.
"""

import pytest

from pulse.analyzer.status_engine import (
    DELIVERY_STATUSES,
    STATUS_CODE_CATEGORIES,
    compute_status_breakdown,
    compute_status_code_breakdown,
    resolve_mappings,
)

from factories import CLIENT_ID, make_logs

MESSAGE_STATUSES = ["sent", "SENT", "delivered", "read", "replied", None, "", "failed"]


def as_tuples(buckets):
    return {b.key: (b.count, b.percentage) for b in buckets}


class TestStatusBreakdown:
    """Tests for delivery status buckets."""

    def test_default_mappings(self, build_store):
        store = build_store(make_logs("message_status", MESSAGE_STATUSES))
        buckets = compute_status_breakdown(store, CLIENT_ID)

        assert [b.key for b in buckets] == [c.key for c in DELIVERY_STATUSES]
        assert as_tuples(buckets) == {
            "SENT": (2, 25),
            "DELIVERED": (1, 13),
            "READ": (1, 13),
            "REPLIED": (1, 13),
            "PENDING": (2, 25),
            "FAILED": (1, 13),
        }
        assert buckets[3].label == "Action"

    def test_client_mappings_and_colors(self, build_store):
        store = build_store(make_logs("message_status", ["queued", "queued", "sent", "failed"]))
        buckets = compute_status_breakdown(
            store,
            CLIENT_ID,
            mappings={"SENT": "queued, sent", "FAILED": ""},
            colors={"FAILED": "#000000"},
        )
        by_key = {b.key: b for b in buckets}
        assert (by_key["SENT"].count, by_key["SENT"].percentage) == (3, 75)
        assert by_key["FAILED"].count == 1
        assert by_key["FAILED"].color == "#000000"
        assert by_key["SENT"].color == "#3B82F6"

    def test_empty_scope(self, build_store):
        buckets = compute_status_breakdown(build_store(), CLIENT_ID)
        assert all((b.count, b.percentage) == (0, 0) for b in buckets)


class TestStatusCodeBreakdown:
    """Tests for status code categories."""

    def test_default_categories(self, build_store):
        codes = [200, 201, 404, 500, 503, None, 302]
        store = build_store(make_logs("status_code", codes))
        buckets = compute_status_code_breakdown(store, CLIENT_ID)

        assert [b.key for b in buckets] == [c.key for c in STATUS_CODE_CATEGORIES]
        assert as_tuples(buckets) == {
            "SUCCESS": (2, 29),
            "CLIENT_ERROR": (1, 14),
            "SERVER_ERROR": (2, 29),
        }

    def test_template_scope(self, build_store):
        rows = make_logs("status_code", [200, 200], template_name="welcome") + make_logs(
            "status_code", [500], template_name="promo"
        )
        buckets = compute_status_code_breakdown(build_store(rows), CLIENT_ID, template_name="promo")
        assert as_tuples(buckets)["SERVER_ERROR"] == (1, 100)
        assert as_tuples(buckets)["SUCCESS"] == (0, 0)


class TestResolveMappings:
    """Tests for filling in and normalizing client mappings."""

    def test_defaults_when_nothing_is_stored(self):
        resolved = resolve_mappings(DELIVERY_STATUSES)
        assert resolved == {c.key: c.default_mapping for c in DELIVERY_STATUSES}

    def test_blank_mapping_falls_back_to_default(self):
        assert resolve_mappings(DELIVERY_STATUSES, {"SENT": ""})["SENT"] == "sent,Sent,SENT"

    @pytest.mark.parametrize(
        "stored, expected",
        [
            ("null", "null,$empty"),
            ("null,", "null,$empty"),
            ("null,$empty", "null,$empty"),
            ("waiting", "waiting"),
        ],
    )
    def test_pending_covers_empty_strings(self, stored, expected):
        assert resolve_mappings(DELIVERY_STATUSES, {"PENDING": stored})["PENDING"] == expected

    def test_status_codes_are_left_alone(self):
        resolved = resolve_mappings(STATUS_CODE_CATEGORIES, {"SUCCESS": "200"})
        assert resolved["SUCCESS"] == "200"
        assert resolved["SERVER_ERROR"] == "500,502,503"
