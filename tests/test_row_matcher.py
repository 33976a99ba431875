"""
Unit tests for keyword predicates and row counting.

The property tests run against both store implementations so the SQL
compilation and the in-Python evaluation stay in agreement.
"""

import pytest

from pulse.analyzer.row_matcher import KeywordPredicate, build_predicate, count_matching_rows
from pulse.core.column_registry import LogColumn
from pulse.models.stats_models import MetricScope

from factories import CLIENT_ID, OTHER_CLIENT_ID, make_log, make_logs

SCOPE = MetricScope(client_id=CLIENT_ID)

STATUS_VALUES = ["sent", "Delivered", "DELIVERED", "read", "", None, None, "failed"]


def count(store, column, keywords):
    return count_matching_rows(store, SCOPE, column, keywords)


class TestBuildPredicate:
    """Tests for keyword classification."""

    def test_wildcard_short_circuits(self):
        predicate = build_predicate(LogColumn.MESSAGE_STATUS, ["sent", "*", "$null"])
        assert predicate == KeywordPredicate(column=LogColumn.MESSAGE_STATUS, match_all=True)

    def test_special_tokens_set_flags(self):
        predicate = build_predicate(
            LogColumn.MESSAGE_STATUS, ["$not_null", "$NULL", "$Empty", "sent"]
        )
        assert predicate.match_not_null
        assert predicate.match_null
        assert predicate.match_empty
        assert predicate.literals == ("sent",)

    def test_legacy_null_alias_is_case_insensitive(self):
        for token in ("null", "NULL", "Null", " null "):
            assert build_predicate(LogColumn.PHONE, [token]).match_null

    def test_literals_keep_order_and_drop_duplicates_and_blanks(self):
        predicate = build_predicate(LogColumn.MESSAGE_STATUS, ["read", " sent ", "", "read"])
        assert predicate.literals == ("read", "sent")

    def test_only_blank_tokens_match_nothing(self):
        assert build_predicate(LogColumn.MESSAGE_STATUS, ["", "  "]).is_empty


class TestPredicateMatches:
    """Tests for in-Python predicate evaluation."""

    def test_text_literals_ignore_case(self):
        predicate = build_predicate(LogColumn.MESSAGE_STATUS, ["Delivered"])
        assert predicate.matches("delivered")
        assert predicate.matches("DELIVERED")
        assert not predicate.matches("read")
        assert not predicate.matches(None)

    def test_numeric_literals_match_exact_text(self):
        predicate = build_predicate(LogColumn.STATUS_CODE, ["200"])
        assert predicate.matches(200)
        assert not predicate.matches(2000)
        assert not predicate.matches(20)
        assert not predicate.matches(None)

    def test_empty_is_not_null(self):
        predicate = build_predicate(LogColumn.MESSAGE_STATUS, ["$empty"])
        assert predicate.matches("")
        assert not predicate.matches(None)
        assert not predicate.matches("sent")

    def test_empty_never_matches_a_number(self):
        assert not build_predicate(LogColumn.STATUS_CODE, ["$empty"]).matches(0)

    def test_not_null_includes_empty_string(self):
        predicate = build_predicate(LogColumn.MESSAGE_STATUS, ["$not_null"])
        assert predicate.matches("")
        assert predicate.matches("sent")
        assert not predicate.matches(None)


class _RecordingStore:
    def __init__(self, total=0, matched=0):
        self.total = total
        self.matched = matched
        self.calls = []

    def count_rows(self, scope, predicate):
        self.calls.append(("count_rows", predicate))
        return self.matched

    def count_total_rows(self, scope):
        self.calls.append(("count_total_rows", None))
        return self.total


class TestCountMatchingRows:
    """Tests for store interaction."""

    def test_empty_keywords_skip_the_store(self):
        store = _RecordingStore(total=5, matched=5)
        assert count(store, LogColumn.MESSAGE_STATUS, []) == 0
        assert store.calls == []

    def test_wildcard_counts_the_scope(self):
        store = _RecordingStore(total=7, matched=1)
        assert count(store, LogColumn.MESSAGE_STATUS, ["sent", "*"]) == 7
        assert store.calls == [("count_total_rows", None)]

    def test_predicate_is_passed_through(self):
        store = _RecordingStore(matched=3)
        assert count(store, LogColumn.TEMPLATE_NAME, ["welcome"]) == 3
        (call,) = store.calls
        assert call[1].literals == ("welcome",)


class TestMatchingProperties:
    """Counting properties that hold for any row set."""

    def test_wildcard_equals_total(self, build_store):
        store = build_store(make_logs("message_status", STATUS_VALUES))
        assert count(store, LogColumn.MESSAGE_STATUS, ["*", "nothing"]) == len(STATUS_VALUES)

    @pytest.mark.parametrize("column", ["message_status", "status_code"])
    def test_null_and_not_null_partition_the_scope(self, build_store, column):
        values = STATUS_VALUES if column == "message_status" else [200, 404, None, 500, None]
        store = build_store(make_logs(column, values))
        log_column = LogColumn(column)
        nulls = count(store, log_column, ["$null"])
        not_nulls = count(store, log_column, ["$not_null"])
        assert nulls + not_nulls == len(values)

    def test_empty_is_a_subset_of_not_null(self, build_store):
        store = build_store(make_logs("message_status", STATUS_VALUES))
        empty = count(store, LogColumn.MESSAGE_STATUS, ["$empty"])
        both = count(store, LogColumn.MESSAGE_STATUS, ["$empty", "$not_null"])
        assert empty == 1
        assert both == count(store, LogColumn.MESSAGE_STATUS, ["$not_null"])

    def test_text_matching_is_case_insensitive(self, build_store):
        store = build_store(make_logs("message_status", STATUS_VALUES))
        counts = {
            count(store, LogColumn.MESSAGE_STATUS, [keyword])
            for keyword in ("Delivered", "delivered", "DELIVERED")
        }
        assert counts == {2}

    def test_case_folding_covers_non_ascii_text(self, build_store):
        store = build_store(make_logs("message_status", ["ÉCHEC", "échec", "Échec", "echec"]))
        assert count(store, LogColumn.MESSAGE_STATUS, ["échec"]) == 3
        assert count(store, LogColumn.MESSAGE_STATUS, ["ÉCHEC"]) == 3

    def test_status_code_matches_exactly(self, build_store):
        store = build_store(make_logs("status_code", [200, 200, 2000, 20, None]))
        assert count(store, LogColumn.STATUS_CODE, ["200"]) == 2

    def test_keywords_combine_with_or(self, build_store):
        store = build_store(make_logs("message_status", STATUS_VALUES))
        assert count(store, LogColumn.MESSAGE_STATUS, ["sent", "read", "$null"]) == 4

    def test_null_scenario(self, build_store):
        store = build_store(make_logs("phone", [None] * 3 + ["+15550100"] * 7))
        assert count(store, LogColumn.PHONE, ["$null"]) == 3

    def test_other_clients_rows_are_out_of_scope(self, build_store):
        rows = make_logs("message_status", ["sent", "sent"]) + [
            make_log(client_id=OTHER_CLIENT_ID, message_status="sent")
        ]
        store = build_store(rows)
        assert count(store, LogColumn.MESSAGE_STATUS, ["sent"]) == 2
        assert count(store, LogColumn.MESSAGE_STATUS, ["*"]) == 2
