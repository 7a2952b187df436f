"""Tests for the tabular transformations."""

import pytest

from data_ops.errors import NotFoundError, ValidationError
from data_ops.transforms import (
    add_column,
    aggregate_data,
    filter_data,
    get_dataset_schema,
    get_descriptive_stats,
    infer_type,
    join_datasets,
    union_datasets,
)


class TestSchema:
    def test_column_types(self, store):
        result = get_dataset_schema(store, "sales").result
        types = {c["name"]: c["type"] for c in result["columns"]}
        assert types["price"] == "number"
        assert types["region"] == "string"
        assert types["date"] == "date"
        assert result["rows"] == 5
        assert len(result["preview_rows"]) == 5

    def test_infer_type(self):
        assert infer_type(True) == "boolean"
        assert infer_type("2024-01-01") == "date"
        assert infer_type("hello") == "string"
        assert infer_type(None) == "unknown"


class TestFilter:
    def test_numeric_comparison(self, store):
        outcome = filter_data(store, "sales", "price", ">", "3")
        assert outcome.result["rows"] == 2
        assert outcome.result["new_dataset_name"] == "step_1_result"
        assert all(r["price"] > 3 for r in outcome.dataset.rows)

    def test_result_is_a_subset_of_the_input(self, store):
        outcome = filter_data(store, "sales", "region", "==", "North")
        assert [r["order_id"] for r in outcome.dataset.rows] == [1, 3]
        assert outcome.dataset.column_names == store.get("sales").column_names

    def test_null_values_never_match(self, store):
        outcome = filter_data(store, "sales", "qty", "!=", 100)
        assert outcome.result["rows"] == 4

    def test_contains_is_case_insensitive(self, store):
        outcome = filter_data(store, "sales", "product", "contains", "widg")
        assert outcome.result["rows"] == 3

    def test_empty_result_is_a_warning(self, store):
        outcome = filter_data(store, "sales", "region", "==", "Nowhere")
        assert outcome.result["rows"] == 0
        assert "resulted in 0 rows" in outcome.result["warning"]
        assert outcome.dataset.column_names == store.get("sales").column_names

    def test_unknown_operator(self, store):
        with pytest.raises(ValidationError, match="Unsupported filter operator"):
            filter_data(store, "sales", "price", "~", 1)

    def test_unknown_column(self, store):
        with pytest.raises(NotFoundError, match='Column "colour" does not exist in dataset "sales"'):
            filter_data(store, "sales", "colour", "==", "red")

    def test_input_is_not_modified(self, store):
        before = [dict(r) for r in store.get("sales").rows]
        filter_data(store, "sales", "price", ">", 3)
        assert [dict(r) for r in store.get("sales").rows] == before


class TestAggregate:
    def test_count_by_region(self, store):
        outcome = aggregate_data(store, "sales", ["region"], "order_id", "count")
        counts = {r["region"]: r["order_id_count"] for r in outcome.dataset.rows}
        assert counts == {"North": 2, "South": 2, "East": 1}
        assert sum(counts.values()) == store.get("sales").row_count

    def test_sum_skips_nulls(self, store):
        outcome = aggregate_data(store, "sales", ["region"], "qty", "sum")
        sums = {r["region"]: r["qty_sum"] for r in outcome.dataset.rows}
        assert sums == {"North": 5, "South": 5, "East": 0}

    def test_average_and_single_row_data(self, store):
        outcome = aggregate_data(store, "sales", [], "price", "average")
        assert outcome.result["rows"] == 1
        assert outcome.result["data"]["price_average"] == pytest.approx(3.2)

    def test_max_min(self, store):
        top = aggregate_data(store, "sales", ["product"], "price", "max").dataset
        assert {r["product"]: r["price_max"] for r in top.rows} == {"Widget": 2, "Gadget": 5}

    def test_unsupported_function(self, store):
        with pytest.raises(ValidationError, match="Unsupported aggregation function: median"):
            aggregate_data(store, "sales", ["region"], "price", "median")


class TestAddColumn:
    def test_computes_per_row(self, store):
        outcome = add_column(store, "sales", "revenue", "price * qty")
        rows = outcome.dataset.rows
        assert rows[0]["revenue"] == 6
        assert outcome.dataset.column_names[-1] == "revenue"
        assert outcome.result["rows"] == 5

    def test_failing_rows_become_null_with_warning(self, store):
        outcome = add_column(store, "sales", "revenue", "price * qty")
        assert outcome.dataset.rows[3]["revenue"] is None
        assert "(1 row affected)" in outcome.result["warning"]

    def test_division_by_zero(self, store):
        outcome = add_column(store, "ratios", "ratio", "a / b")
        assert [r["ratio"] for r in outcome.dataset.rows] == [None, 2.0]
        assert "division by zero" in outcome.result["warning"]

    def test_scalar_lookup(self, store):
        outcome = add_column(store, "sales", "share", "qty / [totals].total_qty * 100")
        assert outcome.dataset.rows[0]["share"] == pytest.approx(30.0)

    def test_scalar_lookup_needs_one_row(self, store):
        with pytest.raises(ValidationError, match="does not have exactly one row"):
            add_column(store, "sales", "x", "qty / [sales].qty")

    def test_unknown_column(self, store):
        with pytest.raises(NotFoundError, match='Column "cost" does not exist'):
            add_column(store, "sales", "margin", "price - cost")


class TestDescriptiveStats:
    def test_numeric_column(self, store):
        stats = get_descriptive_stats(store, "sales", "price").result["statistics"]
        assert stats["count"] == 5
        assert stats["mean"] == pytest.approx(3.2)
        assert stats["median"] == 2
        assert stats["min"] == 2
        assert stats["max"] == 5

    def test_nulls_are_ignored(self, store):
        stats = get_descriptive_stats(store, "sales", "qty").result["statistics"]
        assert stats["count"] == 4
        assert stats["mean"] == pytest.approx(2.5)

    def test_date_column(self, store):
        stats = get_descriptive_stats(store, "sales", "date").result["statistics"]
        assert stats["start_date"] == "2024-01-15"
        assert stats["end_date"] == "2024-04-02"
        assert stats["duration_days"] == 78
        assert stats["unique_count"] == 5

    def test_string_column_is_rejected(self, store):
        with pytest.raises(ValidationError, match="does not contain numerical or date data"):
            get_descriptive_stats(store, "sales", "region")


class TestJoin:
    def test_inner(self, store):
        outcome = join_datasets(store, "sales", "regions", "region", "region", "inner")
        assert outcome.result["rows"] == 4
        assert outcome.dataset.column_names == (
            "order_id", "region", "product", "price", "qty", "date", "manager"
        )

    def test_left_keeps_unmatched_left_rows(self, store):
        rows = join_datasets(store, "sales", "regions", "region", "region", "left").dataset.rows
        assert len(rows) == 5
        east = [r for r in rows if r["region"] == "East"][0]
        assert east["manager"] is None

    def test_right_and_full(self, store):
        right = join_datasets(store, "sales", "regions", "region", "region", "right").dataset.rows
        full = join_datasets(store, "sales", "regions", "region", "region", "full").dataset.rows
        # right keeps only the right rows nobody matched
        assert len(right) == 1
        assert right[0]["region"] == "West"
        assert right[0]["order_id"] is None
        assert len(full) == 6
        west = [r for r in full if r["manager"] == "Chloe"][0]
        assert west["region"] == "West"
        assert west["order_id"] is None

    def test_colliding_columns_get_suffix(self, store):
        store.load_base({
            "a": [{"id": 1, "name": "left"}],
            "b": [{"key": 1, "name": "right"}],
        })
        outcome = join_datasets(store, "a", "b", "id", "key", "inner")
        assert outcome.dataset.rows[0] == {"id": 1, "name": "left", "name_right": "right"}

    def test_null_keys_never_match(self, store):
        store.load_base({
            "a": [{"id": None, "x": 1}],
            "b": [{"id": None, "y": 2}],
        })
        outcome = join_datasets(store, "a", "b", "id", "id", "inner")
        assert outcome.result["rows"] == 0
        assert "resulted in 0 rows" in outcome.result["warning"]

    def test_unsupported_join_type(self, store):
        with pytest.raises(ValidationError, match="Unsupported join type"):
            join_datasets(store, "sales", "regions", "region", "region", "cross")


class TestUnion:
    def test_concatenates_in_order(self, store):
        first = filter_data(store, "sales", "region", "==", "North").dataset
        second = filter_data(store, "sales", "region", "==", "South").dataset
        outcome = union_datasets(store, [first.name, second.name])
        assert [r["order_id"] for r in outcome.dataset.rows] == [1, 3, 2, 5]

    def test_schema_mismatch(self, store):
        with pytest.raises(ValidationError, match="Schema mismatch"):
            union_datasets(store, ["sales", "regions"])

    def test_needs_two_datasets(self, store):
        with pytest.raises(ValidationError, match="at least two"):
            union_datasets(store, ["sales"])
