"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from agent import turn_limits
from agent.core import AnalystAgent
from agent.event_bus import EventBus
from agent.tool_executor import ToolExecutor
from data_ops.store import DatasetStore
from rendering.report_image import NullReportRenderer

from tests.fakes import FakeAdapter


@pytest.fixture
def sales_records():
    """Five orders; order 4 has no quantity."""
    return [
        {"order_id": 1, "region": "North", "product": "Widget", "price": 2, "qty": 3, "date": "2024-01-15"},
        {"order_id": 2, "region": "South", "product": "Gadget", "price": 5, "qty": 1, "date": "2024-02-10"},
        {"order_id": 3, "region": "North", "product": "Gadget", "price": 5, "qty": 2, "date": "2024-03-05"},
        {"order_id": 4, "region": "East", "product": "Widget", "price": 2, "qty": None, "date": "2024-03-20"},
        {"order_id": 5, "region": "South", "product": "Widget", "price": 2, "qty": 4, "date": "2024-04-02"},
    ]


@pytest.fixture
def region_records():
    """North and South match sales; West has no orders; East has no region row."""
    return [
        {"region": "North", "manager": "Ana"},
        {"region": "South", "manager": "Ben"},
        {"region": "West", "manager": "Chloe"},
    ]


@pytest.fixture
def monthly_records():
    return [
        {"month": "2024-01-01", "revenue": 100},
        {"month": "2024-02-01", "revenue": 110},
        {"month": "2024-03-01", "revenue": 120},
        {"month": "2024-04-01", "revenue": 130},
    ]


@pytest.fixture
def datasets(sales_records, region_records, monthly_records):
    return {
        "sales": sales_records,
        "regions": region_records,
        "monthly": monthly_records,
        "ratios": [{"a": 1, "b": 0}, {"a": 4, "b": 2}],
        "totals": [{"total_qty": 10}],
    }


@pytest.fixture
def store(datasets):
    store = DatasetStore()
    store.load_base(datasets)
    return store


@pytest.fixture
def bus():
    return EventBus(session_id="test")


@pytest.fixture
def executor(bus, datasets):
    executor = ToolExecutor(bus=bus, renderer=NullReportRenderer(), rng=np.random.default_rng(0))
    executor.load_data(datasets)
    return executor


@pytest.fixture(autouse=True)
def default_turn_limits(monkeypatch):
    """Ignore any turn_limits overrides from the developer's config.json."""
    monkeypatch.setattr(turn_limits, "_overrides", {})


@pytest.fixture
def make_agent(datasets):
    """Build an AnalystAgent around a scripted FakeAdapter.

    Returns (agent, adapter).
    """
    def _make(planner=None, strategist=None, reviewer=None, **kwargs):
        adapter = FakeAdapter(planner=planner, strategist=strategist, reviewer=reviewer)
        kwargs.setdefault("retry_timeout", 10)
        kwargs.setdefault("review_policy", "always")
        agent = AnalystAgent(adapter, datasets, **kwargs)
        return agent, adapter
    return _make
