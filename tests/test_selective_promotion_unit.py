"""
Unit tests for the comparison report and selective promotion.

Tests:
- Read-only comparison report and recommendations
- Promotion proposals
- Upsert of selected development-only records into production
- Per-item failure reporting
"""

import json
from unittest.mock import AsyncMock

import pytest

from src.sync.models import PromotionStatus
from src.sync.promotion import (
    RECORD_NOT_FOUND,
    DatabaseComparisonTool,
    SelectivePromotionTool,
    generate_recommendations,
)
from src.sync.registry import record_summary
from src.sync.reporting import SyncReportWriter

from tests.fakes import FakeDatabase, customer, customers_table


@pytest.fixture
def databases():
    production = FakeDatabase("production", {
        "customers": customers_table(customer(1, "Acme"), customer(3, "Initech")),
    }, allow_destructive=False)
    development = FakeDatabase("development", {
        "customers": customers_table(
            customer(1, "Acme"),
            customer(2, "Test Customer", status="Proposal", primary_contact_name="Jane Doe"),
        ),
    })
    return production, development


def make_tools(production, development):
    comparison = DatabaseComparisonTool(production, development, tables=("customers",))
    return comparison, SelectivePromotionTool(production, comparison)


class TestRecommendations:
    """Tests for report recommendations."""

    def test_thresholds(self):
        recommendations = generate_recommendations(
            {"customers": [{}], "customer_files": [{}, {}], "customer_notes": []},
            total_missing_in_dev=4,
        )

        assert [r["type"] for r in recommendations] == [
            "MISSING_CUSTOMERS",
            "MISSING_FILES",
            "PROD_NEWER_DATA",
        ]
        assert recommendations[0]["priority"] == "HIGH"
        assert "1 customer records" in recommendations[0]["message"]
        assert "4 records" in recommendations[2]["message"]

    def test_nothing_missing(self):
        assert generate_recommendations({}, 0) == []


class TestDatabaseComparisonTool:
    """Tests for the read-only comparison report."""

    @pytest.mark.asyncio
    async def test_report_contents(self, databases):
        production, development = databases
        comparison, _ = make_tools(production, development)

        report = await comparison.generate_report()

        assert [r["id"] for r in report["missing_in_prod"]["customers"]] == [2]
        assert [r["id"] for r in report["missing_in_dev"]["customers"]] == [3]
        assert report["summary"] == {"total_missing_in_prod": 1, "total_missing_in_dev": 1}
        assert [r["type"] for r in report["recommendations"]] == ["MISSING_CUSTOMERS", "PROD_NEWER_DATA"]
        assert report["errors"] == {}

    @pytest.mark.asyncio
    async def test_comparison_never_writes(self, databases):
        production, development = databases
        comparison, _ = make_tools(production, development)

        await comparison.generate_report()

        assert all(s.startswith("SELECT") for s in production.statements + development.statements)

    @pytest.mark.asyncio
    async def test_missing_table_is_reported_as_error(self, databases):
        production, development = databases
        comparison = DatabaseComparisonTool(production, development)

        report = await comparison.generate_report()

        assert set(report["errors"]) == {"customer_files", "customer_notes", "users"}
        assert report["summary"]["total_missing_in_prod"] == 1

    @pytest.mark.asyncio
    async def test_sync_script(self, databases):
        production, development = databases
        comparison, _ = make_tools(production, development)
        await comparison.generate_report()

        script = comparison.generate_sync_script()

        assert script["operations"] == [{
            "table": "customers",
            "action": "INSERT_FROM_DEV",
            "records": [{"id": 2, "summary": "Test Customer (Jane Doe)"}],
            "count": 1,
        }]

    @pytest.mark.asyncio
    async def test_save_report(self, databases, tmp_path):
        production, development = databases
        comparison, _ = make_tools(production, development)
        await comparison.generate_report()

        path = comparison.save_report(SyncReportWriter(tmp_path))

        assert path.name.startswith("database-sync-report-")
        assert json.loads(path.read_text())["summary"]["total_missing_in_prod"] == 1

    def test_save_report_requires_a_report(self, databases, tmp_path):
        production, development = databases
        comparison, _ = make_tools(production, development)

        with pytest.raises(RuntimeError):
            comparison.save_report(SyncReportWriter(tmp_path))


class TestSelectivePromotion:
    """Tests for promoting development-only records."""

    def test_parse_item_id(self):
        assert SelectivePromotionTool.parse_item_id("customers-2") == ("customers", "2")
        assert SelectivePromotionTool.parse_item_id("customer_notes-15") == ("customer_notes", "15")

    @pytest.mark.parametrize("item_id", ["customers", "-2", "customers-", ""])
    def test_parse_malformed_item_id(self, item_id):
        with pytest.raises(ValueError):
            SelectivePromotionTool.parse_item_id(item_id)

    @pytest.mark.asyncio
    async def test_promotes_development_only_record(self, databases):
        production, development = databases
        _, promotion = make_tools(production, development)

        result = await promotion.promote(["customers-2"])

        assert result.successful == 1
        assert result.failed == 0
        assert result.results[0].item == "customers-2"
        assert result.results[0].status is PromotionStatus.SUCCESS
        promoted = production.tables["customers"].find(2)
        assert promoted is not None
        assert promoted["company_name"] == "Test Customer"
        assert promoted["status"] == "Proposal"
        assert promoted["primary_contact_name"] == "Jane Doe"
        assert production.destructive_statements() == []

    @pytest.mark.asyncio
    async def test_unknown_record_is_not_found(self, databases):
        production, development = databases
        _, promotion = make_tools(production, development)

        result = await promotion.promote(["customers-1", "customers-99", "bogus"])

        assert result.successful == 0
        assert result.failed == 3
        assert result.total == 3
        assert {r.error for r in result.results} == {RECORD_NOT_FOUND}
        assert len(production.tables["customers"].rows) == 2

    @pytest.mark.asyncio
    async def test_each_item_gets_exactly_one_result(self, databases):
        production, development = databases
        _, promotion = make_tools(production, development)

        result = await promotion.promote(["customers-2", "customers-42"])

        assert [r.item for r in result.results] == ["customers-2", "customers-42"]
        assert [r.status for r in result.results] == [PromotionStatus.SUCCESS, PromotionStatus.FAILED]
        assert result.to_dict()["results"][1] == {
            "item": "customers-42",
            "status": "failed",
            "error": RECORD_NOT_FOUND,
        }

    @pytest.mark.asyncio
    async def test_write_failure_is_captured(self, databases):
        production, development = databases
        _, promotion = make_tools(production, development)
        production.execute = AsyncMock(side_effect=RuntimeError("duplicate key value"))

        result = await promotion.promote(["customers-2"])

        assert result.failed == 1
        assert result.results[0].error == "duplicate key value"

    @pytest.mark.asyncio
    async def test_existing_snapshot_is_reused(self, databases):
        production, development = databases
        comparison, promotion = make_tools(production, development)
        await comparison.generate_report()
        comparison.generate_report = AsyncMock()

        await promotion.promote(["customers-2"])
        comparison.generate_report.assert_not_awaited()

        await promotion.promote(["customers-2"], refresh=True)
        comparison.generate_report.assert_awaited_once()


class TestRecordSummary:
    """Tests for record summaries."""

    def test_summaries(self):
        assert record_summary("users", {"name": "Ann", "email": "a@x.com"}) == "Ann (a@x.com)"
        assert record_summary("customer_notes", {"customer_id": "c1", "content": None}) == "Note for c1: N/A..."
        assert record_summary("affiliates", {"id": 9}) == "Record ID: 9"
