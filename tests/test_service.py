"""
Integration tests for ExpenseService, with fake external services.
"""

import asyncio

import pytest

from expense_tracker import orchestrator
from expense_tracker.agents import ClassifierError, GeminiExpenseClassifier
from expense_tracker.audit import AuditLogger
from expense_tracker.config import GeminiSettings, Settings, validate_all_settings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.expense import Deductibility, ExpenseCategory
from expense_tracker.orchestrator import ExpenseService, create_app_components
from expense_tracker.services.storage import NotFoundError
from expense_tracker.validation import ExpenseValidationError

from conftest import FakeClassifier, FakeRecordSource


@pytest.fixture
def build_service(storage, audit_logger):
    def _build(classifier=None, record_source=None, **kwargs):
        return ExpenseService(
            storage=storage,
            classifier=classifier or FakeClassifier(),
            record_source=record_source,
            audit_logger=audit_logger,
            **kwargs,
        )
    return _build


class TestCreateExpense:
    """Tests for create: validate, store, enrich."""

    def test_uncategorized_expense_is_classified(self, build_service, make_payload):
        service = build_service()

        expense = asyncio.run(service.create_expense(make_payload()))

        assert expense.id == 1
        assert expense.category == ExpenseCategory.SOFTWARE
        assert expense.deductibility == Deductibility.FULLY_DEDUCTIBLE

    def test_given_category_skips_classifier(self, build_service, make_payload):
        classifier = FakeClassifier()
        service = build_service(classifier)

        expense = asyncio.run(service.create_expense(make_payload(category=ExpenseCategory.TRAVEL)))

        assert expense.category == ExpenseCategory.TRAVEL
        assert classifier.call_count == 0

    def test_categorize_on_create_can_be_disabled(self, build_service, make_payload):
        classifier = FakeClassifier()
        service = build_service(classifier, categorize_on_create=False)

        expense = asyncio.run(service.create_expense(make_payload()))

        assert expense.category is None
        assert classifier.call_count == 0

    def test_classifier_failure_does_not_fail_create(
        self, build_service, make_payload, audit_storage
    ):
        """Test the expense is stored unclassified when the classifier is down."""
        service = build_service(FakeClassifier(fail_all=True))

        expense = asyncio.run(service.create_expense(make_payload()))

        assert expense.category is None
        assert asyncio.run(service.get_expense(expense.id)).vendor == "Figma"
        events = asyncio.run(audit_storage.get_events_by_expense(expense.id))
        assert [e.event_type for e in events] == [
            AuditEventType.EXPENSE_CREATED,
            AuditEventType.CLASSIFICATION_FAILED,
        ]

    def test_invalid_payload_never_reaches_store(self, build_service, make_payload):
        service = build_service()

        with pytest.raises(ExpenseValidationError):
            asyncio.run(service.create_expense(make_payload(amount="-10")))

        assert asyncio.run(service.list_expenses()) == []


class TestUpdateAndDelete:
    """Tests for update / delete."""

    def test_partial_update(self, build_service, make_payload):
        classifier = FakeClassifier()
        service = build_service(classifier, categorize_on_create=False)
        created = asyncio.run(service.create_expense(make_payload()))

        updated = asyncio.run(service.update_expense(created.id, {"description": "Team plan"}))

        assert updated.description == "Team plan"
        assert updated.vendor == created.vendor
        assert updated.updated_at > created.updated_at
        # Edits never re-trigger classification
        assert updated.category is None
        assert classifier.call_count == 0

    def test_update_unknown_id(self, build_service):
        with pytest.raises(NotFoundError):
            asyncio.run(build_service().update_expense(404, {"vendor": "X"}))

    def test_invalid_update(self, build_service, make_payload):
        service = build_service()
        created = asyncio.run(service.create_expense(make_payload()))

        with pytest.raises(ExpenseValidationError):
            asyncio.run(service.update_expense(created.id, {"date": "2024-02-30"}))
        assert asyncio.run(service.get_expense(created.id)).date == "2024-05-14"

    @pytest.mark.parametrize("field", ["date", "vendor", "amount", "description"])
    def test_required_field_cannot_be_nulled(self, build_service, make_payload, field):
        """Test a null for a required field is rejected and the store stays usable."""
        service = build_service()
        created = asyncio.run(service.create_expense(make_payload()))

        with pytest.raises(ExpenseValidationError):
            asyncio.run(service.update_expense(created.id, {field: None}))

        stored = asyncio.run(service.get_expense(created.id))
        assert getattr(stored, field) == getattr(created, field)
        assert asyncio.run(service.dashboard_stats()).total_expenses == "15.00"
        assert len(asyncio.run(service.expenses_between("2024-01-01", "2024-12-31"))) == 1

    def test_update_is_audited(self, build_service, make_payload, audit_storage):
        service = build_service()
        created = asyncio.run(service.create_expense(make_payload()))
        asyncio.run(service.update_expense(created.id, {"vendor": "Figma Inc", "amount": "18"}))

        latest = asyncio.run(audit_storage.get_recent_events(limit=1))[0]
        assert latest.event_type == AuditEventType.EXPENSE_UPDATED
        assert latest.details["fields"] == ["amount", "vendor"]

    def test_delete(self, build_service, make_payload):
        service = build_service()
        created = asyncio.run(service.create_expense(make_payload()))

        asyncio.run(service.delete_expense(created.id))

        with pytest.raises(NotFoundError):
            asyncio.run(service.get_expense(created.id))
        with pytest.raises(NotFoundError):
            asyncio.run(service.delete_expense(created.id))


class TestQueries:
    """Tests for listing and read-only views."""

    def test_list_by_category(self, build_service, make_payload):
        service = build_service(categorize_on_create=False)
        asyncio.run(service.create_expense(make_payload(category=ExpenseCategory.MEALS)))
        asyncio.run(service.create_expense(make_payload(vendor="Other")))

        meals = asyncio.run(service.list_expenses(category=ExpenseCategory.MEALS))
        assert len(meals) == 1
        assert len(asyncio.run(service.list_expenses())) == 2

    def test_expenses_between(self, build_service, make_payload):
        service = build_service(categorize_on_create=False)
        asyncio.run(service.create_expense(make_payload(date="2024-01-10")))
        asyncio.run(service.create_expense(make_payload(date="2024-03-10")))

        found = asyncio.run(service.expenses_between("2024-01-01", "2024-01-31"))
        assert [e.date for e in found] == ["2024-01-10"]

    def test_dashboard_and_tax_summary(self, build_service, make_payload):
        service = build_service()
        asyncio.run(service.create_expense(make_payload(amount="10.00")))
        asyncio.run(service.create_expense(make_payload(
            amount="20.00",
            category=ExpenseCategory.MEALS,
            deductibility=Deductibility.PARTIALLY_DEDUCTIBLE,
        )))

        stats = asyncio.run(service.dashboard_stats())
        assert stats.total_expenses == "30.00"
        assert stats.deductible_amount == "10.00"
        assert stats.ai_accuracy == "100%"

        summary = asyncio.run(service.tax_summary())
        assert summary.bucket(Deductibility.PARTIALLY_DEDUCTIBLE).amount == "20.00"

        breakdown = asyncio.run(service.category_breakdown())
        assert breakdown[0].category == ExpenseCategory.MEALS

    def test_generate_insights(self, build_service, make_payload):
        classifier = FakeClassifier()
        service = build_service(classifier)
        asyncio.run(service.create_expense(make_payload()))

        insights = asyncio.run(service.generate_insights())

        assert insights.summary == "1 expenses reviewed"
        assert classifier.summarized[0].category == "Software"

    def test_generate_insights_failure_propagates(self, build_service):
        service = build_service(FakeClassifier(fail_all=True))
        with pytest.raises(ClassifierError):
            asyncio.run(service.generate_insights())


class TestBulkActions:
    """Tests for the bulk operations exposed by the service."""

    def test_categorize_all(self, build_service, make_payload):
        service = build_service(categorize_on_create=False)
        for vendor in ("A", "B"):
            asyncio.run(service.create_expense(make_payload(vendor=vendor)))

        result = asyncio.run(service.categorize_all())

        assert result.message == "Successfully categorized 2 of 2 expenses"

    def test_import_and_export(self, build_service):
        source = FakeRecordSource(rows=[
            {"date": "2024-02-01", "vendor": "AWS", "amount": "31.20", "description": "Hosting"},
        ])
        service = build_service(record_source=source)

        imported = asyncio.run(service.import_from_source())
        exported = asyncio.run(service.export_to_source())

        assert imported.imported == 1
        assert exported.exported == 1
        assert source.written[0].vendor == "AWS"

    def test_import_rows(self, build_service):
        result = asyncio.run(build_service().import_rows([
            {"date": "2024-02-01", "vendor": "AWS", "amount": "31.20", "description": ""},
            {"date": "2024-02-01", "vendor": None, "amount": "1.00", "description": ""},
        ]))
        assert (result.imported, result.skipped_incomplete) == (1, 1)


class TestConnections:
    """Tests for runtime connection management."""

    def test_connection_status(self, build_service):
        service = build_service(
            FakeClassifier(configured=False),
            FakeRecordSource(connected=True),
        )
        status = asyncio.run(service.connection_status())
        assert status.classifier_configured is False
        assert status.record_source_connected is True

    def test_no_record_source(self, build_service):
        status = asyncio.run(build_service().connection_status())
        assert status.record_source_connected is False

    def test_configure_classifier_from_settings(self, build_service):
        service = build_service()
        service.configure_classifier(GeminiSettings(api_key="runtime-key"))

        assert isinstance(service.classifier, GeminiExpenseClassifier)
        assert service.classifier.is_configured

    def test_configure_record_source(self, build_service):
        service = build_service()
        source = FakeRecordSource()
        service.configure_record_source(source)
        assert service.record_source is source


class TestCreateAppComponents:
    """Tests for the factory."""

    def test_builds_unconfigured_service(self, monkeypatch):
        for name in (
            "GEMINI_API_KEY",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_CLIENT_EMAIL",
            "GOOGLE_SHEETS_PRIVATE_KEY",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)

        checked = []
        monkeypatch.setattr(
            orchestrator,
            "validate_all_settings",
            lambda settings: checked.append(settings) or validate_all_settings(settings),
        )
        settings = Settings()

        service, audit_logger = create_app_components(settings)

        assert checked == [settings]
        assert isinstance(service, ExpenseService)
        assert isinstance(audit_logger, AuditLogger)
        status = asyncio.run(service.connection_status())
        assert status.classifier_configured is False
        assert status.record_source_connected is False

    def test_validate_all_settings(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings(Settings())

        assert results == {"gemini": True, "google_sheets": False, "app": True}
