"""Unit tests for end-to-end report execution."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import pytest
from sqlalchemy.exc import OperationalError

from reportflow.delivery.mailer import OutgoingEmail
from reportflow.delivery.notifier import DeliveryNotifier
from reportflow.execution import (
    ExecutionConfig,
    ExecutionDependencies,
    ReportExecutionService,
)
from reportflow.execution.classification import ErrorCategory
from reportflow.execution.errors import (
    ScheduleAlreadyRunningError,
    ScheduleInactiveError,
    ScheduleNotFoundError,
    TenantMismatchError,
)
from reportflow.execution.preview import PreviewFailedError
from reportflow.schedules.errors import InvalidScheduleError
from reportflow.shopify.errors import ShopifyAPIError
from reportflow.shopify.retry import RetryPolicy
from reportflow.storage import ExecutionStatus, ExecutionTrigger
from tests.helpers.builders import (
    FakeClientFactory,
    RecordingMailer,
    ScriptedExecutor,
    connection,
    make_draft,
    order_node,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from reportflow.schedules.service import ScheduleService
    from reportflow.storage import ScheduleRepository

TENANT = "acme.myshopify.com"
RUN_AT = dt.datetime(2024, 7, 14, 9, 0, 5, tzinfo=dt.UTC)
NEXT_SLOT = dt.datetime(2024, 7, 15, 9, 0, tzinfo=dt.UTC)
RECIPIENTS = ("a@example.com", "b@example.com", "c@example.com")


async def _no_sleep(_delay: float) -> None:
    return None


def _service(
    repository: ScheduleRepository,
    executor: ScriptedExecutor,
    mailer: object,
    artifact_dir: Path,
    **config: typ.Any,
) -> ReportExecutionService:
    return ReportExecutionService(
        ExecutionDependencies(
            repository=repository,
            clients=FakeClientFactory(executor),
            notifier=DeliveryNotifier(mailer),  # type: ignore[arg-type]
        ),
        ExecutionConfig(
            artifact_dir=artifact_dir,
            retry_policy=RetryPolicy(max_retries=1),
            **config,
        ),
        clock=lambda: RUN_AT,
        sleep=_no_sleep,
    )


def _orders_page(**kwargs: typ.Any) -> dict[str, typ.Any]:
    return connection(
        "orders",
        [
            order_node("2024-07-13T10:00:00Z", "100.00"),
            order_node("2024-07-13T12:00:00Z", "50.50"),
        ],
        **kwargs,
    )


class TestSuccessfulExecution:
    """Tests for runs that reach ``SUCCESS``."""

    @pytest.mark.asyncio
    async def test_records_success_and_cleans_up(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """A good run is ledgered, emailed, rescheduled and leaves no file."""
        schedule = await schedule_service.create(
            TENANT, make_draft(recipients=RECIPIENTS)
        )
        mailer = RecordingMailer(fail_for={"b@example.com"})
        executor = ScriptedExecutor([_orders_page()])
        service = _service(repository, executor, mailer, tmp_path / "out")

        outcome = await service.execute(schedule.id, tenant=TENANT)

        assert outcome.succeeded
        assert outcome.record_count == 1
        assert (outcome.emails_sent, outcome.emails_failed) == (2, 1)
        assert outcome.emails_sent + outcome.emails_failed == len(RECIPIENTS)
        assert outcome.next_run_at == NEXT_SLOT
        assert list((tmp_path / "out").iterdir()) == []

        [entry] = await repository.list_executions(schedule.id)
        assert entry.id == outcome.execution_id
        assert entry.status is ExecutionStatus.SUCCESS
        assert entry.trigger is ExecutionTrigger.SCHEDULED
        assert entry.file_size is not None
        assert entry.file_size > 0

        reloaded = await repository.get_schedule(schedule.id)
        assert reloaded is not None
        assert reloaded.last_run_at == RUN_AT
        assert reloaded.next_run_at == NEXT_SLOT

        attachment = mailer.sent[0].attachments[0]
        assert attachment.filename == "daily_sales_20240714-090005.csv"

    @pytest.mark.asyncio
    async def test_page_ceiling_marks_run_truncated(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """Hitting the page ceiling still succeeds but flags truncation."""
        schedule = await schedule_service.create(TENANT, make_draft())
        executor = ScriptedExecutor([_orders_page(has_next=True, cursor="c1")])
        mailer = RecordingMailer()
        service = _service(repository, executor, mailer, tmp_path, max_pages=1)

        outcome = await service.execute(schedule.id)

        assert outcome.succeeded
        assert outcome.truncated is True
        assert "configured limit" in mailer.sent[0].text

    @pytest.mark.asyncio
    async def test_broken_mail_transport_counts_all_failed(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """An unexpected transport crash fails every recipient, not the run."""

        class _CrashingMailer:
            async def send(self, email: OutgoingEmail) -> None:
                msg = f"transport exploded for {email.to}"
                raise RuntimeError(msg)

        schedule = await schedule_service.create(
            TENANT, make_draft(recipients=RECIPIENTS)
        )
        service = _service(
            repository,
            ScriptedExecutor([_orders_page()]),
            _CrashingMailer(),
            tmp_path,
        )

        outcome = await service.execute(schedule.id)

        assert outcome.status is ExecutionStatus.SUCCESS
        assert (outcome.emails_sent, outcome.emails_failed) == (0, len(RECIPIENTS))

    @pytest.mark.asyncio
    async def test_one_crashing_send_keeps_partial_counts(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """A crash for the second recipient is ledgered as one failure."""

        class _FlakyMailer(RecordingMailer):
            async def send(self, email: OutgoingEmail) -> None:
                if email.to == "b@example.com":
                    msg = "connection reset mid-send"
                    raise RuntimeError(msg)
                await super().send(email)

        schedule = await schedule_service.create(
            TENANT, make_draft(recipients=RECIPIENTS)
        )
        mailer = _FlakyMailer()
        service = _service(
            repository, ScriptedExecutor([_orders_page()]), mailer, tmp_path
        )

        outcome = await service.execute(schedule.id)

        assert (outcome.emails_sent, outcome.emails_failed) == (2, 1)
        assert [email.to for email in mailer.sent] == [
            "a@example.com",
            "c@example.com",
        ]
        [entry] = await repository.list_executions(schedule.id)
        assert (entry.emails_sent, entry.emails_failed) == (2, 1)

    @pytest.mark.asyncio
    async def test_artifact_path_is_tracked_while_running(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """The ledger holds the file path during delivery and clears it after."""
        schedule = await schedule_service.create(TENANT, make_draft())
        seen: list[str | None] = []

        class _InspectingMailer(RecordingMailer):
            async def send(self, email: OutgoingEmail) -> None:
                entry = await repository.latest_execution(schedule.id)
                assert entry is not None
                seen.append(entry.file_path)
                await super().send(email)

        mailer = _InspectingMailer()
        service = _service(
            repository, ScriptedExecutor([_orders_page()]), mailer, tmp_path
        )

        await service.execute(schedule.id)

        attachment = mailer.sent[0].attachments[0]
        assert seen == [str(attachment.path)]
        entry = await repository.latest_execution(schedule.id)
        assert entry is not None
        assert entry.file_path is None


class TestFailedExecution:
    """Tests for runs that end ``FAILED``."""

    @pytest.mark.asyncio
    async def test_fetch_failure_is_ledgered_and_rescheduled(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """One FAILED entry, next run advanced, notice sent, no file left."""
        schedule = await schedule_service.create(TENANT, make_draft())
        mailer = RecordingMailer()
        executor = ScriptedExecutor([ShopifyAPIError.http_error(401)])
        service = _service(repository, executor, mailer, tmp_path / "out")

        outcome = await service.execute(schedule.id)

        assert outcome.status is ExecutionStatus.FAILED
        assert outcome.error_category is ErrorCategory.AUTHENTICATION
        assert outcome.next_run_at == NEXT_SLOT

        [entry] = await repository.list_executions(schedule.id)
        assert entry.status is ExecutionStatus.FAILED
        assert entry.error_category == "authentication"
        assert entry.error_message == "Shopify GraphQL HTTP 401"

        reloaded = await repository.get_schedule(schedule.id)
        assert reloaded is not None
        assert reloaded.next_run_at == NEXT_SLOT

        out_dir = tmp_path / "out"
        assert not out_dir.exists() or list(out_dir.iterdir()) == []

        [notice] = mailer.sent
        assert notice.subject == "Report Failed: Daily Sales"
        assert notice.attachments == ()
        assert "Shopify Authentication Error" in notice.text

    @pytest.mark.asyncio
    async def test_throttling_exhausts_retries(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """Persistent throttling fails the run as rate limited."""
        schedule = await schedule_service.create(TENANT, make_draft())
        throttled = [ShopifyAPIError("Throttled", codes=["THROTTLED"])] * 2
        executor = ScriptedExecutor(throttled)
        service = _service(repository, executor, RecordingMailer(), tmp_path)

        outcome = await service.execute(schedule.id)

        assert outcome.error_category is ErrorCategory.RATE_LIMITED
        assert len(executor.calls) == 2

    @pytest.mark.asyncio
    async def test_unsupported_report_fails_without_api_call(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """Traffic reports fail as unsupported."""
        schedule = await schedule_service.create(
            TENANT, make_draft(report_type="TRAFFIC")
        )
        executor = ScriptedExecutor([])
        service = _service(repository, executor, RecordingMailer(), tmp_path)

        outcome = await service.execute(schedule.id)

        assert outcome.error_category is ErrorCategory.UNSUPPORTED_REPORT
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_failed_notice_does_not_mask_failure(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """Undeliverable failure notices leave the original error in place."""
        schedule = await schedule_service.create(TENANT, make_draft())
        mailer = RecordingMailer(fail_for={"ops@example.com"})
        executor = ScriptedExecutor([ShopifyAPIError.http_error(500)] * 2)
        service = _service(repository, executor, mailer, tmp_path)

        outcome = await service.execute(schedule.id)

        assert outcome.error_category is ErrorCategory.API_ERROR
        [entry] = await repository.list_executions(schedule.id)
        assert entry.error_category == "api_error"


    @pytest.mark.asyncio
    async def test_ledger_write_failure_after_delivery_is_recorded(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """A failed SUCCESS write leaves a FAILED entry rather than RUNNING."""
        schedule = await schedule_service.create(TENANT, make_draft())

        async def _broken_complete(*_args: object, **_kwargs: object) -> None:
            msg = "database is locked"
            raise OperationalError("UPDATE execution_records", {}, Exception(msg))

        mailer = RecordingMailer()
        service = _service(
            repository, ScriptedExecutor([_orders_page()]), mailer, tmp_path
        )
        with pytest.MonkeyPatch.context() as patch:
            patch.setattr(repository, "complete_execution", _broken_complete)
            outcome = await service.execute(schedule.id)

        assert outcome.status is ExecutionStatus.FAILED
        assert outcome.error_category is ErrorCategory.DATABASE
        assert outcome.next_run_at == NEXT_SLOT
        [entry] = await repository.list_executions(schedule.id)
        assert entry.status is ExecutionStatus.FAILED
        assert entry.file_path is None
        [report] = mailer.sent
        assert report.subject.startswith("Daily Sales - ")


class TestConfigurationErrors:
    """Errors raised before any ledger entry is written."""

    @pytest.mark.asyncio
    async def test_missing_schedule(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """Unknown schedules raise without side effects."""
        service = _service(
            repository, ScriptedExecutor([]), RecordingMailer(), tmp_path
        )
        with pytest.raises(ScheduleNotFoundError):
            await service.execute("missing")

    @pytest.mark.asyncio
    async def test_inactive_and_foreign_schedules(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """Inactive or foreign schedules raise and leave no ledger entry."""
        paused = await schedule_service.create(TENANT, make_draft(is_active=False))
        active = await schedule_service.create(TENANT, make_draft())
        service = _service(
            repository, ScriptedExecutor([]), RecordingMailer(), tmp_path
        )

        with pytest.raises(ScheduleInactiveError):
            await service.execute(paused.id)
        with pytest.raises(TenantMismatchError):
            await service.execute(active.id, tenant="other.myshopify.com")

        assert await repository.list_executions(paused.id) == []
        assert await repository.list_executions(active.id) == []

    @pytest.mark.asyncio
    async def test_concurrent_run_is_rejected(
        self,
        tmp_path: Path,
        schedule_service: ScheduleService,
        repository: ScheduleRepository,
    ) -> None:
        """A schedule cannot start again while it is executing."""
        schedule = await schedule_service.create(TENANT, make_draft())
        entered = asyncio.Event()
        release = asyncio.Event()

        class _GatedExecutor(ScriptedExecutor):
            async def execute(
                self, query: str, variables: typ.Any  # noqa: ANN401
            ) -> dict[str, typ.Any]:
                entered.set()
                await release.wait()
                return await super().execute(query, variables)

        service = _service(
            repository,
            _GatedExecutor([_orders_page()]),
            RecordingMailer(),
            tmp_path,
        )
        first = asyncio.create_task(service.execute(schedule.id))
        await entered.wait()

        assert service.is_running(schedule.id)
        with pytest.raises(ScheduleAlreadyRunningError):
            await service.execute(schedule.id)

        release.set()
        outcome = await first
        assert outcome.succeeded
        assert not service.is_running(schedule.id)
        assert len(await repository.list_executions(schedule.id)) == 1


class TestReportPreview:
    """Tests for previews of unsaved report configurations."""

    @pytest.mark.asyncio
    async def test_preview_returns_leading_rows_only(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """Rows are cut to the limit; no file is written and no email sent."""
        executor = ScriptedExecutor(
            [
                connection(
                    "orders",
                    [
                        order_node(f"2024-07-{day}T10:00:00Z", "10.00")
                        for day in (11, 12, 13)
                    ],
                )
            ]
        )
        mailer = RecordingMailer()
        service = _service(repository, executor, mailer, tmp_path / "out")

        preview = await service.preview(
            TENANT,
            "SALES",
            {"dateRange": "LAST_7_DAYS"},
            fields=["date", "orderCount"],
            limit=2,
        )

        assert [spec.key for spec in preview.columns] == ["date", "orderCount"]
        assert preview.rows == [
            {"date": "2024-07-11", "orderCount": 1},
            {"date": "2024-07-12", "orderCount": 1},
        ]
        assert (preview.total_records, preview.preview_records) == (3, 2)
        assert preview.truncated is False
        assert len(executor.calls) == 1
        assert mailer.sent == []
        assert not (tmp_path / "out").exists()

    @pytest.mark.asyncio
    async def test_preview_defaults_to_every_column(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """An empty field selection previews the report's default columns."""
        service = _service(
            repository, ScriptedExecutor([_orders_page()]), RecordingMailer(), tmp_path
        )

        preview = await service.preview(TENANT, "SALES")

        assert preview.columns[0].key == "date"
        assert len(preview.columns) == len(preview.rows[0])

    @pytest.mark.parametrize(
        ("report_type", "filters", "fields", "match"),
        [
            pytest.param("WEATHER", {}, [], "Unknown report type", id="type"),
            pytest.param("SALES", {}, ["colour"], "Unknown fields", id="fields"),
            pytest.param(
                "SALES", {"dateRange": "CUSTOM"}, [], "dateRange", id="range"
            ),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_configuration_is_rejected_before_fetching(  # noqa: PLR0913
        self,
        tmp_path: Path,
        repository: ScheduleRepository,
        report_type: str,
        filters: dict[str, typ.Any],
        fields: list[str],
        match: str,
    ) -> None:
        """Validation matches schedule creation and no API call is made."""
        executor = ScriptedExecutor([])
        service = _service(repository, executor, RecordingMailer(), tmp_path)

        with pytest.raises(InvalidScheduleError, match=match):
            await service.preview(TENANT, report_type, filters, fields=fields)

        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_fetch_failure_is_classified(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """API failures surface as ``PreviewFailedError`` with an analysis."""
        executor = ScriptedExecutor([ShopifyAPIError.http_error(500)] * 2)
        service = _service(repository, executor, RecordingMailer(), tmp_path)

        with pytest.raises(PreviewFailedError) as excinfo:
            await service.preview(TENANT, "SALES")

        assert excinfo.value.analysis.category is ErrorCategory.API_ERROR
        assert excinfo.value.analysis.hints
        assert len(executor.calls) == 2

    @pytest.mark.asyncio
    async def test_unsupported_report_is_classified(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """Traffic previews fail as unsupported without calling the API."""
        executor = ScriptedExecutor([])
        service = _service(repository, executor, RecordingMailer(), tmp_path)

        with pytest.raises(PreviewFailedError) as excinfo:
            await service.preview(TENANT, "TRAFFIC")

        assert excinfo.value.analysis.category is ErrorCategory.UNSUPPORTED_REPORT
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_limit_must_be_positive(
        self, tmp_path: Path, repository: ScheduleRepository
    ) -> None:
        """A zero limit is a caller error."""
        service = _service(
            repository, ScriptedExecutor([]), RecordingMailer(), tmp_path
        )

        with pytest.raises(ValueError, match="limit"):
            await service.preview(TENANT, "SALES", limit=0)
