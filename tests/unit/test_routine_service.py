"""Unit tests for routine creation and the agenda."""

from datetime import UTC, date, datetime, time

import pytest

from src.core.config import ShortMonthPolicy
from src.core.errors import RepositoryError, ScheduleConflictError, ValidationError
from src.domain.recurrence import DailyRecurrence, OneOffRecurrence, WeeklyRecurrence
from src.domain.routine import RoutineKind
from src.services import execution_service, routine_repository, routine_service
from src.services.routine_service import RoutineCreationStatus


@pytest.mark.unit
class TestCreateRoutine:
    """Tests for create_routine."""

    async def test_creates_daily_routine(self, patched_db, make_routine_payload):
        result = await routine_service.create_routine(make_routine_payload())

        assert result.status == RoutineCreationStatus.CREATED
        assert result.routine.recurrence == DailyRecurrence()
        assert result.routine.start_time == time(8, 0)
        assert result.checklist_items == []

    async def test_overlapping_daily_routine_is_blocked(self, patched_db, make_routine_payload):
        await routine_service.create_routine(make_routine_payload(title="Routine A"))

        with pytest.raises(ScheduleConflictError, match="U1"):
            await routine_service.create_routine(make_routine_payload(title="Routine B", start_time=time(8, 30)))

        routines = await routine_repository.list_routines(responsible_id="U1")
        assert [routine.title for routine in routines] == ["Routine A"]

    async def test_adjacent_daily_routine_is_admitted(self, patched_db, make_routine_payload):
        await routine_service.create_routine(make_routine_payload(title="Routine A"))

        result = await routine_service.create_routine(make_routine_payload(title="Routine B", start_time=time(9, 0)))

        assert result.status == RoutineCreationStatus.CREATED

    async def test_weekly_routine_is_not_conflict_checked(self, patched_db, make_routine_payload):
        await routine_service.create_routine(make_routine_payload(title="Routine A"))

        result = await routine_service.create_routine(
            make_routine_payload(title="Weekly", periodicity="semanal", weekday="4", start_time=time(8, 30)),
        )

        assert result.routine.recurrence == WeeklyRecurrence(weekday=2)

    async def test_ad_hoc_is_one_off(self, patched_db, make_routine_payload):
        result = await routine_service.create_routine(
            make_routine_payload(kind=RoutineKind.AD_HOC, periodicity="diaria", start_date=date(2024, 5, 2)),
        )

        assert result.routine.recurrence == OneOffRecurrence(due_date=date(2024, 5, 2))

    async def test_missing_start_date_defaults_to_today(self, patched_db, make_routine_payload):
        result = await routine_service.create_routine(
            make_routine_payload(start_date=None),
            today=date(2024, 2, 10),
        )

        assert result.routine.start_date == date(2024, 2, 10)

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"title": "   "}, "Title"),
            ({"duration_minutes": 0}, "Duration"),
            ({"kind": RoutineKind.AD_HOC, "start_date": None}, "date"),
            ({"periodicity": "avulsa", "start_date": None}, "date"),
            ({"periodicity": "semanal", "weekday": None}, "weekday"),
            ({"periodicity": "quinzenal"}, "periodicity"),
            ({"checklist_enabled": True, "checklist_items": ["ok", "  "]}, "blank"),
        ],
    )
    async def test_validation_errors(self, patched_db, make_routine_payload, overrides, message):
        with pytest.raises(ValidationError, match=message):
            await routine_service.create_routine(make_routine_payload(**overrides))

        assert await patched_db.list_records("routines") == []

    async def test_checklist_template_is_numbered(self, patched_db, make_routine_payload):
        result = await routine_service.create_routine(
            make_routine_payload(checklist_enabled=True, checklist_items=[" Check temperature ", "Log reading"]),
        )

        assert result.status == RoutineCreationStatus.CREATED
        assert [(item.order, item.text) for item in result.checklist_items] == [
            (1, "Check temperature"),
            (2, "Log reading"),
        ]

    async def test_checklist_ignored_when_disabled(self, patched_db, make_routine_payload):
        result = await routine_service.create_routine(make_routine_payload(checklist_items=["Step"]))

        assert result.checklist_items == []
        assert await patched_db.list_records("checklist_items") == []

    async def test_checklist_failure_keeps_routine(self, patched_db, make_routine_payload):
        patched_db.failing_collections.add("checklist_items")

        result = await routine_service.create_routine(
            make_routine_payload(checklist_enabled=True, checklist_items=["Check temperature"]),
        )

        assert result.status == RoutineCreationStatus.CREATED_WITHOUT_CHECKLIST
        assert result.checklist_error
        assert result.checklist_items == []
        assert len(await patched_db.list_records("routines")) == 1

    async def test_routine_insert_failure_is_repository_error(self, patched_db, make_routine_payload):
        patched_db.failing_collections.add("routines")

        with pytest.raises(RepositoryError):
            await routine_service.create_routine(make_routine_payload())


@pytest.mark.unit
class TestBuildChecklistTemplate:
    """Tests for build_checklist_template."""

    def test_strips_and_keeps_order(self):
        assert routine_service.build_checklist_template(["  b ", "a"]) == ["b", "a"]

    def test_blank_rejected(self):
        with pytest.raises(ValidationError, match="item 2"):
            routine_service.build_checklist_template(["a", ""])


@pytest.mark.unit
class TestAgenda:
    """Tests for get_agenda."""

    async def test_due_routines_sorted_by_start_time(self, routine_factory):
        await routine_factory(title="Late", start_time="15:00:00")
        await routine_factory(title="Early", start_time="07:30:00")
        await routine_factory(title="Anytime", start_time=None)
        await routine_factory(title="Wednesdays", recurrence="semanal", weekday=2, start_date="2024-01-03")

        agenda = await routine_service.get_agenda(date(2024, 1, 11), responsible_id="U1")

        assert [entry.routine.title for entry in agenda.timed] == ["Early", "Late"]
        assert [entry.routine.title for entry in agenda.untimed] == ["Anytime"]
        assert agenda.timed[0].schedule == "daily at 7:30 AM (60 min)"

    async def test_weekly_included_on_its_day(self, routine_factory):
        await routine_factory(title="Wednesdays", recurrence="semanal", weekday=2, start_date="2024-01-03")

        agenda = await routine_service.get_agenda(date(2024, 1, 10))

        assert [entry.routine.title for entry in agenda.timed] == ["Wednesdays"]

    async def test_monthly_short_month_policy(self, routine_factory):
        await routine_factory(title="Month end", recurrence="mensal", start_date="2024-01-31")

        clamped = await routine_service.get_agenda(date(2024, 2, 29))
        skipped = await routine_service.get_agenda(date(2024, 2, 29), short_month_policy=ShortMonthPolicy.SKIP)

        assert len(clamped.timed) == 1
        assert skipped.timed == []

    async def test_entry_carries_execution_started_that_day(self, routine_factory):
        routine = await routine_factory(title="Open store")
        execution = await execution_service.resolve_or_create(
            routine_id=routine["id"],
            executor_id="U1",
            now=datetime(2024, 1, 11, 8, 5, tzinfo=UTC),
        )

        today = await routine_service.get_agenda(date(2024, 1, 11))
        tomorrow = await routine_service.get_agenda(date(2024, 1, 12))

        assert today.timed[0].latest_execution.id == execution.id
        assert tomorrow.timed[0].latest_execution is None


@pytest.mark.unit
class TestLegacyImport:
    """Tests for importing rows with the legacy column names."""

    async def test_import_legacy_rows(self, patched_db):
        rows = [
            {
                "titulo": "Conferir caixa",
                "tipo": "normal",
                "periodicidade": "Semanal",
                "data_inicio": "2024-01-03",
                "dia_semana": "4",
                "horario_inicio": "10:00:00",
                "duracao_minutos": 30,
                "urgencia": "alta",
                "tem_checklist": 1,
                "criador_id": "admin",
                "responsavel_id": "U9",
                "coluna_desconhecida": "ignored",
            },
            {
                "titulo": "Inventario",
                "tipo": "avulsa",
                "periodicidade": "diaria",
                "data_inicio": "2024-06-01",
                "duracao_minutos": 120,
                "criador_id": "admin",
                "responsavel_id": "U9",
            },
        ]

        imported = await routine_service.import_legacy_routines(rows)

        assert imported[0].recurrence == WeeklyRecurrence(weekday=2)
        assert imported[0].checklist_enabled is True
        assert imported[0].priority == "alta"
        assert imported[1].recurrence == OneOffRecurrence(due_date=date(2024, 6, 1))

    def test_weekly_without_weekday_rejected(self):
        with pytest.raises(ValidationError):
            routine_repository.normalize_legacy_routine_row(
                {"titulo": "x", "periodicidade": "semanal", "data_inicio": "2024-01-01"},
            )
