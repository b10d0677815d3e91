"""Tests for entry records, status changes, attachments and summary counts."""

from __future__ import annotations

import datetime as dt

import pytest

from medtrack.errors import AuthenticationError, NotFoundError, ValidationError
from medtrack.modules.cases.models import Case
from medtrack.modules.entries.models import Entry, EntryStatus
from medtrack.modules.entries.service import filter_entries, summarize
from medtrack.security.rbac import Role, UserIdentity
from medtrack.services import Services


def entry_data(**overrides) -> dict:
    data = {"id": "e1", "type": "control", "title": "Control Urología", "dateTime": "2024-03-10T09:30:00"}
    data.update(overrides)
    return data


def make_entry(entry_id: str, entry_type: str, status: EntryStatus) -> Entry:
    return Entry(id=entry_id, type=entry_type, title=entry_id, date_time=dt.datetime(2024, 3, 1), status=status)


class TestFilterAndSummary:
    """Pure helpers over entry lists."""

    def test_filter_by_type(self) -> None:
        entries = [
            make_entry("a", "med", EntryStatus.DONE),
            make_entry("b", "exam", EntryStatus.PLANNED),
            make_entry("c", "med", EntryStatus.PLANNED),
        ]
        assert [e.id for e in filter_entries(entries, "med")] == ["a", "c"]
        assert len(filter_entries(entries, "all")) == 3
        assert len(filter_entries(entries, None)) == 3
        assert filter_entries(entries, "chemo") == []

    def test_summarize_counts_done_and_planned(self) -> None:
        entries = [
            make_entry("a", "med", EntryStatus.DONE),
            make_entry("b", "med", EntryStatus.PLANNED),
            make_entry("c", "med", EntryStatus.PLANNED),
            make_entry("d", "exam", EntryStatus.CANCELLED),
        ]
        summary = summarize(entries, ["control", "chemo", "exam", "med"])
        assert summary["med"] == {"done": 1, "planned": 2}
        assert summary["exam"] == {"done": 0, "planned": 0}
        assert summary["control"] == {"done": 0, "planned": 0}

    def test_summarize_includes_unlisted_types(self) -> None:
        summary = summarize([make_entry("a", "kine", EntryStatus.DONE)])
        assert summary == {"kine": {"done": 1, "planned": 0}}


class TestEntryService:
    """Tests for EntryService on the per-device case."""

    @pytest.mark.asyncio
    async def test_create_entry(self, services: Services) -> None:
        entry = await services.entries.save_entry("local", entry_data())

        assert entry.status == EntryStatus.PLANNED
        assert entry.created_by_uid is None
        stored = await services.entries.get_entry("local", "e1")
        assert stored.title == "Control Urología"

    @pytest.mark.asyncio
    async def test_update_keeps_creation_and_attachments(self, services: Services) -> None:
        created = await services.entries.save_entry("local", entry_data())
        await services.entries.add_attachment("local", "e1", "informe.pdf", b"%PDF", "application/pdf")

        updated = await services.entries.save_entry("local", entry_data(title="Control Urología 2"))

        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at
        assert [a.name for a in updated.attachments] == ["informe.pdf"]
        assert len(await services.entries.list_entries("local")) == 1

    @pytest.mark.asyncio
    async def test_invalid_entry_rejected(self, services: Services) -> None:
        with pytest.raises(ValidationError):
            await services.entries.save_entry("local", entry_data(title=""))

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, services: Services) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await services.entries.save_entry("local", entry_data(type="yoga"))
        assert exc_info.value.field == "type"

    @pytest.mark.asyncio
    async def test_list_filters_by_type(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data(id="a", type="med", dateTime="2024-03-01T08:00:00"))
        await services.entries.save_entry("local", entry_data(id="b", type="exam", dateTime="2024-03-05T08:00:00"))
        await services.entries.save_entry("local", entry_data(id="c", type="med", dateTime="2024-03-09T08:00:00"))

        assert [e.id for e in await services.entries.list_entries("local")] == ["c", "b", "a"]
        assert [e.id for e in await services.entries.list_entries("local", entry_type="med")] == ["c", "a"]

    @pytest.mark.asyncio
    async def test_toggle_done(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data())

        done = await services.entries.toggle_done("local", "e1")
        assert done.status == EntryStatus.DONE
        planned = await services.entries.toggle_done("local", "e1")
        assert planned.status == EntryStatus.PLANNED

    @pytest.mark.asyncio
    async def test_toggle_cancelled_becomes_done(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data(status="cancelled"))
        assert (await services.entries.toggle_done("local", "e1")).status == EntryStatus.DONE

    @pytest.mark.asyncio
    async def test_delete(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data())
        await services.entries.delete_entry("local", "e1")

        with pytest.raises(NotFoundError):
            await services.entries.get_entry("local", "e1")
        with pytest.raises(NotFoundError):
            await services.entries.delete_entry("local", "e1")

    @pytest.mark.asyncio
    async def test_add_attachment(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data())
        entry = await services.entries.add_attachment("local", "e1", "scan.png", b"png", "image/png")

        attachment = entry.attachments[0]
        assert attachment.mime == "image/png"
        assert services.attachments.resolve(attachment.path).read_bytes() == b"png"

    @pytest.mark.asyncio
    async def test_attachment_needs_entry(self, services: Services) -> None:
        with pytest.raises(NotFoundError):
            await services.entries.add_attachment("local", "missing", "scan.png", b"png")

    @pytest.mark.asyncio
    async def test_summary(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data(id="a", type="med", status="done"))
        await services.entries.save_entry("local", entry_data(id="b", type="med"))
        await services.entries.save_entry("local", entry_data(id="c", type="exam", status="cancelled"))

        summary = await services.entries.summary("local")
        assert summary["med"] == {"done": 1, "planned": 1}
        assert summary["exam"] == {"done": 0, "planned": 0}
        assert set(summary) == {"control", "chemo", "exam", "med"}

    @pytest.mark.asyncio
    async def test_export_with_linked_professional(self, services: Services) -> None:
        await services.professionals.save_professional(
            "local", {"id": "p1", "name": "Dr. Pérez", "specialty": "Oncología", "center": "Clínica X"},
        )
        await services.entries.save_entry("local", entry_data(professionalId="p1"))

        result = await services.entries.export_ics("local", "e1")
        lines = result.payload.split("\r\n")
        assert "LOCATION:Clínica X" in lines
        assert "DESCRIPTION:Profesional: Dr. Pérez (Oncología)" in lines
        assert result.attachment_filename == "control-urologia.ics"

    @pytest.mark.asyncio
    async def test_export_with_dangling_professional(self, services: Services) -> None:
        await services.entries.save_entry("local", entry_data(professionalId="gone"))

        result = await services.entries.export_ics("local", "e1")
        assert "Profesional" not in result.payload


class TestSharedCaseEntries:
    """Entries in a case shared among family members."""

    @pytest.mark.asyncio
    async def test_editor_records_authorship(
        self, services: Services, alice: UserIdentity, bob: UserIdentity,
    ) -> None:
        case = await services.cases.create_case("Papá", alice)
        await services.cases.add_member(case.id, "bob", Role.EDITOR, alice)

        await services.entries.save_entry(case.id, entry_data(), alice)
        updated = await services.entries.save_entry(case.id, entry_data(notes="Traer exámenes"), bob)

        assert updated.created_by_uid == "alice"
        assert updated.created_by_email == "alice@example.com"
        assert updated.updated_by_uid == "bob"

    @pytest.mark.asyncio
    async def test_viewer_cannot_write(
        self, services: Services, alice: UserIdentity, bob: UserIdentity,
    ) -> None:
        case = await services.cases.create_case("Papá", alice)
        await services.cases.add_member(case.id, "bob", Role.VIEWER, alice)
        await services.entries.save_entry(case.id, entry_data(), alice)

        assert len(await services.entries.list_entries(case.id, bob)) == 1
        with pytest.raises(PermissionError):
            await services.entries.toggle_done(case.id, "e1", bob)

    @pytest.mark.asyncio
    async def test_anonymous_access_rejected(self, services: Services, alice: UserIdentity) -> None:
        case = await services.cases.create_case("Papá", alice)
        with pytest.raises(AuthenticationError):
            await services.entries.list_entries(case.id, None)

    @pytest.mark.asyncio
    async def test_custom_type(self, services: Services, alice: UserIdentity) -> None:
        case = await services.cases.create_case("Papá", alice)
        with pytest.raises(ValidationError):
            await services.entries.save_entry(case.id, entry_data(type="kine"), alice)

        await services.cases.add_type(case.id, "kine", alice)
        entry = await services.entries.save_entry(case.id, entry_data(type="kine"), alice)
        assert entry.type == "kine"
        assert (await services.entries.summary(case.id, alice))["kine"] == {"done": 0, "planned": 1}

    @pytest.mark.asyncio
    async def test_builtin_types_accepted_when_case_lists_only_custom(
        self, services: Services, local_store, alice: UserIdentity
    ) -> None:
        case = await local_store.put_case(Case(name="Papá", owner_uid=alice.user_id, types=["kine"]))

        entry = await services.entries.save_entry(case.id, entry_data(type="med"), alice)
        assert entry.type == "med"
        await services.entries.save_entry(case.id, entry_data(id="e2", type="kine"), alice)
        with pytest.raises(ValidationError):
            await services.entries.save_entry(case.id, entry_data(id="e3", type="yoga"), alice)

    @pytest.mark.asyncio
    async def test_entries_isolated_per_case(self, services: Services, alice: UserIdentity) -> None:
        case = await services.cases.create_case("Papá", alice)
        await services.entries.save_entry(case.id, entry_data(), alice)

        assert await services.entries.list_entries("local") == []
