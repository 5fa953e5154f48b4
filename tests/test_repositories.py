# tests/test_repositories.py
import asyncio

import pytest

from clinic import schemas
from clinic.schemas import AppointmentStatus, Failure


# ==================== PATIENTS ====================

@pytest.mark.asyncio
async def test_create_patient_assigns_id_and_registration(repos, patient_data):
    result = await repos.patients.create(patient_data)

    assert result.ok
    patient = result.value
    assert patient.id
    assert patient.registered_date is not None
    assert patient.gender == schemas.Gender.female

    listed = await repos.patients.list()
    assert len(listed) == 1
    stored = listed[0].model_dump(exclude={"id", "registered_date"})
    assert stored == patient.model_dump(exclude={"id", "registered_date"})
    assert stored["name"] == "Asha Rao"
    assert stored["age"] == 34

@pytest.mark.asyncio
async def test_list_patients_sorted_by_name(repos, patient_data):
    for name in ["Meera Joshi", "Anil Shah", "Kavita Patil"]:
        assert await repos.patients.create({**patient_data, "name": name})

    names = [p.name for p in await repos.patients.list()]
    assert names == ["Anil Shah", "Kavita Patil", "Meera Joshi"]

@pytest.mark.asyncio
async def test_search_patients_by_name_or_mobile(repos, patient_data):
    await repos.patients.create(patient_data)
    await repos.patients.create({**patient_data, "name": "Vikram Desai", "mobile": "9812345678"})

    assert [p.name for p in await repos.patients.list(search="asha")] == ["Asha Rao"]
    assert [p.name for p in await repos.patients.list(search="98123")] == ["Vikram Desai"]
    assert await repos.patients.list(search="nobody") == []

@pytest.mark.asyncio
async def test_create_patient_rejects_invalid_payload(repos, patient_data):
    missing_gender = {k: v for k, v in patient_data.items() if k != "gender"}

    result = await repos.patients.create(missing_gender)
    assert not result
    assert result.failure == Failure.invalid
    assert "gender" in result.detail

    unknown_key = await repos.patients.create({**patient_data, "isAdmin": True})
    assert unknown_key.failure == Failure.invalid
    assert await repos.patients.count() == 0

@pytest.mark.asyncio
async def test_patient_age_is_coerced(repos, patient_data):
    result = await repos.patients.create({**patient_data, "age": "not a number"})
    assert result.value.age == 0

@pytest.mark.asyncio
async def test_update_patient_touches_only_named_fields(repos, patient):
    result = await repos.patients.update(patient.id, {"mobile": "9111111111", "allergies": "Dust"})

    assert result.ok
    updated = await repos.patients.get(patient.id)
    assert updated.mobile == "9111111111"
    assert updated.allergies == "Dust"
    assert updated.name == patient.name
    assert updated.age == patient.age
    assert updated.address == patient.address

@pytest.mark.asyncio
async def test_update_patient_cannot_clear_required_fields(repos, patient):
    for field in ["gender", "name", "mobile"]:
        result = await repos.patients.update(patient.id, {field: None})
        assert result.failure == Failure.invalid, field

    stored = await repos.patients.get(patient.id)
    assert stored.gender == schemas.Gender.female
    assert stored.name == "Asha Rao"

    cleared = await repos.patients.update(patient.id, {"allergies": None})
    assert cleared.ok

@pytest.mark.asyncio
async def test_update_unknown_patient_is_not_found(repos):
    result = await repos.patients.update("missing-id", {"name": "Ghost"})
    assert result.failure == Failure.not_found

@pytest.mark.asyncio
async def test_save_patient_replaces_in_place(repos, patient_data):
    first = await repos.patients.save({**patient_data, "id": "p-1"})
    assert first.ok
    second = await repos.patients.save({**patient_data, "id": "p-1", "name": "Asha R. Rao"})
    assert second.ok

    patients = await repos.patients.list()
    assert len(patients) == 1
    assert patients[0].id == "p-1"
    assert patients[0].name == "Asha R. Rao"

@pytest.mark.asyncio
async def test_delete_patient_removes_their_visits(repos, patient, patient_data):
    other = (await repos.patients.create({**patient_data, "name": "Other Patient"})).value
    for day in ["2024-01-10", "2024-02-10"]:
        assert await repos.visits.create({"patientId": patient.id, "date": day, "fees": 200})
    assert await repos.visits.create({"patientId": other.id, "date": "2024-01-15", "fees": 100})

    result = await repos.patients.delete(patient.id)

    assert result.ok
    assert await repos.patients.get(patient.id) is None
    assert await repos.visits.list(patient_id=patient.id) == []
    remaining = await repos.visits.list()
    assert [v.patient_id for v in remaining] == [other.id]

@pytest.mark.asyncio
async def test_delete_unknown_patient_is_not_found(repos):
    result = await repos.patients.delete("missing-id")
    assert result.failure == Failure.not_found


# ==================== VISITS ====================

@pytest.mark.asyncio
async def test_visits_for_patient_newest_first(repos, patient):
    for day in ["2024-01-10", "2024-03-05", "2024-02-20"]:
        assert await repos.visits.create({"patientId": patient.id, "date": day, "fees": 300})

    dates = [v.date for v in await repos.visits.list(patient_id=patient.id)]
    assert dates == ["2024-03-05", "2024-02-20", "2024-01-10"]

@pytest.mark.asyncio
async def test_visit_keeps_prescription_and_follow_up(repos, patient):
    result = await repos.visits.create({
        "patientId": patient.id,
        "date": "2024-01-10",
        "symptoms": "Headache",
        "diagnosis": "Migraine",
        "prescription": [
            {"medicineName": "Belladonna 30", "dosage": "1-0-1 (Morning-Night)", "duration": "5 days"},
        ],
        "fees": "350",
        "nextFollowUp": "2024-01-17",
    })

    assert result.ok
    visit = (await repos.visits.list(patient_id=patient.id))[0]
    assert visit.fees == 350
    assert visit.next_follow_up == "2024-01-17"
    assert visit.prescription[0].medicine_name == "Belladonna 30"
    assert visit.prescription[0].instruction == ""

@pytest.mark.asyncio
async def test_visit_for_unknown_patient_is_rejected(repos):
    result = await repos.visits.create({"patientId": "missing-id", "date": "2024-01-10"})
    assert result.failure == Failure.invalid
    assert await repos.visits.count() == 0

@pytest.mark.asyncio
async def test_adding_visit_leaves_other_visits_untouched(repos, patient):
    first = (await repos.visits.create({"patientId": patient.id, "date": "2024-01-10", "fees": 0})).value
    await repos.visits.create({"patientId": patient.id, "date": "2024-01-11", "fees": 500})

    visits = {v.id: v for v in await repos.visits.list()}
    assert visits[first.id] == first
    assert sorted(await repos.visits.list_fees()) == [0, 500]


# ==================== APPOINTMENTS ====================

@pytest.mark.asyncio
async def test_appointments_ordered_by_date_then_time(repos, appointment_data):
    for date, time in [("2024-03-02", "09:00"), ("2024-03-01", "16:00"), ("2024-03-01", "09:30")]:
        assert await repos.appointments.create({**appointment_data, "date": date, "time": time})

    slots = [(a.date, a.time) for a in await repos.appointments.list()]
    assert slots == [("2024-03-01", "09:30"), ("2024-03-01", "16:00"), ("2024-03-02", "09:00")]

@pytest.mark.asyncio
async def test_filter_appointments_by_date_and_status(repos, appointment_data):
    await repos.appointments.create(appointment_data)
    await repos.appointments.create({**appointment_data, "date": "2024-03-02"})
    await repos.appointments.create({**appointment_data, "status": "Confirmed"})

    assert len(await repos.appointments.list(date="2024-03-01")) == 2
    confirmed = await repos.appointments.list(status=AppointmentStatus.confirmed)
    assert [a.status for a in confirmed] == [AppointmentStatus.confirmed]

@pytest.mark.asyncio
async def test_update_status_changes_only_status(repos, appointment_data):
    created = (await repos.appointments.create({**appointment_data, "notes": "First visit"})).value

    result = await repos.appointments.update_status(created.id, AppointmentStatus.confirmed)

    assert result.ok
    after = await repos.appointments.get(created.id)
    assert after.status == AppointmentStatus.confirmed
    assert after.model_dump(exclude={"status"}) == created.model_dump(exclude={"status"})

@pytest.mark.asyncio
async def test_update_status_rejects_unknown_value(repos, appointment_data):
    created = (await repos.appointments.create(appointment_data)).value
    result = await repos.appointments.update_status(created.id, "Rescheduled")
    assert result.failure == Failure.invalid

@pytest.mark.asyncio
async def test_update_status_unknown_appointment_is_not_found(repos):
    result = await repos.appointments.update_status("missing-id", AppointmentStatus.cancelled)
    assert result.failure == Failure.not_found

@pytest.mark.asyncio
async def test_upsert_appointment_creates_then_updates(repos, appointment_data):
    created = await repos.appointments.upsert(appointment_data)
    assert created.ok

    updated = await repos.appointments.upsert({**appointment_data, "id": created.value.id, "time": "11:00"})
    assert updated.ok

    appointments = await repos.appointments.list()
    assert len(appointments) == 1
    assert appointments[0].time == "11:00"

@pytest.mark.asyncio
async def test_upsert_without_patient_link_clears_it(repos, appointment_data):
    created = (await repos.appointments.create({**appointment_data, "patientId": "p-1"})).value
    assert created.patient_id == "p-1"

    result = await repos.appointments.upsert({**appointment_data, "id": created.id})

    assert result.ok
    assert (await repos.appointments.get(created.id)).patient_id is None

@pytest.mark.asyncio
async def test_count_for_date_skips_cancelled(repos, appointment_data):
    await repos.appointments.create(appointment_data)
    await repos.appointments.create({**appointment_data, "status": "Cancelled"})
    await repos.appointments.create({**appointment_data, "date": "2024-03-02"})

    assert await repos.appointments.count_for_date("2024-03-01") == 1

@pytest.mark.asyncio
async def test_delete_appointment(repos, appointment_data):
    created = (await repos.appointments.create(appointment_data)).value

    assert (await repos.appointments.delete(created.id)).ok
    assert await repos.appointments.get(created.id) is None
    assert (await repos.appointments.delete(created.id)).failure == Failure.not_found


# ==================== INVENTORY ====================

@pytest.mark.asyncio
async def test_inventory_defaults_and_low_stock(repos):
    result = await repos.inventory.create({"name": "Arnica", "potency": "30", "type": "Dilution", "quantity": 3})

    item = result.value
    assert item.min_level == 5
    assert item.low_stock is True
    assert item.model_dump(by_alias=True)["lowStock"] is True

@pytest.mark.asyncio
async def test_inventory_filters(repos):
    await repos.inventory.create({"name": "Arnica", "type": "Dilution", "quantity": 10})
    await repos.inventory.create({"name": "Calendula", "type": "Ointment", "quantity": 10})
    await repos.inventory.create({"name": "Arnica Q", "type": "Mother Tincture", "quantity": 10})

    assert [i.name for i in await repos.inventory.list()] == ["Arnica", "Arnica Q", "Calendula"]
    assert [i.name for i in await repos.inventory.list(item_type=schemas.InventoryType.ointment)] == ["Calendula"]
    assert [i.name for i in await repos.inventory.list(search="arnica")] == ["Arnica", "Arnica Q"]

@pytest.mark.asyncio
async def test_save_inventory_item_updates_existing(repos):
    created = (await repos.inventory.create({"name": "Nux Vomica", "quantity": 2})).value

    saved = await repos.inventory.save({"id": created.id, "name": "Nux Vomica", "quantity": 12})

    assert saved.ok
    items = await repos.inventory.list()
    assert len(items) == 1
    assert items[0].quantity == 12
    assert items[0].low_stock is False

@pytest.mark.asyncio
async def test_inventory_update_and_delete_unknown(repos):
    assert (await repos.inventory.update("missing-id", {"quantity": 1})).failure == Failure.not_found
    assert (await repos.inventory.delete("missing-id")).failure == Failure.not_found


# ==================== EXPENSES ====================

@pytest.mark.asyncio
async def test_expenses_newest_first_with_default_category(repos):
    await repos.expenses.create({"title": "Rent", "amount": 8000, "date": "2024-01-01", "category": "Rent/Utilities"})
    await repos.expenses.create({"title": "Cleaning", "amount": "450.5", "date": "2024-02-01"})

    expenses = await repos.expenses.list()
    assert [e.title for e in expenses] == ["Cleaning", "Rent"]
    assert expenses[0].category == "Clinic Maintenance"
    assert sorted(await repos.expenses.list_amounts()) == [450.5, 8000]

@pytest.mark.asyncio
async def test_delete_expense(repos):
    created = (await repos.expenses.create({"title": "Printer ink", "amount": 600, "date": "2024-01-05"})).value

    assert (await repos.expenses.delete(created.id)).ok
    assert await repos.expenses.list() == []
    assert (await repos.expenses.delete(created.id)).failure == Failure.not_found


# ==================== CONCURRENCY ====================

@pytest.mark.asyncio
async def test_concurrent_creates_are_not_lost(repos, patient_data):
    results = await asyncio.gather(*[
        repos.patients.create({**patient_data, "name": f"Patient {i:02d}"}) for i in range(15)
    ])

    assert all(results)
    assert await repos.patients.count() == 15
