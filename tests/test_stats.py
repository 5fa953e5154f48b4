# tests/test_stats.py
import pytest

from clinic.storage.stats import StatsAggregator, today_str


@pytest.fixture
def stats(repos):
    return StatsAggregator(repos)


@pytest.mark.asyncio
async def test_empty_store_gives_zero_stats(stats):
    result = await stats.compute_stats()

    assert result.total_patients == 0
    assert result.total_visits == 0
    assert result.today_appointments == 0
    assert result.total_revenue == 0
    assert result.low_stock_items == 0

@pytest.mark.asyncio
async def test_stats_after_first_patient_and_visit(repos, stats):
    patient = (await repos.patients.create({
        "name": "Asha Rao", "mobile": "9000000001", "age": 34, "gender": "Female",
    })).value
    assert await repos.visits.create({"patientId": patient.id, "date": "2024-01-10", "fees": 300})

    result = await stats.compute_stats()

    assert result.total_patients == 1
    assert result.total_visits == 1
    assert result.total_revenue == 300

@pytest.mark.asyncio
async def test_revenue_is_sum_of_fees_including_zero(repos, stats, patient):
    await repos.visits.create({"patientId": patient.id, "date": "2024-01-10", "fees": 0})
    await repos.visits.create({"patientId": patient.id, "date": "2024-01-11", "fees": 250.5})
    before = (await stats.compute_stats()).total_revenue
    assert before == 250.5

    await repos.visits.create({"patientId": patient.id, "date": "2024-01-12", "fees": 500})

    assert (await stats.compute_stats()).total_revenue == before + 500

@pytest.mark.asyncio
async def test_low_stock_follows_quantity_updates(repos, stats):
    item = (await repos.inventory.create({"name": "Arnica 30", "quantity": 3, "minLevel": 5})).value
    await repos.inventory.create({"name": "Calendula", "quantity": 40, "minLevel": 5})

    assert (await stats.compute_stats()).low_stock_items == 1

    assert await repos.inventory.update(item.id, {"quantity": 10})
    assert (await stats.compute_stats()).low_stock_items == 0

@pytest.mark.asyncio
async def test_quantity_equal_to_min_level_is_low(repos, stats):
    await repos.inventory.create({"name": "Sulphur 200", "quantity": 5, "minLevel": 5})
    assert (await stats.compute_stats()).low_stock_items == 1

@pytest.mark.asyncio
async def test_today_appointments_excludes_cancelled(repos, stats):
    today = today_str()
    base = {"patientName": "Ravi Kumar", "mobile": "9000000002", "date": today, "time": "10:00"}
    await repos.appointments.create(base)
    await repos.appointments.create({**base, "time": "11:00", "status": "Confirmed"})
    await repos.appointments.create({**base, "time": "12:00", "status": "Cancelled"})
    await repos.appointments.create({**base, "date": "2000-01-01"})

    assert (await stats.compute_stats()).today_appointments == 2
    assert (await stats.compute_stats(today="2000-01-01")).today_appointments == 1

@pytest.mark.asyncio
async def test_finance_summary(repos, stats, patient):
    await repos.visits.create({"patientId": patient.id, "date": "2024-01-10", "fees": 300})
    await repos.visits.create({"patientId": patient.id, "date": "2024-01-11", "fees": 500})
    await repos.expenses.create({"title": "Rent", "amount": 650, "date": "2024-01-01"})

    summary = await stats.compute_finance_summary()

    assert summary.total_income == 800
    assert summary.total_expenses == 650
    assert summary.net_profit == 150
    assert summary.visit_count == 2
    assert summary.expense_count == 1
    assert summary.model_dump(by_alias=True)["netProfit"] == 150
