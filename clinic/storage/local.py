# clinic/storage/local.py
"""
Local persistence variant.

Each entity collection is one document in a :class:`KeyValueStore`, holding
the whole list in domain shape (camelCase JSON). Every mutation is a
read-modify-write of the entire list under a per-collection ``asyncio.Lock``
so two calls in the same process cannot interleave and lose an update.
Ordering is applied at read time; storage order is insertion order.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .. import schemas
from ..schemas import Failure, WriteResult
from .base import (
    AppointmentRepository, ExpenseRepository, InventoryRepository, NotFound,
    PatientRepository, Payload, Repositories, StorageError, VisitRepository,
    backend_failure, invalid, not_found, parse_payload,
)
from .kv import KeyValueStore

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)

PATIENTS_KEY = "patients"
VISITS_KEY = "visits"
APPOINTMENTS_KEY = "appointments"
INVENTORY_KEY = "inventory"
EXPENSES_KEY = "expenses"

# Store faults surface as one of these; anything else is a programming error
STORE_ERRORS = (StorageError, OSError, ValidationError, ValueError)


def _new_id() -> str:
    return str(uuid.uuid4())

def _now() -> datetime:
    return datetime.now(timezone.utc)


class Collection(Generic[E]):
    """One entity list persisted under a single key."""

    def __init__(self, store: KeyValueStore, key: str, model: Type[E]):
        self.store = store
        self.key = key
        self._adapter = TypeAdapter(List[model])
        self.lock = asyncio.Lock()

    async def load(self) -> List[E]:
        raw = await self.store.get(self.key)
        if raw is None or not raw.strip():
            return []
        return self._adapter.validate_json(raw)

    async def dump(self, items: List[E]) -> None:
        await self.store.set(self.key, self._adapter.dump_json(items, by_alias=True).decode("utf-8"))

    @asynccontextmanager
    async def transaction(self):
        """Yield the current list; write it back only if the block completes."""
        async with self.lock:
            items = await self.load()
            yield items
            await self.dump(items)

    @staticmethod
    def index_of(items: List[E], entity_id: str) -> int:
        for i, item in enumerate(items):
            if item.id == entity_id:
                return i
        raise NotFound(entity_id)


class LocalRepository:

    async def _read(self, collection: Collection, what: str) -> list:
        try:
            return await collection.load()
        except STORE_ERRORS as e:
            logger.error(f"Error reading {what} from local store: {e}")
            return []


def _apply_patch(entity: E, patch: BaseModel) -> E:
    return entity.model_copy(update=patch.model_dump(exclude_unset=True))


# ==================== PATIENTS ====================

class LocalPatientRepository(LocalRepository, PatientRepository):

    def __init__(self, patients: Collection, visits: Collection):
        self._patients = patients
        self._visits = visits

    async def list(self, search: Optional[str] = None) -> List[schemas.Patient]:
        patients = await self._read(self._patients, "patients")
        if search:
            needle = search.lower()
            patients = [p for p in patients if needle in p.name.lower() or search in p.mobile]
        return sorted(patients, key=lambda p: p.name)

    async def get(self, patient_id: str) -> Optional[schemas.Patient]:
        patients = await self._read(self._patients, "patients")
        return next((p for p in patients if p.id == patient_id), None)

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.PatientCreate, payload)
        except ValidationError as e:
            return invalid(e)
        patient = schemas.Patient(id=_new_id(), registered_date=_now(), **data.model_dump())
        try:
            async with self._patients.transaction() as patients:
                patients.append(patient)
        except STORE_ERRORS as e:
            logger.error(f"Error creating patient: {e}")
            return backend_failure("creating the patient")
        logger.info(f"Created patient {patient.id}")
        return WriteResult.success(patient)

    async def save(self, patient: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.Patient, patient)
        except ValidationError as e:
            return invalid(e)
        if data.registered_date is None:
            data = data.model_copy(update={"registered_date": _now()})
        try:
            async with self._patients.transaction() as patients:
                try:
                    patients[Collection.index_of(patients, data.id)] = data
                except NotFound:
                    patients.append(data)
        except STORE_ERRORS as e:
            logger.error(f"Error saving patient {data.id}: {e}")
            return backend_failure("saving the patient")
        return WriteResult.success(data)

    async def update(self, patient_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.PatientUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            async with self._patients.transaction() as patients:
                i = Collection.index_of(patients, patient_id)
                patients[i] = _apply_patch(patients[i], data)
                updated = patients[i]
        except NotFound:
            return not_found("Patient", patient_id)
        except STORE_ERRORS as e:
            logger.error(f"Error updating patient {patient_id}: {e}")
            return backend_failure("updating the patient")
        return WriteResult.success(updated)

    async def delete(self, patient_id: str) -> WriteResult:
        # Lock order is patients, then visits (same as visit creation)
        try:
            async with self._patients.lock:
                patients = await self._patients.load()
                Collection.index_of(patients, patient_id)
                async with self._visits.transaction() as visits:
                    kept = [v for v in visits if v.patient_id != patient_id]
                    removed = len(visits) - len(kept)
                    visits[:] = kept
                # Visits are gone on disk before the patient row is dropped
                await self._patients.dump([p for p in patients if p.id != patient_id])
        except NotFound:
            return not_found("Patient", patient_id)
        except STORE_ERRORS as e:
            logger.error(f"Error deleting patient {patient_id} and their visits: {e}")
            return backend_failure("deleting the patient and their visits")
        logger.info(f"Deleted patient {patient_id} with {removed} visit(s)")
        return WriteResult.success()

    async def count(self) -> int:
        return len(await self._read(self._patients, "patients"))


# ==================== VISITS ====================

class LocalVisitRepository(LocalRepository, VisitRepository):

    def __init__(self, visits: Collection, patients: Collection):
        self._visits = visits
        self._patients = patients

    async def list(self, patient_id: Optional[str] = None) -> List[schemas.Visit]:
        visits = await self._read(self._visits, "visits")
        if patient_id:
            visits = [v for v in visits if v.patient_id == patient_id]
        return sorted(visits, key=lambda v: v.date, reverse=True)

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.VisitCreate, payload)
        except ValidationError as e:
            return invalid(e)
        visit = schemas.Visit(id=_new_id(), **data.model_dump())
        try:
            async with self._patients.lock:
                patients = await self._patients.load()
                if not any(p.id == data.patient_id for p in patients):
                    return WriteResult.fail(Failure.invalid, f"Patient {data.patient_id} does not exist")
                async with self._visits.transaction() as visits:
                    visits.append(visit)
        except STORE_ERRORS as e:
            logger.error(f"Error adding visit for patient {data.patient_id}: {e}")
            return backend_failure("adding the visit")
        logger.info(f"Added visit {visit.id} for patient {visit.patient_id}")
        return WriteResult.success(visit)

    async def count(self) -> int:
        return len(await self._read(self._visits, "visits"))

    async def list_fees(self) -> List[float]:
        return [v.fees for v in await self._read(self._visits, "visits")]


# ==================== APPOINTMENTS ====================

class LocalAppointmentRepository(LocalRepository, AppointmentRepository):

    def __init__(self, appointments: Collection):
        self._appointments = appointments

    async def list(self, date: Optional[str] = None,
                   status: Optional[schemas.AppointmentStatus] = None) -> List[schemas.Appointment]:
        appointments = await self._read(self._appointments, "appointments")
        if date:
            appointments = [a for a in appointments if a.date == date]
        if status:
            appointments = [a for a in appointments if a.status == schemas.AppointmentStatus(status)]
        return sorted(appointments, key=lambda a: (a.date, a.time))

    async def get(self, appointment_id: str) -> Optional[schemas.Appointment]:
        appointments = await self._read(self._appointments, "appointments")
        return next((a for a in appointments if a.id == appointment_id), None)

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.AppointmentCreate, payload)
        except ValidationError as e:
            return invalid(e)
        appointment = schemas.Appointment(id=_new_id(), **data.model_dump())
        try:
            async with self._appointments.transaction() as appointments:
                appointments.append(appointment)
        except STORE_ERRORS as e:
            logger.error(f"Error creating appointment: {e}")
            return backend_failure("creating the appointment")
        logger.info(f"Created {appointment.type.value} appointment {appointment.id} on {appointment.date} {appointment.time}")
        return WriteResult.success(appointment)

    async def update(self, appointment_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.AppointmentUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            async with self._appointments.transaction() as appointments:
                i = Collection.index_of(appointments, appointment_id)
                appointments[i] = _apply_patch(appointments[i], data)
                updated = appointments[i]
        except NotFound:
            return not_found("Appointment", appointment_id)
        except STORE_ERRORS as e:
            logger.error(f"Error updating appointment {appointment_id}: {e}")
            return backend_failure("updating the appointment")
        return WriteResult.success(updated)

    async def delete(self, appointment_id: str) -> WriteResult:
        try:
            async with self._appointments.transaction() as appointments:
                del appointments[Collection.index_of(appointments, appointment_id)]
        except NotFound:
            return not_found("Appointment", appointment_id)
        except STORE_ERRORS as e:
            logger.error(f"Error deleting appointment {appointment_id}: {e}")
            return backend_failure("deleting the appointment")
        return WriteResult.success()

    async def count_for_date(self, day: str) -> int:
        appointments = await self._read(self._appointments, "appointments")
        return sum(
            1 for a in appointments
            if a.date == day and a.status != schemas.AppointmentStatus.cancelled
        )


# ==================== INVENTORY ====================

class LocalInventoryRepository(LocalRepository, InventoryRepository):

    def __init__(self, items: Collection):
        self._items = items

    async def list(self, item_type: Optional[schemas.InventoryType] = None,
                   search: Optional[str] = None) -> List[schemas.InventoryItem]:
        items = await self._read(self._items, "inventory")
        if item_type:
            items = [i for i in items if i.type == schemas.InventoryType(item_type)]
        if search:
            needle = search.lower()
            items = [i for i in items if needle in i.name.lower()]
        return sorted(items, key=lambda i: i.name)

    async def get(self, item_id: str) -> Optional[schemas.InventoryItem]:
        items = await self._read(self._items, "inventory")
        return next((i for i in items if i.id == item_id), None)

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.InventoryItemCreate, payload)
        except ValidationError as e:
            return invalid(e)
        item = schemas.InventoryItem(id=_new_id(), updated_at=_now(), **data.model_dump())
        try:
            async with self._items.transaction() as items:
                items.append(item)
        except STORE_ERRORS as e:
            logger.error(f"Error creating inventory item: {e}")
            return backend_failure("creating the inventory item")
        return WriteResult.success(item)

    async def update(self, item_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.InventoryItemUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            async with self._items.transaction() as items:
                i = Collection.index_of(items, item_id)
                items[i] = _apply_patch(items[i], data).model_copy(update={"updated_at": _now()})
                updated = items[i]
        except NotFound:
            return not_found("Inventory item", item_id)
        except STORE_ERRORS as e:
            logger.error(f"Error updating inventory item {item_id}: {e}")
            return backend_failure("updating the inventory item")
        return WriteResult.success(updated)

    async def delete(self, item_id: str) -> WriteResult:
        try:
            async with self._items.transaction() as items:
                del items[Collection.index_of(items, item_id)]
        except NotFound:
            return not_found("Inventory item", item_id)
        except STORE_ERRORS as e:
            logger.error(f"Error deleting inventory item {item_id}: {e}")
            return backend_failure("deleting the inventory item")
        return WriteResult.success()

    async def stock_levels(self) -> List[Dict[str, int]]:
        items = await self._read(self._items, "inventory")
        return [{"quantity": i.quantity, "min_level": i.min_level} for i in items]


# ==================== EXPENSES ====================

class LocalExpenseRepository(LocalRepository, ExpenseRepository):

    def __init__(self, expenses: Collection):
        self._expenses = expenses

    async def list(self) -> List[schemas.Expense]:
        expenses = await self._read(self._expenses, "expenses")
        return sorted(expenses, key=lambda e: e.date, reverse=True)

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.ExpenseCreate, payload)
        except ValidationError as e:
            return invalid(e)
        expense = schemas.Expense(id=_new_id(), **data.model_dump())
        try:
            async with self._expenses.transaction() as expenses:
                expenses.append(expense)
        except STORE_ERRORS as e:
            logger.error(f"Error adding expense: {e}")
            return backend_failure("adding the expense")
        return WriteResult.success(expense)

    async def delete(self, expense_id: str) -> WriteResult:
        try:
            async with self._expenses.transaction() as expenses:
                del expenses[Collection.index_of(expenses, expense_id)]
        except NotFound:
            return not_found("Expense", expense_id)
        except STORE_ERRORS as e:
            logger.error(f"Error deleting expense {expense_id}: {e}")
            return backend_failure("deleting the expense")
        return WriteResult.success()

    async def list_amounts(self) -> List[float]:
        return [e.amount for e in await self._read(self._expenses, "expenses")]


def build_local_repositories(store: KeyValueStore) -> Repositories:
    patients = Collection(store, PATIENTS_KEY, schemas.Patient)
    visits = Collection(store, VISITS_KEY, schemas.Visit)
    return Repositories(
        patients=LocalPatientRepository(patients, visits),
        visits=LocalVisitRepository(visits, patients),
        appointments=LocalAppointmentRepository(Collection(store, APPOINTMENTS_KEY, schemas.Appointment)),
        inventory=LocalInventoryRepository(Collection(store, INVENTORY_KEY, schemas.InventoryItem)),
        expenses=LocalExpenseRepository(Collection(store, EXPENSES_KEY, schemas.Expense)),
        backend="local",
    )
