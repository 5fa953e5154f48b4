# clinic/storage/sql.py - Repositories over the relational backend
import logging
from contextlib import contextmanager
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .. import mappers, models, schemas
from ..schemas import Failure, WriteResult
from .base import (
    AppointmentRepository, ExpenseRepository, InventoryRepository, PatientRepository,
    Payload, Repositories, VisitRepository, backend_failure, invalid, not_found,
    parse_payload,
)

logger = logging.getLogger(__name__)


class SqlRepository:
    """Runs blocking SQLAlchemy work on the threadpool, one session per call."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self):
        db: Session = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run(self, fn, *args):
        return await run_in_threadpool(fn, *args)

    def _count(self, model) -> int:
        with self._session() as db:
            return db.query(func.count(model.id)).scalar() or 0

    def _delete_by_id(self, model, entity_id) -> bool:
        with self._session() as db:
            obj = db.get(model, entity_id)
            if obj is None:
                return False
            db.delete(obj)
            db.commit()
            return True


# ==================== PATIENTS ====================

class SqlPatientRepository(SqlRepository, PatientRepository):

    async def list(self, search: Optional[str] = None) -> List[schemas.Patient]:
        try:
            return await self._run(self._list, search)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching patients: {e}")
            return []

    def _list(self, search):
        with self._session() as db:
            query = db.query(models.Patient)
            if search:
                query = query.filter(or_(
                    func.lower(models.Patient.name).contains(search.lower()),
                    models.Patient.mobile.contains(search),
                ))
            rows = query.order_by(models.Patient.name.asc()).all()
            return [mappers.patient_from_row(mappers.orm_to_row(p)) for p in rows]

    async def get(self, patient_id: str) -> Optional[schemas.Patient]:
        try:
            return await self._run(self._get, patient_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching patient {patient_id}: {e}")
            return None

    def _get(self, patient_id):
        with self._session() as db:
            db_patient = db.get(models.Patient, patient_id)
            return mappers.patient_from_row(mappers.orm_to_row(db_patient)) if db_patient else None

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.PatientCreate, payload)
        except ValidationError as e:
            return invalid(e)
        try:
            patient = await self._run(self._insert, mappers.patient_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error creating patient: {e}")
            return backend_failure("creating the patient")
        logger.info(f"Created patient {patient.id}")
        return WriteResult.success(patient)

    def _insert(self, row):
        with self._session() as db:
            db_patient = models.Patient(**row)
            db.add(db_patient)
            db.commit()
            db.refresh(db_patient)
            return mappers.patient_from_row(mappers.orm_to_row(db_patient))

    async def save(self, patient: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.Patient, patient)
        except ValidationError as e:
            return invalid(e)
        try:
            saved = await self._run(self._save, mappers.patient_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error saving patient {data.id}: {e}")
            return backend_failure("saving the patient")
        return WriteResult.success(saved)

    def _save(self, row):
        with self._session() as db:
            db_patient = db.get(models.Patient, row["id"])
            if db_patient is None:
                if row.get("created_at") is None:
                    row.pop("created_at", None)
                db_patient = models.Patient(**row)
                db.add(db_patient)
            else:
                for column, value in row.items():
                    if column == "created_at" and value is None:
                        continue
                    setattr(db_patient, column, value)
            db.commit()
            db.refresh(db_patient)
            return mappers.patient_from_row(mappers.orm_to_row(db_patient))

    async def update(self, patient_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.PatientUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            patient = await self._run(self._update, patient_id, mappers.patient_to_row(data, partial=True))
        except SQLAlchemyError as e:
            logger.error(f"Error updating patient {patient_id}: {e}")
            return backend_failure("updating the patient")
        if patient is None:
            return not_found("Patient", patient_id)
        return WriteResult.success(patient)

    def _update(self, patient_id, row):
        with self._session() as db:
            db_patient = db.get(models.Patient, patient_id)
            if db_patient is None:
                return None
            for column, value in row.items():
                setattr(db_patient, column, value)
            db.commit()
            db.refresh(db_patient)
            return mappers.patient_from_row(mappers.orm_to_row(db_patient))

    async def delete(self, patient_id: str) -> WriteResult:
        try:
            removed_visits = await self._run(self._delete, patient_id)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting patient {patient_id} and their visits: {e}")
            return backend_failure("deleting the patient and their visits")
        if removed_visits is None:
            return not_found("Patient", patient_id)
        logger.info(f"Deleted patient {patient_id} with {removed_visits} visit(s)")
        return WriteResult.success()

    def _delete(self, patient_id):
        # Visits and patient go in one transaction; a failure rolls back both
        with self._session() as db:
            db_patient = db.get(models.Patient, patient_id)
            if db_patient is None:
                return None
            removed = db.query(models.Visit).filter(
                models.Visit.patient_id == patient_id
            ).delete(synchronize_session=False)
            db.delete(db_patient)
            db.commit()
            return removed

    async def count(self) -> int:
        try:
            return await self._run(self._count, models.Patient)
        except SQLAlchemyError as e:
            logger.error(f"Error counting patients: {e}")
            return 0


# ==================== VISITS ====================

class SqlVisitRepository(SqlRepository, VisitRepository):

    async def list(self, patient_id: Optional[str] = None) -> List[schemas.Visit]:
        try:
            return await self._run(self._list, patient_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching visits (patient={patient_id}): {e}")
            return []

    def _list(self, patient_id):
        with self._session() as db:
            query = db.query(models.Visit)
            if patient_id:
                query = query.filter(models.Visit.patient_id == patient_id)
            rows = query.order_by(models.Visit.date.desc()).all()
            return [mappers.visit_from_row(mappers.orm_to_row(v)) for v in rows]

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.VisitCreate, payload)
        except ValidationError as e:
            return invalid(e)
        try:
            visit = await self._run(self._insert, mappers.visit_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error adding visit for patient {data.patient_id}: {e}")
            return backend_failure("adding the visit")
        if visit is None:
            return WriteResult.fail(Failure.invalid, f"Patient {data.patient_id} does not exist")
        logger.info(f"Added visit {visit.id} for patient {visit.patient_id}")
        return WriteResult.success(visit)

    def _insert(self, row):
        with self._session() as db:
            if db.get(models.Patient, row["patient_id"]) is None:
                return None
            db_visit = models.Visit(**row)
            db.add(db_visit)
            db.commit()
            db.refresh(db_visit)
            return mappers.visit_from_row(mappers.orm_to_row(db_visit))

    async def count(self) -> int:
        try:
            return await self._run(self._count, models.Visit)
        except SQLAlchemyError as e:
            logger.error(f"Error counting visits: {e}")
            return 0

    async def list_fees(self) -> List[float]:
        try:
            return await self._run(self._fees)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching visit fees: {e}")
            return []

    def _fees(self):
        with self._session() as db:
            return [schemas.coerce_number(fees) for (fees,) in db.query(models.Visit.fees).all()]


# ==================== APPOINTMENTS ====================

class SqlAppointmentRepository(SqlRepository, AppointmentRepository):

    async def list(self, date: Optional[str] = None,
                   status: Optional[schemas.AppointmentStatus] = None) -> List[schemas.Appointment]:
        try:
            return await self._run(self._list, date, status)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching appointments: {e}")
            return []

    def _list(self, date, status):
        with self._session() as db:
            query = db.query(models.Appointment)
            if date:
                query = query.filter(models.Appointment.date == date)
            if status:
                query = query.filter(models.Appointment.status == schemas.AppointmentStatus(status).value)
            rows = query.order_by(models.Appointment.date.asc(), models.Appointment.time.asc()).all()
            return [mappers.appointment_from_row(mappers.orm_to_row(a)) for a in rows]

    async def get(self, appointment_id: str) -> Optional[schemas.Appointment]:
        try:
            return await self._run(self._get, appointment_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching appointment {appointment_id}: {e}")
            return None

    def _get(self, appointment_id):
        with self._session() as db:
            db_appt = db.get(models.Appointment, appointment_id)
            return mappers.appointment_from_row(mappers.orm_to_row(db_appt)) if db_appt else None

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.AppointmentCreate, payload)
        except ValidationError as e:
            return invalid(e)
        try:
            appointment = await self._run(self._insert, mappers.appointment_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error creating appointment: {e}")
            return backend_failure("creating the appointment")
        logger.info(f"Created {appointment.type.value} appointment {appointment.id} on {appointment.date} {appointment.time}")
        return WriteResult.success(appointment)

    def _insert(self, row):
        with self._session() as db:
            db_appt = models.Appointment(**row)
            db.add(db_appt)
            db.commit()
            db.refresh(db_appt)
            return mappers.appointment_from_row(mappers.orm_to_row(db_appt))

    async def update(self, appointment_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.AppointmentUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            appointment = await self._run(self._update, appointment_id, mappers.appointment_to_row(data, partial=True))
        except SQLAlchemyError as e:
            logger.error(f"Error updating appointment {appointment_id}: {e}")
            return backend_failure("updating the appointment")
        if appointment is None:
            return not_found("Appointment", appointment_id)
        return WriteResult.success(appointment)

    def _update(self, appointment_id, row):
        with self._session() as db:
            db_appt = db.get(models.Appointment, appointment_id)
            if db_appt is None:
                return None
            for column, value in row.items():
                setattr(db_appt, column, value)
            db.commit()
            db.refresh(db_appt)
            return mappers.appointment_from_row(mappers.orm_to_row(db_appt))

    async def delete(self, appointment_id: str) -> WriteResult:
        try:
            deleted = await self._run(self._delete_by_id, models.Appointment, appointment_id)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting appointment {appointment_id}: {e}")
            return backend_failure("deleting the appointment")
        return WriteResult.success() if deleted else not_found("Appointment", appointment_id)

    async def count_for_date(self, day: str) -> int:
        try:
            return await self._run(self._count_for_date, day)
        except SQLAlchemyError as e:
            logger.error(f"Error counting appointments for {day}: {e}")
            return 0

    def _count_for_date(self, day):
        with self._session() as db:
            return db.query(func.count(models.Appointment.id)).filter(
                models.Appointment.date == day,
                models.Appointment.status != schemas.AppointmentStatus.cancelled.value,
            ).scalar() or 0


# ==================== INVENTORY ====================

class SqlInventoryRepository(SqlRepository, InventoryRepository):

    async def list(self, item_type: Optional[schemas.InventoryType] = None,
                   search: Optional[str] = None) -> List[schemas.InventoryItem]:
        try:
            return await self._run(self._list, item_type, search)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching inventory: {e}")
            return []

    def _list(self, item_type, search):
        with self._session() as db:
            query = db.query(models.InventoryItem)
            if item_type:
                query = query.filter(models.InventoryItem.type == schemas.InventoryType(item_type).value)
            if search:
                query = query.filter(func.lower(models.InventoryItem.name).contains(search.lower()))
            rows = query.order_by(models.InventoryItem.name.asc()).all()
            return [mappers.inventory_from_row(mappers.orm_to_row(i)) for i in rows]

    async def get(self, item_id: str) -> Optional[schemas.InventoryItem]:
        try:
            return await self._run(self._get, item_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching inventory item {item_id}: {e}")
            return None

    def _get(self, item_id):
        with self._session() as db:
            db_item = db.get(models.InventoryItem, item_id)
            return mappers.inventory_from_row(mappers.orm_to_row(db_item)) if db_item else None

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.InventoryItemCreate, payload)
        except ValidationError as e:
            return invalid(e)
        try:
            item = await self._run(self._insert, mappers.inventory_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error creating inventory item: {e}")
            return backend_failure("creating the inventory item")
        return WriteResult.success(item)

    def _insert(self, row):
        with self._session() as db:
            db_item = models.InventoryItem(**row)
            db.add(db_item)
            db.commit()
            db.refresh(db_item)
            return mappers.inventory_from_row(mappers.orm_to_row(db_item))

    async def update(self, item_id: str, patch: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.InventoryItemUpdate, patch)
        except ValidationError as e:
            return invalid(e)
        try:
            item = await self._run(self._update, item_id, mappers.inventory_to_row(data, partial=True))
        except SQLAlchemyError as e:
            logger.error(f"Error updating inventory item {item_id}: {e}")
            return backend_failure("updating the inventory item")
        if item is None:
            return not_found("Inventory item", item_id)
        return WriteResult.success(item)

    def _update(self, item_id, row):
        with self._session() as db:
            db_item = db.get(models.InventoryItem, item_id)
            if db_item is None:
                return None
            for column, value in row.items():
                setattr(db_item, column, value)
            db_item.updated_at = func.now()
            db.commit()
            db.refresh(db_item)
            return mappers.inventory_from_row(mappers.orm_to_row(db_item))

    async def delete(self, item_id: str) -> WriteResult:
        try:
            deleted = await self._run(self._delete_by_id, models.InventoryItem, item_id)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting inventory item {item_id}: {e}")
            return backend_failure("deleting the inventory item")
        return WriteResult.success() if deleted else not_found("Inventory item", item_id)

    async def stock_levels(self) -> List[Dict[str, int]]:
        try:
            return await self._run(self._stock_levels)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching stock levels: {e}")
            return []

    def _stock_levels(self):
        with self._session() as db:
            rows = db.query(models.InventoryItem.quantity, models.InventoryItem.min_level).all()
            return [
                {"quantity": schemas.coerce_int(quantity), "min_level": schemas.coerce_int(min_level)}
                for quantity, min_level in rows
            ]


# ==================== EXPENSES ====================

class SqlExpenseRepository(SqlRepository, ExpenseRepository):

    async def list(self) -> List[schemas.Expense]:
        try:
            return await self._run(self._list)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching expenses: {e}")
            return []

    def _list(self):
        with self._session() as db:
            rows = db.query(models.Expense).order_by(models.Expense.date.desc()).all()
            return [mappers.expense_from_row(mappers.orm_to_row(e)) for e in rows]

    async def create(self, payload: Payload) -> WriteResult:
        try:
            data = parse_payload(schemas.ExpenseCreate, payload)
        except ValidationError as e:
            return invalid(e)
        try:
            expense = await self._run(self._insert, mappers.expense_to_row(data))
        except SQLAlchemyError as e:
            logger.error(f"Error adding expense: {e}")
            return backend_failure("adding the expense")
        return WriteResult.success(expense)

    def _insert(self, row):
        with self._session() as db:
            db_expense = models.Expense(**row)
            db.add(db_expense)
            db.commit()
            db.refresh(db_expense)
            return mappers.expense_from_row(mappers.orm_to_row(db_expense))

    async def delete(self, expense_id: str) -> WriteResult:
        try:
            deleted = await self._run(self._delete_by_id, models.Expense, expense_id)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting expense {expense_id}: {e}")
            return backend_failure("deleting the expense")
        return WriteResult.success() if deleted else not_found("Expense", expense_id)

    async def list_amounts(self) -> List[float]:
        try:
            return await self._run(self._amounts)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching expense amounts: {e}")
            return []

    def _amounts(self):
        with self._session() as db:
            return [schemas.coerce_number(amount) for (amount,) in db.query(models.Expense.amount).all()]


def build_sql_repositories(session_factory: sessionmaker) -> Repositories:
    return Repositories(
        patients=SqlPatientRepository(session_factory),
        visits=SqlVisitRepository(session_factory),
        appointments=SqlAppointmentRepository(session_factory),
        inventory=SqlInventoryRepository(session_factory),
        expenses=SqlExpenseRepository(session_factory),
        backend="sql",
    )
