# clinic/storage/base.py
"""
Repository contracts shared by the SQL and the local key/value variants.

Every operation is a coroutine. Reads never raise: a backend fault is
logged and degrades to an empty list (or zero for counts). Writes return a
:class:`~clinic.schemas.WriteResult`, which is falsy on failure and never
carries a raw backend error.

Not-found policy: update, delete and status changes on an unknown id fail
with ``Failure.not_found`` for every entity.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .. import schemas
from ..schemas import Failure, WriteResult

M = TypeVar("M", bound=BaseModel)

Payload = Union[BaseModel, Mapping[str, Any]]


class StorageError(Exception):
    """Raised by storage internals; never escapes a public repository call."""
    pass

class NotFound(StorageError):
    pass


def parse_payload(model_cls: Type[M], payload: Payload) -> M:
    """Validate a caller payload into the declared create/patch type."""
    if isinstance(payload, model_cls):
        return payload
    if isinstance(payload, BaseModel):
        # Domain objects may carry derived fields (e.g. low_stock) the input type does not declare
        payload = {
            key: value for key, value in payload.model_dump(exclude_unset=True).items()
            if key in model_cls.model_fields
        }
    return model_cls.model_validate(payload)

def invalid(error: ValidationError) -> WriteResult:
    fields = ", ".join(".".join(str(p) for p in err["loc"]) or "payload" for err in error.errors())
    return WriteResult.fail(Failure.invalid, f"Invalid fields: {fields}")

def not_found(entity: str, entity_id: str) -> WriteResult:
    return WriteResult.fail(Failure.not_found, f"{entity} {entity_id} not found")

def backend_failure(action: str) -> WriteResult:
    return WriteResult.fail(Failure.backend, f"A storage error occurred while {action}.")


# ==================== CONTRACTS ====================

class PatientRepository(ABC):

    @abstractmethod
    async def list(self, search: Optional[str] = None) -> List[schemas.Patient]:
        """Patients ordered by name ascending; ``search`` matches name (any case) or mobile."""

    @abstractmethod
    async def get(self, patient_id: str) -> Optional[schemas.Patient]: ...

    @abstractmethod
    async def create(self, payload: Payload) -> WriteResult: ...

    @abstractmethod
    async def save(self, patient: Payload) -> WriteResult:
        """Replace the patient with the same id, or insert it."""

    @abstractmethod
    async def update(self, patient_id: str, patch: Payload) -> WriteResult: ...

    @abstractmethod
    async def delete(self, patient_id: str) -> WriteResult:
        """Delete the patient's visits, then the patient. Nothing is removed if the first step fails."""

    @abstractmethod
    async def count(self) -> int: ...


class VisitRepository(ABC):

    @abstractmethod
    async def list(self, patient_id: Optional[str] = None) -> List[schemas.Visit]:
        """Visits ordered by date descending, optionally for one patient."""

    @abstractmethod
    async def create(self, payload: Payload) -> WriteResult:
        """Append a visit; fails as invalid when the patient does not exist."""

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def list_fees(self) -> List[float]:
        """Fee column only."""


class AppointmentRepository(ABC):

    @abstractmethod
    async def list(self, date: Optional[str] = None,
                   status: Optional[schemas.AppointmentStatus] = None) -> List[schemas.Appointment]:
        """Appointments ordered by date then time, ascending."""

    @abstractmethod
    async def get(self, appointment_id: str) -> Optional[schemas.Appointment]: ...

    @abstractmethod
    async def create(self, payload: Payload) -> WriteResult: ...

    @abstractmethod
    async def update(self, appointment_id: str, patch: Payload) -> WriteResult: ...

    async def upsert(self, payload: Payload) -> WriteResult:
        """Update when the payload carries an id, otherwise create.

        An update replaces ``patient_id`` too, so a missing link clears a stale one.
        """
        try:
            data = parse_payload(schemas.AppointmentUpsert, payload)
        except ValidationError as e:
            return invalid(e)
        if data.id:
            fields = data.model_dump(exclude_unset=True, exclude={"id"})
            fields["patient_id"] = data.patient_id
            return await self.update(data.id, schemas.AppointmentUpdate(**fields))
        return await self.create(schemas.AppointmentCreate(**data.model_dump(exclude_unset=True, exclude={"id"})))

    async def update_status(self, appointment_id: str, status: Union[schemas.AppointmentStatus, str]) -> WriteResult:
        """Single-field update; no other field is touched."""
        try:
            patch = schemas.AppointmentUpdate(status=status)
        except ValidationError as e:
            return invalid(e)
        return await self.update(appointment_id, patch)

    @abstractmethod
    async def delete(self, appointment_id: str) -> WriteResult: ...

    @abstractmethod
    async def count_for_date(self, day: str) -> int:
        """Non-cancelled appointments on ``day`` (YYYY-MM-DD)."""


class InventoryRepository(ABC):

    @abstractmethod
    async def list(self, item_type: Optional[schemas.InventoryType] = None,
                   search: Optional[str] = None) -> List[schemas.InventoryItem]:
        """Items ordered by name ascending."""

    @abstractmethod
    async def get(self, item_id: str) -> Optional[schemas.InventoryItem]: ...

    @abstractmethod
    async def create(self, payload: Payload) -> WriteResult: ...

    @abstractmethod
    async def update(self, item_id: str, patch: Payload) -> WriteResult: ...

    async def save(self, payload: Payload) -> WriteResult:
        """Update when the payload carries an id, otherwise create."""
        try:
            data = parse_payload(schemas.InventoryItemUpsert, payload)
        except ValidationError as e:
            return invalid(e)
        if data.id:
            fields = data.model_dump(exclude_unset=True, exclude={"id"})
            return await self.update(data.id, schemas.InventoryItemUpdate(**fields))
        return await self.create(schemas.InventoryItemCreate(**data.model_dump(exclude_unset=True, exclude={"id"})))

    @abstractmethod
    async def delete(self, item_id: str) -> WriteResult: ...

    @abstractmethod
    async def stock_levels(self) -> List[Dict[str, int]]:
        """``quantity`` / ``min_level`` projection of every item."""


class ExpenseRepository(ABC):

    @abstractmethod
    async def list(self) -> List[schemas.Expense]:
        """Expenses ordered by date descending."""

    @abstractmethod
    async def create(self, payload: Payload) -> WriteResult: ...

    @abstractmethod
    async def delete(self, expense_id: str) -> WriteResult: ...

    @abstractmethod
    async def list_amounts(self) -> List[float]:
        """Amount column only."""


@dataclass
class Repositories:
    patients: PatientRepository
    visits: VisitRepository
    appointments: AppointmentRepository
    inventory: InventoryRepository
    expenses: ExpenseRepository
    backend: str = "local"
