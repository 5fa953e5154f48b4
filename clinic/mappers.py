# clinic/mappers.py
"""
Record mappers between backend rows and domain entities.

Rows are plain mappings keyed by column name (snake_case, nullable).
Domain entities are the pydantic models in :mod:`clinic.schemas`.

``*_from_row`` never raises: missing or malformed values fall back to empty
strings, ``None`` or zero. ``*_to_row`` emits every declared field of the
given model except unset nulls, or with ``partial=True`` only the fields it
actually carries (``model_fields_set``), so a patch only touches what it
names and an insert never sends a null the caller did not give.
"""
import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel

from . import schemas
from .schemas import coerce_int, coerce_number

logger = logging.getLogger(__name__)

# domain field -> column
PATIENT_COLUMNS = {
    "id": "id",
    "name": "name",
    "mobile": "mobile",
    "age": "age",
    "gender": "gender",
    "blood_group": "blood_group",
    "address": "address",
    "allergies": "allergies",
    "chronic_conditions": "chronic_conditions",
    "registered_date": "created_at",
}

VISIT_COLUMNS = {
    "id": "id",
    "patient_id": "patient_id",
    "date": "date",
    "symptoms": "symptoms",
    "diagnosis": "diagnosis",
    "prescription": "prescription",
    "notes": "notes",
    "fees": "fees",
    "next_follow_up": "next_follow_up",
}

APPOINTMENT_COLUMNS = {
    "id": "id",
    "patient_name": "patient_name",
    "patient_id": "patient_id",
    "mobile": "mobile",
    "date": "date",
    "time": "time",
    "status": "status",
    "type": "type",
    "notes": "notes",
}

INVENTORY_COLUMNS = {
    "id": "id",
    "name": "name",
    "potency": "potency",
    "type": "type",
    "quantity": "quantity",
    "min_level": "min_level",
    "updated_at": "updated_at",
}

EXPENSE_COLUMNS = {
    "id": "id",
    "title": "title",
    "amount": "amount",
    "category": "category",
    "date": "date",
    "notes": "notes",
}


# --- small tolerant converters ---
def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)

def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)

def _enum(enum_cls: Type[Enum], value: Any, default: Optional[Enum] = None) -> Optional[Enum]:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default

def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def orm_to_row(obj: Any) -> Dict[str, Any]:
    """Flatten an ORM instance into a column-keyed dict."""
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


def _to_row(entity: BaseModel, columns: Mapping[str, str], partial: bool = False) -> Dict[str, Any]:
    row = {}
    fields = entity.model_fields_set if partial else type(entity).model_fields
    for field in fields:
        column = columns.get(field)
        if column is None:
            continue
        value = getattr(entity, field)
        if value is None and field not in entity.model_fields_set:
            continue
        if isinstance(value, Enum):
            value = value.value
        row[column] = value
    return row


# ==================== PATIENTS ====================

def patient_from_row(row: Mapping[str, Any]) -> schemas.Patient:
    return schemas.Patient(
        id=_text(row.get("id")),
        name=_text(row.get("name")),
        mobile=_text(row.get("mobile")),
        age=coerce_int(row.get("age")),
        gender=_enum(schemas.Gender, row.get("gender")),
        blood_group=_optional_text(row.get("blood_group")),
        address=_text(row.get("address")),
        allergies=_optional_text(row.get("allergies")),
        chronic_conditions=_optional_text(row.get("chronic_conditions")),
        registered_date=_timestamp(row.get("created_at")),
    )

def patient_to_row(entity: BaseModel, partial: bool = False) -> Dict[str, Any]:
    return _to_row(entity, PATIENT_COLUMNS, partial)


# ==================== VISITS ====================

def _prescription_items(value: Any) -> List[schemas.PrescriptionItem]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Discarding unparseable prescription payload")
            return []
    if not isinstance(value, list):
        return []
    items = []
    for raw in value:
        if isinstance(raw, schemas.PrescriptionItem):
            items.append(raw)
        elif isinstance(raw, Mapping):
            items.append(schemas.PrescriptionItem(
                medicine_name=_text(raw.get("medicineName", raw.get("medicine_name"))),
                dosage=_text(raw.get("dosage")),
                duration=_text(raw.get("duration")),
                instruction=_text(raw.get("instruction")),
            ))
    return items

def visit_from_row(row: Mapping[str, Any]) -> schemas.Visit:
    return schemas.Visit(
        id=_text(row.get("id")),
        patient_id=_text(row.get("patient_id")),
        date=_text(row.get("date")),
        symptoms=_text(row.get("symptoms")),
        diagnosis=_text(row.get("diagnosis")),
        prescription=_prescription_items(row.get("prescription")),
        notes=_text(row.get("notes")),
        fees=coerce_number(row.get("fees")),
        next_follow_up=_optional_text(row.get("next_follow_up")),
    )

def visit_to_row(entity: BaseModel, partial: bool = False) -> Dict[str, Any]:
    row = _to_row(entity, VISIT_COLUMNS, partial)
    if "prescription" in row:
        # Stored as the same camelCase document the UI sends
        row["prescription"] = [item.model_dump(by_alias=True) for item in row["prescription"] or []]
    return row


# ==================== APPOINTMENTS ====================

def appointment_from_row(row: Mapping[str, Any]) -> schemas.Appointment:
    return schemas.Appointment(
        id=_text(row.get("id")),
        patient_name=_text(row.get("patient_name")),
        patient_id=_optional_text(row.get("patient_id")) or None,
        mobile=_text(row.get("mobile")),
        date=_text(row.get("date")),
        time=_text(row.get("time")),
        status=_enum(schemas.AppointmentStatus, row.get("status"), schemas.AppointmentStatus.pending),
        type=_enum(schemas.AppointmentType, row.get("type"), schemas.AppointmentType.walk_in),
        notes=_optional_text(row.get("notes")),
    )

def appointment_to_row(entity: BaseModel, partial: bool = False) -> Dict[str, Any]:
    return _to_row(entity, APPOINTMENT_COLUMNS, partial)


# ==================== INVENTORY ====================

def inventory_from_row(row: Mapping[str, Any]) -> schemas.InventoryItem:
    return schemas.InventoryItem(
        id=_text(row.get("id")),
        name=_text(row.get("name")),
        potency=_text(row.get("potency")),
        type=_enum(schemas.InventoryType, row.get("type"), schemas.InventoryType.other),
        quantity=coerce_int(row.get("quantity")),
        min_level=coerce_int(row.get("min_level")),
        updated_at=_timestamp(row.get("updated_at")),
    )

def inventory_to_row(entity: BaseModel, partial: bool = False) -> Dict[str, Any]:
    return _to_row(entity, INVENTORY_COLUMNS, partial)

def is_low_stock(row: Mapping[str, Any]) -> bool:
    """Low-stock test over a (quantity, min_level) projection."""
    return coerce_int(row.get("quantity")) <= coerce_int(row.get("min_level"))


# ==================== EXPENSES ====================

def expense_from_row(row: Mapping[str, Any]) -> schemas.Expense:
    return schemas.Expense(
        id=_text(row.get("id")),
        title=_text(row.get("title")),
        amount=coerce_number(row.get("amount")),
        category=_text(row.get("category")),
        date=_text(row.get("date")),
        notes=_optional_text(row.get("notes")),
    )

def expense_to_row(entity: BaseModel, partial: bool = False) -> Dict[str, Any]:
    return _to_row(entity, EXPENSE_COLUMNS, partial)


def sum_column(rows: Iterable[Mapping[str, Any]], column: str) -> float:
    """Arithmetic sum of a money column; malformed cells count as zero."""
    return sum((coerce_number(row.get(column)) for row in rows), 0.0)
