# clinic/schemas.py
import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"

# --- Vocabularies (suggestions only, never enforced) ---
BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]

PRESET_DOSAGES = [
    "1-0-1 (Morning-Night)",
    "1-1-1 (Morning-Afternoon-Night)",
    "1-0-0 (Morning only)",
    "0-0-1 (Night only)",
    "SOS (As needed)",
]

EXPENSE_CATEGORIES = [
    "Clinic Maintenance",
    "Medicine Stock",
    "Salary/Wages",
    "Rent/Utilities",
    "Marketing",
    "Other",
]


# --- Numeric coercion ---
def coerce_number(value: Any, default: float = 0.0) -> float:
    """Best-effort float; anything non-numeric (or NaN/inf) becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def coerce_int(value: Any, default: int = 0) -> int:
    return int(coerce_number(value, float(default)))


def reject_null(value: Any) -> Any:
    """Patch fields may be omitted, but a required column cannot be cleared."""
    if value is None:
        raise ValueError("may be omitted but not set to null")
    return value


# --- Enum Classes ---
class Gender(str, Enum):
    male = "Male"
    female = "Female"
    other = "Other"

class AppointmentStatus(str, Enum):
    pending = "Pending"
    confirmed = "Confirmed"
    completed = "Completed"
    cancelled = "Cancelled"

class AppointmentType(str, Enum):
    online = "Online"
    walk_in = "Walk-in"

class InventoryType(str, Enum):
    dilution = "Dilution"
    mother_tincture = "Mother Tincture"
    bio_chemic = "Bio-Chemic"
    ointment = "Ointment"
    other = "Other"

class Failure(str, Enum):
    backend = "backend"
    not_found = "not_found"
    invalid = "invalid"


# --- Base Schemas ---
class BaseSchema(BaseModel):
    """Domain shape: snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

class InputSchema(BaseSchema):
    """Create/patch payloads reject keys they do not know."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# --- Patient Schemas ---
class Patient(BaseSchema):
    id: str
    name: str = ""
    mobile: str = ""
    age: int = 0
    gender: Optional[Gender] = None
    blood_group: Optional[str] = None
    address: str = ""
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None
    registered_date: Optional[datetime] = None

class PatientCreate(InputSchema):
    name: str = Field(..., min_length=1, max_length=255)
    mobile: str = Field(..., min_length=1, max_length=20)
    age: int = Field(0, ge=0)
    gender: Gender
    blood_group: Optional[str] = Field(None, max_length=5)
    address: str = ""
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, v):
        return coerce_int(v)

class PatientUpdate(InputSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    mobile: Optional[str] = Field(None, min_length=1, max_length=20)
    age: Optional[int] = Field(None, ge=0)
    gender: Optional[Gender] = None
    blood_group: Optional[str] = Field(None, max_length=5)
    address: Optional[str] = None
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None

    @field_validator("name", "mobile", "address", "gender", mode="before")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, v):
        return coerce_int(reject_null(v))


# --- Visit Schemas ---
class PrescriptionItem(BaseSchema):
    medicine_name: str = ""
    dosage: str = ""  # e.g. "1-0-1 (Morning-Night)"
    duration: str = ""  # e.g. "5 days"
    instruction: str = ""  # e.g. "After food"

class Visit(BaseSchema):
    id: str
    patient_id: str
    date: str = ""
    symptoms: str = ""
    diagnosis: str = ""
    prescription: List[PrescriptionItem] = Field(default_factory=list)
    notes: str = ""
    fees: float = 0.0
    next_follow_up: Optional[str] = None

class VisitCreate(InputSchema):
    patient_id: str = Field(..., min_length=1)
    date: str = Field(..., pattern=DATE_PATTERN)
    symptoms: str = ""
    diagnosis: str = ""
    prescription: List[PrescriptionItem] = Field(default_factory=list)
    notes: str = ""
    fees: float = Field(0.0, ge=0)
    next_follow_up: Optional[str] = Field(None, pattern=DATE_PATTERN)

    @field_validator("fees", mode="before")
    @classmethod
    def coerce_fees(cls, v):
        return coerce_number(v)


# --- Appointment Schemas ---
class Appointment(BaseSchema):
    id: str
    patient_name: str = ""
    patient_id: Optional[str] = None
    mobile: str = ""
    date: str = ""
    time: str = ""
    status: AppointmentStatus = AppointmentStatus.pending
    type: AppointmentType = AppointmentType.walk_in
    notes: Optional[str] = None

class AppointmentCreate(InputSchema):
    patient_name: str = Field(..., min_length=1, max_length=255)
    patient_id: Optional[str] = None
    mobile: str = Field(..., min_length=1, max_length=20)
    date: str = Field(..., pattern=DATE_PATTERN)
    time: str = Field(..., pattern=TIME_PATTERN)
    status: AppointmentStatus = AppointmentStatus.pending
    type: AppointmentType = AppointmentType.walk_in
    notes: Optional[str] = None

    @field_validator("patient_id", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

class AppointmentUpsert(AppointmentCreate):
    id: Optional[str] = None

class AppointmentUpdate(InputSchema):
    patient_name: Optional[str] = Field(None, min_length=1, max_length=255)
    patient_id: Optional[str] = None
    mobile: Optional[str] = Field(None, min_length=1, max_length=20)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    status: Optional[AppointmentStatus] = None
    type: Optional[AppointmentType] = None
    notes: Optional[str] = None

    @field_validator("patient_name", "mobile", "date", "time", "status", "type", mode="before")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)

class StatusUpdate(InputSchema):
    status: AppointmentStatus

class OnlineBooking(InputSchema):
    """Public booking form; always lands as a Pending, Online appointment."""
    name: str = Field(..., min_length=1, max_length=255)
    mobile: str = Field(..., min_length=1, max_length=20)
    date: str = Field(..., pattern=DATE_PATTERN)
    time: str = Field(..., pattern=TIME_PATTERN)
    notes: Optional[str] = None


# --- Inventory Schemas ---
class InventoryItem(BaseSchema):
    id: str
    name: str = ""
    potency: str = ""  # e.g. 30, 200, 1M, Q
    type: InventoryType = InventoryType.other
    quantity: int = 0
    min_level: int = 0
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def low_stock(self) -> bool:
        return self.quantity <= self.min_level

class InventoryItemCreate(InputSchema):
    name: str = Field(..., min_length=1, max_length=255)
    potency: str = Field("", max_length=20)
    type: InventoryType = InventoryType.other
    quantity: int = Field(0, ge=0)
    min_level: int = Field(5, ge=0)

    @field_validator("quantity", "min_level", mode="before")
    @classmethod
    def coerce_counts(cls, v):
        return coerce_int(v)

class InventoryItemUpsert(InventoryItemCreate):
    id: Optional[str] = None

class InventoryItemUpdate(InputSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    potency: Optional[str] = Field(None, max_length=20)
    type: Optional[InventoryType] = None
    quantity: Optional[int] = Field(None, ge=0)
    min_level: Optional[int] = Field(None, ge=0)

    @field_validator("quantity", "min_level", mode="before")
    @classmethod
    def coerce_counts(cls, v):
        return coerce_int(reject_null(v))

    @field_validator("name", "potency", "type", mode="before")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)


# --- Expense Schemas ---
class Expense(BaseSchema):
    id: str
    title: str = ""
    amount: float = 0.0
    category: str = ""
    date: str = ""
    notes: Optional[str] = None

class ExpenseCreate(InputSchema):
    title: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., ge=0)
    category: str = Field("Clinic Maintenance", max_length=50)
    date: str = Field(..., pattern=DATE_PATTERN)
    notes: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return coerce_number(v)


# --- Dashboard / Finance Schemas ---
class DashboardStats(BaseSchema):
    total_patients: int = 0
    total_visits: int = 0
    today_appointments: int = 0
    total_revenue: float = 0.0
    low_stock_items: int = 0

class FinanceSummary(BaseSchema):
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    visit_count: int = 0
    expense_count: int = 0


# --- Operation results ---
T = TypeVar("T")

class WriteResult(BaseModel, Generic[T]):
    """Outcome of a write. Falsy on failure; ``value`` may be None on success."""
    value: Optional[T] = None
    failure: Optional[Failure] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None) -> "WriteResult":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: Failure, detail: Optional[str] = None) -> "WriteResult":
        return cls(failure=failure, detail=detail)


# --- Session / Advice Schemas ---
class LoginRequest(InputSchema):
    pin: str = Field(..., min_length=1)

class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class PinChangeRequest(InputSchema):
    current_pin: str
    new_pin: str
    confirm_pin: str

class HealthAdviceRequest(InputSchema):
    symptoms: str = ""
    diagnosis: str = ""

class NotesSummaryRequest(InputSchema):
    notes: str = Field(..., min_length=1)

class TextResponse(BaseSchema):
    text: str
