# clinic/routers/appointments.py
from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List, Optional

from .. import schemas, security
from ..dependencies import get_repositories, unwrap
from ..storage.base import Repositories

router = APIRouter(
    tags=["Appointments"],
    dependencies=[Depends(security.require_session)],
    responses={404: {"description": "Not found"}},
)

# Online booking form; reachable without a session
public_router = APIRouter(tags=["Online Booking"])


@router.get("/appointments", response_model=List[schemas.Appointment])
async def read_appointments(
    date: Optional[str] = None,
    status: Optional[schemas.AppointmentStatus] = None,
    repos: Repositories = Depends(get_repositories),
):
    return await repos.appointments.list(date=date, status=status)

@router.get("/appointments/{appointment_id}", response_model=schemas.Appointment)
async def read_appointment(appointment_id: str, repos: Repositories = Depends(get_repositories)):
    appointment = await repos.appointments.get(appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail="The appointment could not be found.")
    return appointment

@router.post("/appointments", response_model=schemas.Appointment)
async def save_appointment(appointment: schemas.AppointmentUpsert, repos: Repositories = Depends(get_repositories)):
    """Creates the appointment, or replaces it when the body carries an id."""
    return unwrap(await repos.appointments.upsert(appointment))

@router.put("/appointments/{appointment_id}", response_model=schemas.Appointment)
async def update_appointment(appointment_id: str, payload: schemas.AppointmentUpdate,
                             repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.appointments.update(appointment_id, payload))

@router.patch("/appointments/{appointment_id}/status", response_model=schemas.Appointment)
async def change_appointment_status(appointment_id: str, payload: schemas.StatusUpdate,
                                    repos: Repositories = Depends(get_repositories)):
    """Confirm / complete / cancel without touching any other field."""
    return unwrap(await repos.appointments.update_status(appointment_id, payload.status))

@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(appointment_id: str, repos: Repositories = Depends(get_repositories)):
    unwrap(await repos.appointments.delete(appointment_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@public_router.post("/bookings", response_model=schemas.Appointment, status_code=status.HTTP_201_CREATED)
async def book_online(booking: schemas.OnlineBooking, repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.appointments.create(schemas.AppointmentCreate(
        patient_name=booking.name,
        mobile=booking.mobile,
        date=booking.date,
        time=booking.time,
        notes=booking.notes,
        status=schemas.AppointmentStatus.pending,
        type=schemas.AppointmentType.online,
    )))
