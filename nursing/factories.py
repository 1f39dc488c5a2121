"""Record builders for tests and local seeding."""

from datetime import date, datetime

from nursing.models import NursingObservation, Patient, PersonInfo

# Fixed "now" for time-window tests
NOW = datetime(2024, 6, 1, 12, 0)


def make_patient(id_number="12345678", first_name="Ana", last_name="Pérez", service="Clínica"):
    return Patient.build(
        PersonInfo(
            first_name=first_name,
            last_name=last_name,
            id_number=id_number,
            phone_number="555-0100",
            date_of_birth=date(1980, 5, 17),
        ),
        admission_date=date(2024, 1, 1),
        room=12,
        bed=2,
        service=service,
    )


def make_observation(taken_at, temperature=36.6):
    return NursingObservation(
        temperature=temperature,
        blood_pressure="120/80",
        heart_rate="72",
        respiratory_rate="16",
        notes="stable",
        taken_at=taken_at,
    )
