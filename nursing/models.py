from datetime import date, datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def local_naive(value: datetime) -> datetime:
    """Timestamps are stored as naive local time; aware values are converted first."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class PersonInfo(SQLModel):
    """Personal details shared by anyone the hospital keeps a record of."""

    first_name: str = Field(min_length=1, max_length=75)
    last_name: str = Field(min_length=1, max_length=75)
    id_number: str = Field(min_length=1, max_length=20)
    phone_number: str = Field(max_length=20)
    date_of_birth: date
    email: Optional[str] = Field(default=None, max_length=75)
    address: Optional[str] = Field(default=None, max_length=150)


class Patient(SQLModel, table=True):
    __tablename__ = "patients"

    id: Optional[int] = Field(default=None, primary_key=True)
    # PersonInfo, stored flat
    first_name: str = Field(max_length=75)
    last_name: str = Field(max_length=75)
    id_number: str = Field(max_length=20, unique=True, index=True)
    phone_number: str = Field(max_length=20)
    date_of_birth: date
    email: Optional[str] = Field(default=None, max_length=75)
    address: Optional[str] = Field(default=None, max_length=150)
    # Ward
    admission_date: date
    room: int
    bed: int
    service: str = Field(max_length=35)
    medical_discharge_date: Optional[date] = None

    @classmethod
    def build(cls, person: PersonInfo, **ward) -> "Patient":
        return cls(**person.model_dump(), **ward)

    @property
    def person(self) -> PersonInfo:
        return PersonInfo.model_validate(self.model_dump(include=set(PersonInfo.model_fields)))


class PatientIn(SQLModel):
    person: PersonInfo
    admission_date: date
    room: int = Field(ge=0)
    bed: int = Field(ge=0)
    service: str = Field(min_length=1, max_length=35)
    medical_discharge_date: Optional[date] = None

    def to_patient(self, patient_id: Optional[int] = None) -> Patient:
        return Patient.build(
            self.person,
            id=patient_id,
            **self.model_dump(exclude={"person"}),
        )


class PatientOut(PatientIn):
    id: int

    @classmethod
    def from_patient(cls, patient: Patient) -> "PatientOut":
        return cls(
            id=patient.id,
            person=patient.person,
            admission_date=patient.admission_date,
            room=patient.room,
            bed=patient.bed,
            service=patient.service,
            medical_discharge_date=patient.medical_discharge_date,
        )


class ClinicalHistoryBase(SQLModel):
    sex: Optional[str] = Field(default=None, max_length=15)
    height: Optional[float] = Field(default=None, ge=0)  # metres
    weight: Optional[float] = Field(default=None, ge=0)  # kilograms
    blood_type: Optional[str] = Field(default=None, max_length=5)
    observations: Optional[str] = Field(default=None, max_length=250)


class ClinicalHistory(ClinicalHistoryBase, table=True):
    __tablename__ = "clinical_histories"

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: Optional[int] = Field(
        default=None, foreign_key="patients.id", unique=True, ondelete="CASCADE"
    )


class ClinicalHistoryOut(ClinicalHistoryBase):
    id: int
    patient_id: int


class NursingObservationBase(SQLModel):
    temperature: Optional[float] = None
    blood_pressure: Optional[str] = Field(default=None, max_length=10)
    heart_rate: Optional[str] = Field(default=None, max_length=5)
    respiratory_rate: Optional[str] = Field(default=None, max_length=5)
    notes: Optional[str] = Field(default=None, max_length=250)
    taken_at: datetime = Field(sa_type=DateTime(timezone=False))


class NursingObservation(NursingObservationBase, table=True):
    __tablename__ = "nursing_observations"

    id: Optional[int] = Field(default=None, primary_key=True)
    history_id: Optional[int] = Field(
        default=None, foreign_key="clinical_histories.id", index=True, ondelete="CASCADE"
    )


class NursingObservationUpdate(NursingObservationBase):
    id: int


class NursingObservationOut(NursingObservationBase):
    id: int
    history_id: int


class DateRangeRequest(SQLModel):
    start_date: datetime
    end_date: datetime


class PageRequest(SQLModel):
    page: int = Field(default=0, ge=0)
    size: int = Field(default=10, ge=1)
