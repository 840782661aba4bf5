from pydantic import BaseModel, Field


class AppointmentCreate(BaseModel):
    """New appointment form"""

    patient_id: str = Field(default="", description="Patient id")
    doctor_id: str | None = Field(default=None, description="Assigned clinician id")
    date: str = Field(default="", description="Date (YYYY-MM-DD)")
    time: str = Field(default="", description="Time (HH:MM)")
    type: str = Field(default="Consulta", description="Encounter type")
    reason: str | None = Field(default=None, description="Reason for the visit")


class StatusChange(BaseModel):
    """Requested status change"""

    status: str = Field(..., description="Target status")


class TypeChange(BaseModel):
    """Requested encounter type change"""

    type: str = Field(..., description="Target encounter type")


class TriageSubmit(BaseModel):
    """Triage form as typed by nursing"""

    bp: str = ""
    hr: str = ""
    temp: str = ""
    rr: str = ""
    sat: str = ""
    weight: str = ""
    height: str = ""
    glucose: str = ""
    chief_complaint: str = ""
    history: str = ""
    allergies: str = ""
    medications: str = ""
    pain_level: str = "0"
    consciousness: str = "Alerta"
    risk_classification: str = "blue"


class EncounterSubmit(BaseModel):
    """Clinical encounter form"""

    evolution: str = ""
    diagnosis: str = ""
    prescription: str = ""


class LabTestRequest(BaseModel):
    """New lab order"""

    patient_id: str = Field(default="", description="Patient id")
    testName: str = Field(default="", description="Test name")
    date: str | None = Field(default=None, description="Order date (YYYY-MM-DD)")
    notes: str | None = Field(default=None, description="Order notes")
    urgent: bool = Field(default=False, description="Order flagged as urgent")


class LabResult(BaseModel):
    """Result attachment (data URL or stored file reference)"""

    file: str = Field(default="", description="Result attachment")


class LabStatusChange(BaseModel):
    """Requested lab order status"""

    status: str = Field(..., description="Target status")


class LabOpinion(BaseModel):
    """Medical opinion on a completed lab test"""

    opinion: str = Field(default="", description="Opinion text")


class VaccinationSubmit(BaseModel):
    """Administered vaccine dose"""

    vaccine_stock_id: str = Field(default="", description="Stock item id")
    dose: str = Field(default="", description="Dose label")
    vaccination_date: str | None = Field(default=None, description="Date (YYYY-MM-DD)")


class VaccineStockItem(BaseModel):
    """Vaccine stock item upsert"""

    id: str | None = Field(default=None, description="Stock item id")
    name: str = Field(default="", description="Vaccine name")
    batch: str = Field(default="", description="Batch")
    quantity: int = Field(default=0, ge=0, description="Units on hand")
    expiry_date: str | None = Field(default=None, description="Expiry date (YYYY-MM-DD)")
