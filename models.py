from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional, Literal
from datetime import datetime

Status = Literal["Available", "Rented"]
BillingCycle = Literal["day", "month"]
PaymentMode = Literal["Cash", "Credit Card", "Bank Transfer", "Other"]
RentalState = Literal["active", "completed"]

MAX_PHOTOS = 4

class Document(BaseModel):
    # camelCase on the wire and in stored documents, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

class PaymentIn(Document):
    amount: float = Field(gt=0, allow_inf_nan=False)
    date: Optional[str] = None
    mode: PaymentMode = "Cash"

class Payment(Document):
    id: str
    amount: float = Field(gt=0, allow_inf_nan=False)
    date: str
    mode: PaymentMode

class RentIn(Document):
    customer_id: str
    rate: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    billing_cycle: Optional[BillingCycle] = None
    out_date: Optional[datetime] = None
    agreement_copy: Optional[str] = None

class Rental(Document):
    id: str
    customer_id: str
    out_date: datetime
    in_date: Optional[datetime] = None
    rate: float = Field(ge=0, allow_inf_nan=False)
    billing_cycle: BillingCycle
    payments: list[Payment] = Field(default_factory=list)
    agreement_copy: Optional[str] = None

class AssetIn(Document):
    name: str
    product_type: str
    make: str = ""
    model: str = ""
    serial_number: str = ""
    purchase_date: str = ""
    photos: list[str] = Field(default_factory=list, max_length=MAX_PHOTOS)
    rate: float = Field(default=0, ge=0, allow_inf_nan=False)
    billing_cycle: BillingCycle = "day"

class Asset(AssetIn):
    id: str
    status: Status = "Available"
    rental_history: list[Rental] = Field(default_factory=list)

class CustomerIn(Document):
    name: str
    email: str
    phone: str
    phone2: Optional[str] = None
    aadhar: Optional[str] = None
    address: Optional[str] = None
    photo: Optional[str] = None

class Customer(CustomerIn):
    id: str

class ProductTypeIn(BaseModel):
    name: str

class SecuritySettings(BaseModel):
    password: str
    question: str = ""
    answer: str = ""

class SecurityUpdate(Document):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None

class LoginIn(BaseModel):
    password: str

class RecoverIn(BaseModel):
    answer: str

class OperationResult(BaseModel):
    success: bool
    message: str

class BackupDocument(Document):
    """Shape of an export file; also what an import must look like."""

    assets: list[Asset]
    customers: list[Customer]
    product_types: list[str]
    app_password: str = Field(min_length=1)
    security_question: str = ""
    security_answer: str = ""
    export_date: Optional[str] = None
    version: str = "1.0"

    @field_validator("security_question", "security_answer", mode="before")
    @classmethod
    def _none_to_blank(cls, v):
        return v or ""

class AutoBackupInfo(BaseModel):
    data: Optional[dict[str, Any]] = None
    timestamp: Optional[int] = None

class RentalSummary(Document):
    rental_id: str
    asset_id: str
    asset_name: str
    customer_id: str
    customer_name: Optional[str] = None
    out_date: datetime
    in_date: Optional[datetime] = None
    billing_cycle: BillingCycle
    rate: float
    duration: int
    total_billed: float
    total_paid: float
    balance: float

class DashboardStats(Document):
    total_assets: int
    rented_assets: int
    available_assets: int
    total_customers: int

class ScanKeyIn(Document):
    key: str
    at_ms: float
    in_form_field: bool = False

class ScanResult(Document):
    asset: Optional[Asset] = None
    message: Optional[str] = None
