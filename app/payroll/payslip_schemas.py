from pydantic import BaseModel, Field, validator
from typing import Optional
from app.payroll.payslip_models import MONTHS, PaymentStatus


def normalize_month(v: str) -> str:
    month = (v or "").strip().capitalize()
    if month not in MONTHS:
        raise ValueError(f"month must be one of: {', '.join(MONTHS)}")
    return month

# ==================== PAYSLIPS ====================

class EarningsInput(BaseModel):
    basic: Optional[float] = Field(None, ge=0)
    hra: Optional[float] = Field(None, ge=0)
    da: Optional[float] = Field(None, ge=0)
    ta: Optional[float] = Field(None, ge=0)
    special_allowance: Optional[float] = Field(None, ge=0)
    bonus: Optional[float] = Field(None, ge=0)
    other_earnings: Optional[float] = Field(None, ge=0)

class DeductionsInput(BaseModel):
    pf: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    professional_tax: Optional[float] = Field(None, ge=0)
    loan: Optional[float] = Field(None, ge=0)
    other_deductions: Optional[float] = Field(None, ge=0)

class GeneratePayslipRequest(BaseModel):
    employee_id: str
    month: str
    year: int = Field(..., ge=2000, le=2100)
    earnings: EarningsInput = Field(default_factory=EarningsInput)
    deductions: DeductionsInput = Field(default_factory=DeductionsInput)
    notes: Optional[str] = Field(None, max_length=500)

    _month = validator("month", allow_reuse=True)(normalize_month)

class MonthlyPayslipRequest(BaseModel):
    month: str
    year: int = Field(..., ge=2000, le=2100)

    _month = validator("month", allow_reuse=True)(normalize_month)

class PayslipStatusUpdate(BaseModel):
    status: PaymentStatus
    transaction_id: Optional[str] = None

# ==================== SALARY ====================

class SalaryUpdate(BaseModel):
    basic: Optional[float] = Field(None, ge=0)
    hra: Optional[float] = Field(None, ge=0)
    da: Optional[float] = Field(None, ge=0)
    ta: Optional[float] = Field(None, ge=0)
    pf: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    bank_account: Optional[dict] = None
