from datetime import datetime
from typing import Optional, Tuple
from pydantic import BaseModel, Field
from enum import Enum
from app.config import COMPANY_NAME, COMPANY_ADDRESS, COMPANY_PAN, COMPANY_TAN, COMPANY_GST

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

EARNING_COMPONENTS = ("basic", "hra", "da", "ta", "special_allowance", "bonus", "other_earnings")
DEDUCTION_COMPONENTS = ("pf", "tax", "professional_tax", "loan", "other_deductions")

# ==================== ENUMS ====================

class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    PAID = "PAID"
    FAILED = "FAILED"

# ==================== PAYSLIP ====================

class Earnings(BaseModel):
    basic: float = 0
    hra: float = 0
    da: float = 0
    ta: float = 0
    special_allowance: float = 0
    bonus: float = 0
    other_earnings: float = 0
    total_earnings: float = 0

class Deductions(BaseModel):
    pf: float = 0
    tax: float = 0
    professional_tax: float = 0
    loan: float = 0
    other_deductions: float = 0
    total_deductions: float = 0

class BankDetails(BaseModel):
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None

class CompanyDetails(BaseModel):
    name: str = COMPANY_NAME
    address: Optional[str] = COMPANY_ADDRESS
    pan: Optional[str] = COMPANY_PAN
    tan: Optional[str] = COMPANY_TAN
    gst: Optional[str] = COMPANY_GST

class Payslip(BaseModel):
    payslip_id: str  # PAY_XXXXXX
    employee_id: str
    employee_name: str
    employee_email: str
    employee_code: Optional[str] = None  # TCH240001
    department: Optional[str] = None
    designation: Optional[str] = None
    role: Optional[str] = None

    month: str
    month_number: int
    year: int

    earnings: Earnings
    deductions: Deductions
    net_salary: float

    bank_details: BankDetails = Field(default_factory=BankDetails)
    company_details: CompanyDetails = Field(default_factory=CompanyDetails)

    payment_status: PaymentStatus = PaymentStatus.PROCESSED
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None

    pdf_url: Optional[str] = None
    pdf_generated_at: Optional[datetime] = None

    generated_by: Optional[str] = None
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    notes: Optional[str] = None

    is_downloaded: bool = False
    downloaded_at: Optional[datetime] = None
    downloaded_by: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== CALCULATIONS ====================

def month_number(month: str) -> int:
    return MONTHS.index(month) + 1

def previous_month(month: str, year: int) -> Tuple[str, int]:
    index = month_number(month) - 1
    if index == 0:
        return MONTHS[-1], year - 1
    return MONTHS[index - 1], year

def compute_totals(earnings: dict, deductions: dict) -> Tuple[Earnings, Deductions, float]:
    """
    Totals are plain sums of the components; net = earnings - deductions
    """
    earned = Earnings(**{k: earnings.get(k) or 0 for k in EARNING_COMPONENTS})
    earned.total_earnings = sum(getattr(earned, k) for k in EARNING_COMPONENTS)

    deducted = Deductions(**{k: deductions.get(k) or 0 for k in DEDUCTION_COMPONENTS})
    deducted.total_deductions = sum(getattr(deducted, k) for k in DEDUCTION_COMPONENTS)

    return earned, deducted, earned.total_earnings - deducted.total_deductions

def components_from_salary(salary: dict) -> Tuple[dict, dict]:
    """Split an employee salary record into earning and deduction components"""
    salary = salary or {}
    earnings = {k: salary.get(k) or 0 for k in ("basic", "hra", "da", "ta")}
    deductions = {k: salary.get(k) or 0 for k in ("pf", "tax")}
    return earnings, deductions

def growth_percent(current: float, previous: float) -> float:
    if previous <= 0:
        return 0
    return round((current - previous) / previous * 100, 2)

def salary_range(net_salary: float) -> str:
    if net_salary < 30000:
        return "below_30000"
    if net_salary < 50000:
        return "between_30000_and_50000"
    if net_salary < 70000:
        return "between_50000_and_70000"
    return "above_70000"

def format_currency(amount) -> str:
    """Rupee amount with Indian digit grouping, e.g. 1234567.5 -> ₹12,34,567.5"""
    amount = round(float(amount or 0), 2)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    fraction = fraction.rstrip("0")
    return f"{sign}₹{whole}" + (f".{fraction}" if fraction else "")
