from typing import Optional
from fastapi import APIRouter, Depends, Query, HTTPException
from fastapi.responses import FileResponse
from app.auth.auth_permissions import UserContext, get_current_admin
from app.payroll.payslip_models import PaymentStatus
from app.payroll.payslip_schemas import (
    GeneratePayslipRequest, MonthlyPayslipRequest, PayslipStatusUpdate,
    SalaryUpdate, normalize_month
)
from app.payroll import payslip_service as service

router = APIRouter(prefix="/admin", tags=["Payroll"])


def _month_or_400(month: Optional[str]) -> Optional[str]:
    if not month:
        return None
    try:
        return normalize_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ==================== SALARY ====================

@router.get("/teachers/{teacher_id}/salary")
async def get_teacher_salary(
    teacher_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_teacher_salary(teacher_id)

@router.put("/teachers/{teacher_id}/salary")
async def update_teacher_salary(
    teacher_id: str,
    data: SalaryUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.update_teacher_salary(admin, teacher_id, data.dict(exclude_none=True))

@router.get("/salary-structure")
async def get_salary_structure(admin: UserContext = Depends(get_current_admin)):
    return await service.get_salary_structure()

# ==================== PAYSLIPS ====================

@router.get("/payroll/summary")
async def get_payroll_summary(
    year: Optional[int] = None,
    month: Optional[str] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_payroll_summary(year, _month_or_400(month))

@router.post("/payslips/generate", status_code=201)
async def generate_payslip(
    data: GeneratePayslipRequest,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Generate one payslip and its PDF

    - 404 if the employee is not a TEACHER or FACULTY_ADMIN
    - 400 if a payslip already exists for that month
    """
    return await service.generate_payslip(admin, data.dict())

@router.post("/payslips/generate-monthly")
async def generate_monthly_payslips(
    data: MonthlyPayslipRequest,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.generate_monthly_payslips(admin, data.month, data.year)

@router.get("/payslips")
async def list_payslips(
    employee_id: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[int] = None,
    status: Optional[PaymentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: UserContext = Depends(get_current_admin)
):
    return await service.list_payslips(
        employee_id,
        _month_or_400(month),
        year,
        status.value if status else None,
        page,
        limit
    )

@router.get("/payslips/employee/{employee_id}")
async def list_employee_payslips(
    employee_id: str,
    year: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: UserContext = Depends(get_current_admin)
):
    return await service.list_payslips(employee_id, year=year, page=page, limit=limit)

@router.get("/payslips/{payslip_id}")
async def get_payslip(
    payslip_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_payslip_or_404(payslip_id)

@router.get("/payslips/{payslip_id}/download")
async def download_payslip(
    payslip_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    filepath, filename = await service.download_payslip(admin, payslip_id)
    return FileResponse(filepath, media_type="application/pdf", filename=filename)

@router.put("/payslips/{payslip_id}/status")
async def update_payslip_status(
    payslip_id: str,
    data: PayslipStatusUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.update_payslip_status(admin, payslip_id, data.status.value, data.transaction_id)

@router.delete("/payslips/{payslip_id}")
async def delete_payslip(
    payslip_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.delete_payslip(admin, payslip_id)
