import os
import logging
from datetime import datetime
from typing import Optional, Tuple
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError
from app.database import db, generate_id
from app.auth.auth_models import Role, EMPLOYEE_ROLES, compute_net_salary
from app.auth.auth_permissions import UserContext
from app.common_audit import log_audit
from app.payroll.payslip_models import (
    Payslip, PaymentStatus, BankDetails, CompanyDetails, MONTHS,
    compute_totals, components_from_salary, month_number, previous_month,
    growth_percent, salary_range
)
from app.payroll.payslip_pdf import write_payslip_pdf, payslip_path

logger = logging.getLogger(__name__)

SALARY_FIELDS = ("basic", "hra", "da", "ta", "pf", "tax")

# ==================== HELPERS ====================

async def get_employee_or_404(employee_id: str) -> dict:
    employee = await db.users.find_one({"user_id": employee_id, "role": {"$in": EMPLOYEE_ROLES}})
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee

async def get_payslip_or_404(payslip_id: str) -> dict:
    payslip = await db.payslips.find_one({"payslip_id": payslip_id}, {"_id": 0})
    if not payslip:
        raise HTTPException(status_code=404, detail="Payslip not found")
    return payslip

def build_payslip(
    employee: dict,
    month: str,
    year: int,
    earnings: Optional[dict] = None,
    deductions: Optional[dict] = None,
    generated_by: Optional[str] = None,
    notes: Optional[str] = None
) -> Payslip:
    """
    Assemble a payslip for one employee

    Components not given explicitly fall back to the employee's salary record.
    """
    record = employee.get("employee_record") or {}
    salary = record.get("salary") or {}
    default_earnings, default_deductions = components_from_salary(salary)

    merged_earnings = {**default_earnings, **{k: v for k, v in (earnings or {}).items() if v is not None}}
    merged_deductions = {**default_deductions, **{k: v for k, v in (deductions or {}).items() if v is not None}}
    earned, deducted, net = compute_totals(merged_earnings, merged_deductions)

    bank = salary.get("bank_account") or {}

    return Payslip(
        payslip_id=generate_id("PAY"),
        employee_id=employee["user_id"],
        employee_name=employee["name"],
        employee_email=employee["email"],
        employee_code=record.get("employee_id"),
        department=record.get("department") or employee.get("department"),
        designation=record.get("designation") or employee.get("designation"),
        role=employee.get("role"),
        month=month,
        month_number=month_number(month),
        year=year,
        earnings=earned,
        deductions=deducted,
        net_salary=net,
        bank_details=BankDetails(
            account_number=bank.get("account_number"),
            ifsc_code=bank.get("ifsc_code"),
            bank_name=bank.get("bank_name"),
        ),
        company_details=CompanyDetails(),
        payment_status=PaymentStatus.PROCESSED,
        payment_date=datetime.utcnow(),
        generated_by=generated_by,
        notes=notes,
    )

async def _save_with_pdf(payslip: Payslip) -> dict:
    doc = payslip.dict()
    pdf_url, filepath = write_payslip_pdf(doc)
    doc["pdf_url"] = pdf_url
    doc["pdf_generated_at"] = datetime.utcnow()
    try:
        await db.payslips.insert_one(doc)
    except Exception:
        if os.path.exists(filepath):
            os.remove(filepath)
        raise
    doc.pop("_id", None)
    return doc

# ==================== GENERATION ====================

async def generate_payslip(admin: UserContext, data: dict) -> dict:
    employee = await get_employee_or_404(data["employee_id"])

    existing = await db.payslips.find_one({
        "employee_id": employee["user_id"],
        "month": data["month"],
        "year": data["year"],
    })
    if existing:
        raise HTTPException(status_code=400, detail="Payslip already exists for this month")

    payslip = build_payslip(
        employee,
        data["month"],
        data["year"],
        earnings=data.get("earnings"),
        deductions=data.get("deductions"),
        generated_by=admin.user_id,
        notes=data.get("notes"),
    )

    try:
        doc = await _save_with_pdf(payslip)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Payslip already exists for this month")

    await log_audit(admin, "generate_payslip", "payslip", doc["payslip_id"], {
        "employee_id": employee["user_id"],
        "month": data["month"],
        "year": data["year"],
        "net_salary": doc["net_salary"],
    })
    logger.info("Payslip %s generated for %s (%s %s)", doc["payslip_id"], employee["user_id"], data["month"], data["year"])
    return doc

async def generate_monthly_payslips(admin: UserContext, month: str, year: int) -> dict:
    """
    Generate payslips for every employee with a salary record

    One failing employee never stops the batch; each lands in success, skipped or error.
    """
    cursor = db.users.find({
        "role": {"$in": EMPLOYEE_ROLES},
        "employee_record.salary": {"$exists": True},
    })
    employees = await cursor.to_list(length=None)

    results = []
    for employee in employees:
        try:
            existing = await db.payslips.find_one({
                "employee_id": employee["user_id"],
                "month": month,
                "year": year,
            })
            if existing:
                results.append({
                    "employee": employee["name"],
                    "status": "skipped",
                    "message": "Payslip already exists",
                })
                continue

            doc = await _save_with_pdf(build_payslip(employee, month, year, generated_by=admin.user_id))
            results.append({
                "employee": employee["name"],
                "status": "success",
                "payslip_id": doc["payslip_id"],
            })
        except Exception as e:
            logger.error("Payslip generation failed for %s: %s", employee.get("user_id"), e, exc_info=True)
            results.append({
                "employee": employee.get("name"),
                "status": "error",
                "error": str(e),
            })

    generated = len([r for r in results if r["status"] == "success"])
    await log_audit(admin, "generate_monthly_payslips", "payslip", f"{month}-{year}", {"generated": generated})
    logger.info("Monthly payslips for %s %s: %d generated", month, year, generated)

    return {
        "message": f"Generated payslips for {generated} employees",
        "results": results,
    }

# ==================== QUERIES ====================

async def list_payslips(
    employee_id: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20
) -> dict:
    query = {}
    if employee_id:
        query["employee_id"] = employee_id
    if month:
        query["month"] = month
    if year:
        query["year"] = year
    if status:
        query["payment_status"] = status

    cursor = (
        db.payslips.find(query, {"_id": 0})
        .sort([("year", -1), ("month_number", -1)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    payslips = await cursor.to_list(length=limit)
    total = await db.payslips.count_documents(query)

    return {
        "payslips": payslips,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }

async def download_payslip(admin: UserContext, payslip_id: str) -> Tuple[str, str]:
    """
    Resolve the PDF for a payslip, rendering it again if the file is gone

    Returns:
        (filepath, download filename)
    """
    payslip = await get_payslip_or_404(payslip_id)

    filepath = payslip_path(payslip["pdf_url"]) if payslip.get("pdf_url") else None
    update = {
        "is_downloaded": True,
        "downloaded_at": datetime.utcnow(),
        "downloaded_by": admin.user_id,
    }

    if not filepath or not os.path.exists(filepath):
        logger.warning("Payslip PDF missing for %s, regenerating", payslip_id)
        pdf_url, filepath = write_payslip_pdf(payslip)
        update["pdf_url"] = pdf_url
        update["pdf_generated_at"] = datetime.utcnow()

    await db.payslips.update_one({"payslip_id": payslip_id}, {"$set": update})
    return filepath, f"payslip_{payslip['month']}_{payslip['year']}.pdf"

async def get_payroll_summary(year: Optional[int] = None, month: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """
    Monthly payroll totals plus growth of the selected (or current) month over the one before
    """
    match = {}
    if year:
        match["year"] = year
    if month:
        match["month"] = month

    pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": {"year": "$year", "month": "$month", "month_number": "$month_number"},
                "total_payroll": {"$sum": "$net_salary"},
                "avg_salary": {"$avg": "$net_salary"},
                "min_salary": {"$min": "$net_salary"},
                "max_salary": {"$max": "$net_salary"},
                "count": {"$sum": 1},
                "employees": {"$addToSet": "$employee_id"},
            }
        },
        {"$sort": {"_id.year": -1, "_id.month_number": -1}},
    ]
    groups = await db.payslips.aggregate(pipeline).to_list(length=None)

    monthly = [{
        "year": g["_id"]["year"],
        "month": g["_id"]["month"],
        "total_payroll": round(g["total_payroll"], 2),
        "avg_salary": round(g["avg_salary"], 2),
        "min_salary": g["min_salary"],
        "max_salary": g["max_salary"],
        "count": g["count"],
        "unique_employees": len(g["employees"]),
    } for g in groups]

    now = now or datetime.utcnow()
    current_month = month or MONTHS[now.month - 1]
    current_year = year or now.year
    prev_month, prev_year = previous_month(current_month, current_year)

    async def total_for(m: str, y: int) -> float:
        rows = await db.payslips.aggregate([
            {"$match": {"month": m, "year": y}},
            {"$group": {"_id": None, "total": {"$sum": "$net_salary"}}},
        ]).to_list(length=1)
        return rows[0]["total"] if rows else 0

    current_total = await total_for(current_month, current_year)
    previous_total = await total_for(prev_month, prev_year)

    return {
        "monthly": monthly,
        "comparison": {
            "current_month": current_month,
            "current_year": current_year,
            "previous_month": prev_month,
            "previous_year": prev_year,
            "current_total": current_total,
            "previous_total": previous_total,
            "growth": growth_percent(current_total, previous_total),
        },
    }

# ==================== STATUS / DELETE ====================

async def update_payslip_status(admin: UserContext, payslip_id: str, status: str, transaction_id: Optional[str] = None) -> dict:
    await get_payslip_or_404(payslip_id)

    update = {"payment_status": status, "updated_at": datetime.utcnow()}
    if status == PaymentStatus.PAID.value:
        update["payment_date"] = datetime.utcnow()
    if transaction_id:
        update["transaction_id"] = transaction_id

    await db.payslips.update_one({"payslip_id": payslip_id}, {"$set": update})
    await log_audit(admin, "update_payslip_status", "payslip", payslip_id, {"status": status})

    return await get_payslip_or_404(payslip_id)

async def delete_payslip(admin: UserContext, payslip_id: str) -> dict:
    payslip = await get_payslip_or_404(payslip_id)

    if payslip.get("pdf_url"):
        filepath = payslip_path(payslip["pdf_url"])
        if os.path.exists(filepath):
            os.remove(filepath)

    await db.payslips.delete_one({"payslip_id": payslip_id})
    await log_audit(admin, "delete_payslip", "payslip", payslip_id, {
        "employee_id": payslip["employee_id"],
        "month": payslip["month"],
        "year": payslip["year"],
    })

    return {"message": "Payslip deleted successfully"}

# ==================== SALARY ====================

async def _get_teacher_or_404(teacher_id: str) -> dict:
    teacher = await db.users.find_one({"user_id": teacher_id, "role": Role.TEACHER.value})
    if not teacher:
        raise HTTPException(status_code=404, detail="Teacher not found")
    return teacher

async def get_teacher_salary(teacher_id: str) -> dict:
    teacher = await _get_teacher_or_404(teacher_id)
    return (teacher.get("employee_record") or {}).get("salary") or {}

async def update_teacher_salary(admin: UserContext, teacher_id: str, data: dict) -> dict:
    """
    Update salary components; omitted components keep their current value
    """
    teacher = await _get_teacher_or_404(teacher_id)
    current = (teacher.get("employee_record") or {}).get("salary") or {}

    salary = {k: data.get(k) if data.get(k) is not None else (current.get(k) or 0) for k in SALARY_FIELDS}
    salary["net_salary"] = compute_net_salary(salary)
    salary["bank_account"] = {**(current.get("bank_account") or {}), **(data.get("bank_account") or {})}

    await db.users.update_one(
        {"user_id": teacher_id},
        {"$set": {"employee_record.salary": salary, "updated_at": datetime.utcnow()}}
    )
    await log_audit(admin, "update_salary", "user", teacher_id, {"net_salary": salary["net_salary"]})

    return salary

def summarize_salaries(employees: list) -> dict:
    """Totals, averages, per-department figures and salary range counts"""
    nets = [((e.get("employee_record") or {}).get("salary") or {}).get("net_salary") or 0 for e in employees]
    total = sum(nets)

    summary = {
        "total_employees": len(employees),
        "total_monthly_payroll": total,
        "average_salary": round(total / len(employees), 2) if employees else 0,
        "by_department": {},
        "salary_ranges": {
            "below_30000": 0,
            "between_30000_and_50000": 0,
            "between_50000_and_70000": 0,
            "above_70000": 0,
        },
    }

    for employee, net in zip(employees, nets):
        summary["salary_ranges"][salary_range(net)] += 1

        dept = (employee.get("employee_record") or {}).get("department") or "Other"
        bucket = summary["by_department"].setdefault(dept, {"count": 0, "total_salary": 0, "average": 0})
        bucket["count"] += 1
        bucket["total_salary"] += net

    for bucket in summary["by_department"].values():
        bucket["average"] = round(bucket["total_salary"] / bucket["count"], 2)

    return summary

async def get_salary_structure() -> dict:
    cursor = db.users.find(
        {"role": {"$in": EMPLOYEE_ROLES}, "employee_record": {"$exists": True}},
        {
            "_id": 0, "user_id": 1, "name": 1, "email": 1, "role": 1,
            "employee_record.employee_id": 1,
            "employee_record.department": 1,
            "employee_record.designation": 1,
            "employee_record.salary": 1,
            "employee_record.joining_date": 1,
        }
    )
    employees = await cursor.to_list(length=None)

    return {
        "employees": employees,
        "summary": summarize_salaries(employees),
    }
