"""Unit tests for payslip calculations, validation and PDF rendering."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from app.auth.auth_models import compute_net_salary, default_teacher_salary
from app.payroll.payslip_models import (
    compute_totals,
    format_currency,
    growth_percent,
    month_number,
    previous_month,
    salary_range,
)
from app.payroll.payslip_pdf import (
    DEDUCTION_LABELS,
    EARNING_LABELS,
    component_rows,
    payslip_path,
    render_payslip_pdf,
    write_payslip_pdf,
)
from app.payroll.payslip_schemas import GeneratePayslipRequest
from app.payroll.payslip_service import build_payslip, summarize_salaries


def employee(net: float = 50000, department: str = "Computer Science") -> dict:
    return {
        "user_id": "USR_T1",
        "name": "Asha Rao",
        "email": "asha@example.com",
        "role": "TEACHER",
        "employee_record": {
            "employee_id": "TCH240001",
            "department": department,
            "designation": "Lecturer",
            "salary": {
                "basic": 40000, "hra": 16000, "da": 6000, "ta": 2000,
                "pf": 4800, "tax": 6400, "net_salary": net,
                "bank_account": {"account_number": "1234", "ifsc_code": "IFSC0001", "bank_name": "State Bank"},
            },
        },
    }


class TestCalculations:
    def test_totals_are_plain_sums(self) -> None:
        earned, deducted, net = compute_totals(
            {"basic": 1000, "hra": 400, "bonus": None},
            {"pf": 120, "loan": 80},
        )

        assert earned.total_earnings == 1400
        assert deducted.total_deductions == 200
        assert net == 1200

    def test_net_salary_of_salary_record(self) -> None:
        assert compute_net_salary({"basic": 100, "hra": 50, "pf": 10, "tax": None}) == 140
        assert default_teacher_salary().net_salary == 52800

    def test_month_helpers(self) -> None:
        assert month_number("March") == 3
        assert previous_month("January", 2024) == ("December", 2023)
        assert previous_month("July", 2024) == ("June", 2024)

    def test_growth_percent(self) -> None:
        assert growth_percent(110, 100) == 10.0
        assert growth_percent(50, 0) == 0

    def test_salary_range_buckets(self) -> None:
        assert salary_range(29999) == "below_30000"
        assert salary_range(30000) == "between_30000_and_50000"
        assert salary_range(69999.5) == "between_50000_and_70000"
        assert salary_range(70000) == "above_70000"

    def test_format_currency_uses_indian_grouping(self) -> None:
        assert format_currency(1234567.5) == "₹12,34,567.5"
        assert format_currency(999) == "₹999"
        assert format_currency(100000) == "₹1,00,000"
        assert format_currency(-2500.25) == "-₹2,500.25"
        assert format_currency(None) == "₹0"


class TestSchemas:
    def test_month_name_is_normalized(self) -> None:
        request = GeneratePayslipRequest(employee_id="USR_T1", month="march", year=2024)
        assert request.month == "March"

    def test_unknown_month_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GeneratePayslipRequest(employee_id="USR_T1", month="Smarch", year=2024)


class TestBuildPayslip:
    def test_defaults_come_from_salary_record(self) -> None:
        payslip = build_payslip(employee(), "March", 2024, earnings={"bonus": 5000, "hra": None})

        assert payslip.payslip_id.startswith("PAY_")
        assert payslip.month_number == 3
        assert payslip.earnings.hra == 16000
        assert payslip.earnings.bonus == 5000
        assert payslip.earnings.total_earnings == 69000
        assert payslip.deductions.total_deductions == 11200
        assert payslip.net_salary == 57800
        assert payslip.employee_code == "TCH240001"
        assert payslip.bank_details.bank_name == "State Bank"

    def test_summarize_salaries(self) -> None:
        summary = summarize_salaries([
            employee(25000, "Physics"),
            employee(45000, "Physics"),
            employee(80000, "Mathematics"),
        ])

        assert summary["total_employees"] == 3
        assert summary["total_monthly_payroll"] == 150000
        assert summary["average_salary"] == 50000
        assert summary["by_department"]["Physics"] == {"count": 2, "total_salary": 70000, "average": 35000}
        assert summary["salary_ranges"]["below_30000"] == 1
        assert summary["salary_ranges"]["above_70000"] == 1


class TestPdf:
    def test_optional_components_only_listed_when_non_zero(self) -> None:
        rows = component_rows(
            {"basic": 1000, "hra": 0, "bonus": 200, "total_earnings": 1200},
            EARNING_LABELS, "Total Earnings", "total_earnings",
        )

        labels = [r[0] for r in rows]
        assert labels == ["Component", "Basic Salary", "House Rent Allowance (HRA)", "Bonus", "Total Earnings"]
        assert rows[-1][1] == "₹1,200"

    def test_deduction_rows_always_include_pf_and_tds(self) -> None:
        rows = component_rows({"total_deductions": 0}, DEDUCTION_LABELS, "Total Deductions", "total_deductions")
        assert [r[0] for r in rows][1:3] == ["Provident Fund (PF)", "Tax Deducted at Source (TDS)"]

    def test_render_returns_pdf_bytes(self) -> None:
        payslip = build_payslip(employee(), "March", 2024).dict()
        payslip["payment_date"] = datetime(2024, 3, 31)

        pdf = render_payslip_pdf(payslip)

        assert pdf.startswith(b"%PDF")

    def test_write_saves_file_under_directory(self, tmp_path) -> None:
        payslip = build_payslip(employee(), "March", 2024).dict()

        pdf_url, filepath = write_payslip_pdf(payslip, directory=str(tmp_path))

        assert pdf_url.startswith("/uploads/payslips/payslip_TCH240001_March_2024_")
        assert payslip_path(pdf_url, str(tmp_path)) == filepath
        with open(filepath, "rb") as f:
            assert f.read(4) == b"%PDF"
