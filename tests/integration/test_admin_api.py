"""Integration tests for the admin back office, payroll and certificate issuing routes."""

from unittest.mock import AsyncMock

import pytest

from app.admin import admin_router, people_service
from app.certificates import certificate_service
from app.payroll import payslip_service


class TestAccess:
    @pytest.mark.parametrize("path", ["/admin/stats", "/admin/teachers", "/admin/payslips", "/admin/audit-logs"])
    def test_faculty_admin_is_forbidden(self, login_as, faculty_admin_user, path) -> None:
        response = login_as(faculty_admin_user).get(path)

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Requires one of: ADMIN"

    def test_missing_bearer_token_is_401(self, client) -> None:
        response = client.get("/admin/stats", headers={"Authorization": "Basic abc"})

        assert response.status_code == 401


class TestPeople:
    def test_leave_decision_is_validated(self, login_as, admin_user, monkeypatch) -> None:
        decide = AsyncMock(return_value={"message": "Leave approved successfully"})
        monkeypatch.setattr(people_service, "decide_leave", decide)
        client = login_as(admin_user)

        assert client.put("/admin/teachers/USR_T/leaves/LV_1", json={"status": "MAYBE"}).status_code == 422

        response = client.put("/admin/teachers/USR_T/leaves/LV_1", json={"status": "APPROVED"})

        assert response.status_code == 200
        assert decide.await_args.args[1:] == ("USR_T", "LV_1", "APPROVED")

    def test_audit_logs_are_filtered(self, login_as, admin_user, monkeypatch) -> None:
        trail = AsyncMock(return_value=[{"action": "delete_course"}])
        monkeypatch.setattr(admin_router, "get_audit_trail", trail)

        response = login_as(admin_user).get("/admin/audit-logs", params={"target_type": "course", "limit": 5})

        assert response.json() == [{"action": "delete_course"}]
        trail.assert_awaited_once_with("course", None, 5)


class TestPayroll:
    def test_generate_payslip_normalizes_month(self, login_as, admin_user, monkeypatch) -> None:
        generate = AsyncMock(return_value={"message": "Payslip generated successfully"})
        monkeypatch.setattr(payslip_service, "generate_payslip", generate)

        response = login_as(admin_user).post(
            "/admin/payslips/generate",
            json={"employee_id": "USR_T", "month": "march", "year": 2024, "earnings": {"bonus": 500}},
        )

        assert response.status_code == 201
        data = generate.await_args.args[1]
        assert data["month"] == "March"
        assert data["earnings"]["bonus"] == 500

    def test_negative_component_is_rejected(self, login_as, admin_user) -> None:
        response = login_as(admin_user).post(
            "/admin/payslips/generate",
            json={"employee_id": "USR_T", "month": "March", "year": 2024, "deductions": {"loan": -1}},
        )

        assert response.status_code == 422

    def test_summary_rejects_unknown_month(self, login_as, admin_user, monkeypatch) -> None:
        summary = AsyncMock(return_value={})
        monkeypatch.setattr(payslip_service, "get_payroll_summary", summary)

        response = login_as(admin_user).get("/admin/payroll/summary", params={"month": "Smarch"})

        assert response.status_code == 400
        summary.assert_not_awaited()


class TestCertificates:
    def test_issue_requires_students_and_title(self, login_as, admin_user) -> None:
        client = login_as(admin_user)

        assert client.post("/admin/certificates/issue", json={"student_ids": [], "title": "Winner"}).status_code == 422
        assert client.post("/admin/certificates/issue", json={"student_ids": ["S1"], "title": ""}).status_code == 422

    def test_issue(self, login_as, admin_user, monkeypatch) -> None:
        issue = AsyncMock(return_value={"message": "Certificates issued successfully", "issued_certificates": [], "errors": []})
        monkeypatch.setattr(certificate_service, "issue_certificates", issue)

        response = login_as(admin_user).post(
            "/admin/certificates/issue", json={"student_ids": ["S1"], "title": "Hackathon Winner"}
        )

        assert response.status_code == 200
        assert issue.await_args.args[1]["type"].value == "ACHIEVEMENT"

    def test_course_certificate_without_body(self, login_as, faculty_admin_user, monkeypatch) -> None:
        issue = AsyncMock(return_value={"certificate_id": "NX-CERT-2024-ABC123"})
        monkeypatch.setattr(certificate_service, "issue_course_certificate", issue)

        response = login_as(faculty_admin_user).post("/courses/enrollments/ENR_1/certificate")

        assert response.status_code == 201
        assert issue.await_args.args[1:] == ("ENR_1", None)
