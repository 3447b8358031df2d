"""Integration tests for the unauthenticated public API."""

from unittest.mock import AsyncMock

import pytest

from app.certificates import certificate_service
from app.public import public_service


@pytest.fixture
def public(monkeypatch):
    mocks = {
        "list_courses": AsyncMock(return_value={"courses": [], "pagination": {}}),
        "search_courses": AsyncMock(return_value={"count": 0, "courses": []}),
        "get_course": AsyncMock(return_value={"course": {"course_id": "CRS_1"}, "related_courses": []}),
        "get_popular_courses": AsyncMock(return_value={"courses": []}),
        "get_top_students": AsyncMock(return_value=[]),
    }
    for name, mock in mocks.items():
        monkeypatch.setattr(public_service, name, mock)
    return mocks


class TestPublicCourses:
    def test_listing_defaults_to_published(self, client, public) -> None:
        response = client.get("/public/courses")

        assert response.status_code == 200
        public["list_courses"].assert_awaited_once_with(None, None, "published", 1, 20)

    def test_search_passes_price_range(self, client, public) -> None:
        response = client.get("/public/courses/search", params={"q": "data", "min_price": 100, "max_price": 5000})

        assert response.status_code == 200
        public["search_courses"].assert_awaited_once_with("data", None, None, 100.0, 5000.0)

    def test_negative_price_is_rejected(self, client, public) -> None:
        assert client.get("/public/courses/search", params={"min_price": -1}).status_code == 422

    def test_named_routes_win_over_course_id(self, client, public) -> None:
        assert client.get("/public/courses/popular").status_code == 200
        public["get_popular_courses"].assert_awaited_once_with(6)
        public["get_course"].assert_not_awaited()

    def test_packages_are_static(self, client) -> None:
        packages = client.get("/public/courses/packages").json()["packages"]

        assert [p["id"] for p in packages] == ["basic", "standard", "premium"]

    def test_course_detail(self, client, public) -> None:
        response = client.get("/public/courses/COMUGDA1234")

        assert response.status_code == 200
        public["get_course"].assert_awaited_once_with("COMUGDA1234")


class TestVerification:
    def test_scan_metadata_is_forwarded(self, client, monkeypatch) -> None:
        verify = AsyncMock(return_value={"verification": {"is_authentic": True}})
        monkeypatch.setattr(certificate_service, "verify_student", verify)

        response = client.get(
            "/public/verify/NX24GENABC123",
            headers={"user-agent": "scanner/1.0", "referer": "https://example.com"},
        )

        assert response.status_code == 200
        assert verify.await_args.args == ("NX24GENABC123",)
        assert verify.await_args.kwargs["user_agent"] == "scanner/1.0"
        assert verify.await_args.kwargs["referrer"] == "https://example.com"

    def test_certificate_download_serves_pdf(self, client, monkeypatch, tmp_path) -> None:
        pdf = tmp_path / "NX-CERT-2024-ABC123.pdf"
        pdf.write_bytes(b"%PDF-1.4 test")
        monkeypatch.setattr(
            certificate_service, "get_certificate_file",
            AsyncMock(return_value=(str(pdf), "NX-CERT-2024-ABC123.pdf")),
        )

        response = client.get("/public/certificates/NX-CERT-2024-ABC123/download")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
