"""Unit tests for password hashing, tokens and identifier generation."""

import re

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from app.auth.auth_models import (
    check_profile_completeness,
    generate_employee_id,
    generate_employee_unique_id,
    generate_enrollment_number,
    generate_student_unique_id,
    generate_unique_id,
)
from app.auth.auth_schemas import RegisterRequest
from app.auth.auth_utils import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_bearer_token,
    verify_password,
)
from app.database import generate_id


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("s3cret!")

        assert hashed.startswith("$2b$")
        assert verify_password("s3cret!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_empty_password_cannot_be_hashed(self) -> None:
        with pytest.raises(ValueError):
            hash_password("")

    def test_invalid_stored_hash_does_not_verify(self) -> None:
        assert verify_password("s3cret!", "not-a-bcrypt-hash") is False
        assert verify_password("s3cret!", None) is False


class TestTokens:
    def test_round_trip_carries_subject_and_role(self) -> None:
        payload = decode_access_token(create_access_token("USR_1", "TEACHER"))

        assert payload["sub"] == "USR_1"
        assert payload["role"] == "TEACHER"

    def test_expired_token_is_rejected(self) -> None:
        token = create_access_token("USR_1", "TEACHER", expires_days=-1)

        with pytest.raises(HTTPException) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401

    def test_bearer_header_is_required(self) -> None:
        with pytest.raises(HTTPException) as exc:
            verify_bearer_token("Token abc")
        assert exc.value.detail == "Unauthorized"


class TestIdentifiers:
    def test_prefixed_ids(self) -> None:
        assert re.fullmatch(r"CRS_[0-9A-F]{16}", generate_id("CRS"))

    def test_student_unique_id(self) -> None:
        assert re.fullmatch(r"NX\d{2}COM[0-9A-F]{6}", generate_student_unique_id("computer"))
        assert re.fullmatch(r"NX\d{2}GEN[0-9A-F]{6}", generate_student_unique_id())

    def test_employee_unique_id_uses_initials(self) -> None:
        assert re.fullmatch(r"TCH\d{2}AR[0-9A-F]{6}", generate_employee_unique_id("TEACHER", "Asha Rao"))
        assert re.fullmatch(r"FAC\d{2}MKS[0-9A-F]{6}", generate_unique_id("FACULTY_ADMIN", "Mira K Sen"))
        assert generate_unique_id("ADMIN", "Root").startswith("ADM")

    def test_employee_id_and_enrollment_number(self) -> None:
        assert re.fullmatch(r"TCH\d{2}0001", generate_employee_id("TEACHER", 0))
        assert re.fullmatch(r"ENR-\d{4}-PHY-\d{4}", generate_enrollment_number("Physics"))


class TestProfile:
    def test_student_profile_needs_education_and_skills(self) -> None:
        user = {"role": "STUDENT", "name": "Ravi", "email": "r@example.com", "phone": "99999"}

        assert check_profile_completeness(user) is False
        assert check_profile_completeness({**user, "education": [{}], "skills": [{}]}) is True

    def test_register_email_is_normalized(self) -> None:
        request = RegisterRequest(name="Ravi", email="  Ravi@Example.COM ", password="secret1")
        assert request.email == "ravi@example.com"

        with pytest.raises(ValidationError):
            RegisterRequest(name="Ravi", email="not-an-email", password="secret1")
