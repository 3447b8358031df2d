import os
import logging
from datetime import datetime
from typing import Optional, Tuple
from fastapi import HTTPException
from app.database import db
from app.auth.auth_models import Role
from app.auth.auth_permissions import UserContext
from app.common_audit import log_audit
from app.config import INSTITUTE_NAME
from app.qr_codes import make_qr_data_url
from app.certificates.certificate_models import (
    Certificate, CertificateType, generate_certificate_id,
    certificate_verification_url, student_verification_url,
    format_submission, assignment_stats, format_enrollment, course_stats,
    collect_certificates
)
from app.certificates.certificate_render import write_course_certificate, certificate_path

logger = logging.getLogger(__name__)

PUBLIC_STUDENT_FIELDS = {
    "_id": 0, "user_id": 1, "name": 1, "unique_id": 1, "enrollment_number": 1,
    "avatar": 1, "batch": 1, "current_semester": 1, "cgpa": 1, "backlogs": 1,
    "education": 1, "skills": 1, "certificates": 1, "placement_status": 1,
    "is_placement_eligible": 1,
}

# ==================== ISSUE ====================

async def issue_certificates(admin: UserContext, data: dict) -> dict:
    """
    Push a certificate into every selected student's profile

    Unknown students and failed updates are reported per student.
    """
    student_ids = data["student_ids"]
    students = await db.users.find(
        {"user_id": {"$in": student_ids}, "role": Role.STUDENT.value},
        {"_id": 0, "user_id": 1}
    ).to_list(length=None)
    found = {s["user_id"] for s in students}

    issued, errors = [], []
    for student_id in student_ids:
        if student_id not in found:
            errors.append({"student_id": student_id, "message": "Student not found"})
            continue

        certificate_id = generate_certificate_id()
        certificate = Certificate(
            certificate_id=certificate_id,
            type=data.get("type") or CertificateType.ACHIEVEMENT,
            title=data["title"],
            description=data.get("description"),
            qr_code=make_qr_data_url(certificate_verification_url(certificate_id)),
            metadata={"score": data.get("score"), "issued_by": admin.user_id},
        )
        try:
            await db.users.update_one(
                {"user_id": student_id},
                {"$push": {"certificates": certificate.dict()}}
            )
        except Exception as e:
            logger.error("Certificate issue failed for %s", student_id, exc_info=True)
            errors.append({"student_id": student_id, "message": str(e)})
            continue
        issued.append({"student_id": student_id, "certificate_id": certificate_id})

    await log_audit(
        admin,
        "issue_certificates",
        "certificate",
        data["title"],
        {"issued": len(issued), "failed": len(errors)}
    )
    logger.info("Issued %d certificates (%d failed)", len(issued), len(errors))

    return {
        "message": "Certificates issued successfully",
        "issued_certificates": issued,
        "errors": errors,
    }


async def issue_course_certificate(admin: UserContext, enrollment_id: str, instructor_name: Optional[str] = None) -> dict:
    enrollment = await db.course_enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0})
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    if enrollment.get("status") != "completed":
        raise HTTPException(status_code=400, detail="Course has not been completed")

    student = await db.users.find_one({"user_id": enrollment["student_id"]}, {"_id": 0, "name": 1})
    course = await db.courses.find_one({"course_id": enrollment["course_id"]}, {"_id": 0})
    if not student or not course:
        raise HTTPException(status_code=404, detail="Student or course not found")

    certificate_id = enrollment.get("certificate_id") or generate_certificate_id()
    url, _ = write_course_certificate(certificate_id, **_render_details(enrollment, student, course, instructor_name))

    await db.course_enrollments.update_one(
        {"enrollment_id": enrollment_id},
        {"$set": {
            "certificate_issued": True,
            "certificate_id": certificate_id,
            "certificate_url": url,
            "updated_at": datetime.utcnow(),
        }}
    )
    await db.users.update_one(
        {"user_id": enrollment["student_id"], "enrolled_courses.course_id": enrollment["course_id"]},
        {"$set": {
            "enrolled_courses.$.certificate_issued": True,
            "enrolled_courses.$.certificate_url": url,
        }}
    )

    await log_audit(admin, "issue_course_certificate", "enrollment", enrollment_id, {"certificate_id": certificate_id})

    return {
        "message": "Certificate generated successfully",
        "certificate_id": certificate_id,
        "certificate_url": url,
        "verification_url": certificate_verification_url(certificate_id),
    }


def _render_details(enrollment: dict, student: dict, course: dict, instructor_name: Optional[str] = None) -> dict:
    duration = course.get("duration") or {}
    details = {
        "student_name": student["name"],
        "course_name": course["title"],
        "issue_date": enrollment.get("completion_date") or datetime.utcnow(),
        "grade": enrollment.get("final_grade"),
        "percentage": enrollment.get("final_percentage"),
        "duration": f"{duration['value']} {duration.get('unit', 'semesters')}" if duration.get("value") else None,
    }
    if instructor_name:
        details["instructor_name"] = instructor_name
    return details

# ==================== PUBLIC VERIFICATION ====================

async def _find_public_student(unique_id: str, projection: dict = PUBLIC_STUDENT_FIELDS) -> dict:
    student = await db.users.find_one(
        {"$or": [{"unique_id": unique_id}, {"enrollment_number": unique_id}], "role": Role.STUDENT.value},
        projection
    )
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


async def track_scan(unique_id: str, ip: Optional[str], user_agent: Optional[str], referrer: Optional[str]):
    now = datetime.utcnow()
    await db.qr_scans.update_one(
        {"unique_id": unique_id},
        {
            "$inc": {"access_count": 1},
            "$set": {"last_accessed": now},
            "$push": {"access_logs": {
                "timestamp": now,
                "ip": ip,
                "user_agent": user_agent,
                "referrer": referrer,
            }},
        },
        upsert=True
    )


async def verify_student(
    unique_id: str,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None
) -> dict:
    """
    Public verification page for a student's QR code

    Looks the student up by unique id or enrollment number, records the scan
    and returns their academic record with every certificate they hold.
    """
    student = await _find_public_student(unique_id)
    await track_scan(unique_id, ip, user_agent, referrer)

    submissions = await db.submissions.find(
        {"student_id": student["user_id"]}, {"_id": 0, "answers": 0}
    ).sort("created_at", -1).to_list(length=None)

    assignment_ids = list({s["assignment_id"] for s in submissions})
    assignments = {
        a["assignment_id"]: a
        for a in await db.assignments.find(
            {"assignment_id": {"$in": assignment_ids}},
            {"_id": 0, "assignment_id": 1, "title": 1, "total_marks": 1, "classroom_id": 1}
        ).to_list(length=None)
    }
    classroom_names = {
        c["classroom_id"]: c.get("name")
        for c in await db.classrooms.find(
            {"classroom_id": {"$in": list({a["classroom_id"] for a in assignments.values()})}},
            {"_id": 0, "classroom_id": 1, "name": 1}
        ).to_list(length=None)
    }

    formatted_submissions = []
    for s in submissions:
        assignment = assignments.get(s["assignment_id"])
        classroom = classroom_names.get(assignment["classroom_id"]) if assignment else None
        formatted_submissions.append(format_submission(s, assignment, classroom))

    enrollments = await db.course_enrollments.find(
        {"student_id": student["user_id"]}, {"_id": 0}
    ).sort("enrollment_date", -1).to_list(length=None)
    courses = {
        c["course_id"]: c
        for c in await db.courses.find(
            {"course_id": {"$in": [e["course_id"] for e in enrollments]}},
            {"_id": 0, "course_id": 1, "title": 1, "code": 1, "credits": 1, "level": 1, "department": 1}
        ).to_list(length=None)
    }
    formatted_enrollments = [format_enrollment(e, courses.get(e["course_id"])) for e in enrollments]

    certificates = collect_certificates(
        student.get("certificates", []), formatted_submissions, formatted_enrollments
    )

    return {
        "student": {
            "name": student.get("name"),
            "unique_id": student.get("unique_id"),
            "enrollment_number": student.get("enrollment_number"),
            "avatar": student.get("avatar"),
            "batch": student.get("batch"),
            "current_semester": student.get("current_semester"),
            "cgpa": student.get("cgpa", 0),
            "backlogs": student.get("backlogs") or 0,
            "placement_status": student.get("placement_status"),
            "is_placement_eligible": student.get("is_placement_eligible", False),
            "education": student.get("education", []),
            "skills": student.get("skills", []),
            "stats": {
                "cgpa": student.get("cgpa", 0),
                "backlogs": student.get("backlogs") or 0,
                "total_certificates": len(certificates),
                **assignment_stats(formatted_submissions),
                **course_stats(formatted_enrollments),
            },
        },
        "assignments": formatted_submissions,
        "courses": {"detailed": formatted_enrollments},
        "certificates": certificates,
        "verification": {
            "verified_at": datetime.utcnow().isoformat(),
            "method": "QR_CODE",
            "unique_id": unique_id,
            "issued_by": INSTITUTE_NAME,
            "is_authentic": True,
        },
    }


async def quick_verify(unique_id: str) -> dict:
    student = await _find_public_student(unique_id, {
        "_id": 0, "user_id": 1, "name": 1, "unique_id": 1,
        "enrollment_number": 1, "batch": 1, "avatar": 1, "certificates": 1,
    })
    completed = await db.course_enrollments.count_documents({
        "student_id": student["user_id"],
        "status": "completed",
        "certificate_issued": True,
    })
    public_count = len([c for c in student.get("certificates", []) if c.get("is_public")])

    return {
        "student": {
            "name": student.get("name"),
            "unique_id": student.get("unique_id"),
            "enrollment_number": student.get("enrollment_number"),
            "batch": student.get("batch"),
            "avatar": student.get("avatar"),
        },
        "stats": {"certificates_issued": public_count + completed},
        "verification_url": student_verification_url(student["unique_id"]),
    }

# ==================== LOOKUP ====================

async def get_certificate(certificate_id: str) -> dict:
    student = await db.users.find_one(
        {"certificates.certificate_id": certificate_id, "role": Role.STUDENT.value},
        {"_id": 0, "name": 1, "unique_id": 1, "enrollment_number": 1, "certificates": 1}
    )
    if student:
        certificate = next(c for c in student["certificates"] if c.get("certificate_id") == certificate_id)
        if not certificate.get("is_public"):
            raise HTTPException(status_code=404, detail="Certificate not found")
        return _certificate_view(student, certificate)

    enrollment = await db.course_enrollments.find_one(
        {"certificate_id": certificate_id, "certificate_issued": True}, {"_id": 0}
    )
    if not enrollment:
        raise HTTPException(status_code=404, detail="Certificate not found")

    student = await db.users.find_one(
        {"user_id": enrollment["student_id"]},
        {"_id": 0, "name": 1, "unique_id": 1, "enrollment_number": 1}
    ) or {}
    course = await db.courses.find_one({"course_id": enrollment["course_id"]}, {"_id": 0, "title": 1, "code": 1}) or {}

    return _certificate_view(student, {
        "certificate_id": certificate_id,
        "type": CertificateType.COURSE_COMPLETION.value,
        "title": f"Course Completion: {course.get('title')}",
        "description": f"Completed {course.get('title')} with {enrollment.get('final_grade') or 'Pass'}",
        "issue_date": enrollment.get("completion_date"),
        "url": enrollment.get("certificate_url"),
        "metadata": {
            "course_id": enrollment["course_id"],
            "course_code": course.get("code"),
            "grade": enrollment.get("final_grade"),
            "percentage": enrollment.get("final_percentage"),
        },
    })


def _certificate_view(student: dict, certificate: dict) -> dict:
    certificate = {k: v for k, v in certificate.items() if k != "is_public"}
    return {
        "certificate": certificate,
        "student": {
            "name": student.get("name"),
            "unique_id": student.get("unique_id"),
            "enrollment_number": student.get("enrollment_number"),
        },
        "verification": {
            "verified_at": datetime.utcnow().isoformat(),
            "issued_by": INSTITUTE_NAME,
            "is_authentic": True,
        },
    }


async def get_certificate_file(certificate_id: str) -> Tuple[str, str]:
    """Path of a course certificate PDF, regenerated when the file is gone"""
    enrollment = await db.course_enrollments.find_one(
        {"certificate_id": certificate_id, "certificate_issued": True}, {"_id": 0}
    )
    if not enrollment:
        raise HTTPException(status_code=404, detail="Certificate not found")

    filepath = certificate_path(certificate_id)
    if not os.path.exists(filepath):
        student = await db.users.find_one({"user_id": enrollment["student_id"]}, {"_id": 0, "name": 1})
        course = await db.courses.find_one({"course_id": enrollment["course_id"]}, {"_id": 0})
        if not student or not course:
            raise HTTPException(status_code=404, detail="Certificate not found")
        _, filepath = write_course_certificate(certificate_id, **_render_details(enrollment, student, course))

    return filepath, f"{certificate_id}.pdf"
