import logging
from app.database import db

logger = logging.getLogger(__name__)


async def create_indexes():
    """
    Create database indexes for optimal query performance
    Called during application startup
    """

    # Users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index("unique_id", unique=True)
    await db.users.create_index("enrollment_number", sparse=True)
    await db.users.create_index([("role", 1), ("is_active", 1)])
    await db.users.create_index("certificates.certificate_id", sparse=True)

    # Classrooms
    await db.classrooms.create_index("classroom_id", unique=True)
    await db.classrooms.create_index("teacher_id")
    await db.classrooms.create_index("students")

    # Assignments & questions
    await db.assignments.create_index("assignment_id", unique=True)
    await db.assignments.create_index([("classroom_id", 1), ("is_published", 1)])
    await db.assignments.create_index("created_by")
    await db.questions.create_index("question_id", unique=True)
    await db.questions.create_index([("assignment_id", 1), ("order", 1)])

    # Submissions
    await db.submissions.create_index("submission_id", unique=True)
    await db.submissions.create_index([("assignment_id", 1), ("student_id", 1)], unique=True)
    await db.submissions.create_index([("student_id", 1), ("created_at", -1)])
    await db.submissions.create_index("classroom_id")

    # Attendance
    await db.student_attendance.create_index([("classroom_id", 1), ("date", 1)], unique=True)
    await db.teacher_attendance.create_index([("employee_id", 1), ("date", 1)], unique=True)
    await db.teacher_attendance.create_index("record_id", unique=True)
    await db.teacher_attendance.create_index([("date", 1), ("status", 1)])
    await db.attendance_qr.create_index("code", unique=True)
    await db.attendance_qr.create_index([("is_active", 1), ("valid_until", 1)])
    await db.geofences.create_index("geofence_id", unique=True)
    await db.geofences.create_index("is_active")

    # Payroll & documents
    await db.payslips.create_index("payslip_id", unique=True)
    await db.payslips.create_index([("employee_id", 1), ("month", 1), ("year", 1)], unique=True)
    await db.payslips.create_index([("year", -1), ("month_number", -1)])
    await db.employee_documents.create_index("document_id", unique=True)
    await db.employee_documents.create_index([("employee_id", 1), ("document_type", 1)])

    # Courses
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("code", unique=True)
    await db.courses.create_index([("department", 1), ("level", 1)])
    await db.courses.create_index("status")
    await db.courses.create_index("instructors")
    await db.courses.create_index("tags")
    await db.course_categories.create_index("category_id", unique=True)
    await db.course_categories.create_index("name", unique=True)
    await db.course_categories.create_index("slug", unique=True)
    await db.course_enrollments.create_index("enrollment_id", unique=True)
    await db.course_enrollments.create_index([("course_id", 1), ("student_id", 1)], unique=True)
    await db.course_enrollments.create_index([("student_id", 1), ("status", 1)])
    await db.course_enrollments.create_index("certificate_id", sparse=True)

    # Public verification
    await db.qr_scans.create_index("unique_id", unique=True)

    # Audit logs
    await db.audit_logs.create_index("actor_user_id")
    await db.audit_logs.create_index([("target_type", 1), ("target_id", 1)])
    await db.audit_logs.create_index("timestamp")
    await db.audit_logs.create_index([("actor_user_id", 1), ("timestamp", -1)])

    logger.info("Database indexes created")
