"""
LMS Configuration
Environment driven settings shared by every module
"""

import os

# Database
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "lms_db")

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

# Frontend links embedded in QR codes
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# File storage
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
PAYSLIP_DIR = os.path.join(UPLOAD_DIR, "payslips")
DOCUMENT_DIR = os.path.join(UPLOAD_DIR, "documents")
CERTIFICATE_DIR = os.path.join(UPLOAD_DIR, "certificates")

# Company details printed on payslips
COMPANY_NAME = os.getenv("COMPANY_NAME", "Learning Management System")
COMPANY_ADDRESS = os.getenv("COMPANY_ADDRESS", "")
COMPANY_PAN = os.getenv("COMPANY_PAN", "")
COMPANY_TAN = os.getenv("COMPANY_TAN", "")
COMPANY_GST = os.getenv("COMPANY_GST", "")

# Certificates
INSTITUTE_NAME = os.getenv("INSTITUTE_NAME", "NEXORA Institute of Excellence")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

# Scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Asia/Kolkata")

# Default employee shift
DEFAULT_SHIFT_START = "09:00"
DEFAULT_SHIFT_END = "17:00"
DEFAULT_GRACE_PERIOD_MINUTES = 15
DEFAULT_WORKING_HOURS = 8

# Attendance QR defaults
QR_DEFAULT_VALID_HOURS = 1
QR_DEFAULT_MAX_USES = 1
QR_DEFAULT_GEOFENCE_RADIUS = 100

# Attendance records older than this cannot be deleted
ATTENDANCE_DELETE_WINDOW_DAYS = 30

VERSION = os.getenv("VERSION", "1.0.0")
