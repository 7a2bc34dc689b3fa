import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "studyhall_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

EXPIRING_SOON_DAYS = 30
IMMINENT_EXPIRY_DAYS = 2
FEE_SPLIT_POLICY = "strict"

QR_PAYLOAD_TYPE = "attendance"
PROVISION_STUDENT_ACCOUNTS = True
ORG_ATTENDANCE_PAGE_LIMIT = 50
