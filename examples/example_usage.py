"""Drive the service layer directly, without any HTTP layer.

Usage: APP_ENV=development python -m examples.example_usage <library_id> <student_id>
"""

import sys

from src.studyhall.studyhall.access.session import SessionContext
from src.studyhall.studyhall.core.enums import Role
from src.studyhall.studyhall.main import bootstrap


def main():
    library_id, student_id = int(sys.argv[1]), int(sys.argv[2])
    container = bootstrap()
    session = SessionContext(role=Role.STUDENT, library_id=library_id, student_id=student_id)

    print(container.attendance_service.get_status(session, student_id))
    for day in container.attendance_service.get_recent_history(session, student_id, limit=5):
        print(day.day, day.status.value, day.duration_text)


if __name__ == "__main__":
    main()
