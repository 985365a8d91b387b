"""
Demo data for a fresh database: three accounts, five students per class,
a few notices and ZIMSEC resources. Runs only when the user collection is empty.
"""
import random
import logging

from config import SEED_PASSWORD
from database import create_document, now
from schemas import CLASS_CODES, User, Student, Notice, Resource
from security import get_password_hash

logger = logging.getLogger(__name__)

SAMPLE_NAMES = [
    "Tafadzwa Moyo", "Rutendo Ncube", "Tinashe Dube", "Chipo Mlambo",
    "Farai Sibanda", "Rumbi Chikwava",
]

DEMO_USERS = [
    {"username": "admin", "role": "admin", "name": "School Administrator", "email": "admin@mbizohigh.ac.zw"},
    {"username": "teacher1", "role": "staff", "name": "Mrs. Chikwava", "email": "chikwava@mbizohigh.ac.zw"},
    {"username": "student1", "role": "student", "name": "Tafadzwa Moyo", "email": "tafadzwa@student.mbizo.ac.zw",
     "student_id": "STU001", "class_code": "form4a"},
]

NOTICES = [
    ("Welcome Back to Term 1",
     "School reopens on January 9th, 2025. All students should report by 8:00 AM."),
    ("ZIMSEC Exam Registration",
     "Registration for November 2025 ZIMSEC examinations is now open. "
     "All Form 4 students must register by March 31st."),
    ("Parent-Teacher Meeting",
     "The first Parent-Teacher meeting of the term will be held on February 15th, 2025 at 2:00 PM."),
]

RESOURCES = [
    ("Mathematics Paper 1 - 2024", "Past Paper", "Mathematics", "Mathematics", 2024, "math-paper-1-2024.pdf"),
    ("English Literature Notes", "Study Notes", "English", "English Literature", 2024, "english-lit-notes.pdf"),
    ("Chemistry Practical Guide", "Study Notes", "Science", "Chemistry", 2024, "chemistry-practical-guide.pdf"),
    ("History Revision Questions", "Past Paper", "History", "History", 2023, "history-revision-questions.pdf"),
    ("Geography Map Work", "Study Notes", "Geography", "Geography", 2024, "geography-map-work.pdf"),
    ("Physics Formula Sheet", "Study Notes", "Science", "Physics", 2024, "physics-formula-sheet.pdf"),
]

STUDENTS_PER_CLASS = 5


def seed_database(db) -> bool:
    """Populate an empty database. Returns False when users already exist."""
    if db["user"].count_documents({}) > 0:
        return False

    password_hash = get_password_hash(SEED_PASSWORD)
    admin_id = None
    for data in DEMO_USERS:
        user = User(password_hash=password_hash, **data)
        doc = create_document(db, "user", user.model_dump())
        if data["role"] == "admin":
            admin_id = doc["id"]

    for class_code in CLASS_CODES:
        for i in range(STUDENTS_PER_CLASS):
            student = Student(
                user=None,
                name=f"{SAMPLE_NAMES[i % len(SAMPLE_NAMES)]} {class_code} {i}",
                class_code=class_code,
                attendance=random.randint(80, 99),
                performance=random.randint(70, 99),
                status="present",
            )
            create_document(db, "student", student.model_dump())

    for title, content in NOTICES:
        notice = Notice(title=title, content=content, author=admin_id, timestamp=now())
        create_document(db, "notice", notice.model_dump())

    for title, kind, category, subject, year, filename in RESOURCES:
        resource = Resource(
            title=title,
            type=kind,
            category=category,
            subject=subject,
            year=year,
            file_url=f"https://example.com/{filename}",
            uploaded_by=admin_id,
            timestamp=now(),
        )
        create_document(db, "resource", resource.model_dump())

    logger.info("Sample data initialized")
    return True
