import csv
from sqlalchemy.orm import Session
from database.db import SessionLocal, init_db
from models.courses import Course as CourseModel
from models.lecturers import Lecturer as LecturerModel
from models.students import Student as StudentModel

COURSES_CSV = "data/courses.csv"      # id,code,title,credit_unit,level,department
LECTURERS_CSV = "data/lecturers.csv"  # id,name,email,department
STUDENTS_CSV = "data/students.csv"    # id,matric_number,name,department,level


def _rows(path):
    with open(path, newline="", encoding="utf-8-sig") as csvfile:
        return list(csv.DictReader(csvfile))


def migrate_courses(db: Session):
    for row in _rows(COURSES_CSV):
        db.merge(CourseModel(
            id=int(row["id"]),
            code=row["code"].strip(),
            title=row["title"].strip(),
            credit_unit=int(row["credit_unit"] or 0),   # weight used for GPA
            level=row.get("level") or None,             # LEVEL_100 .. LEVEL_500
            department=row.get("department") or None,
            is_active=True,
        ))
    print("✅ courses CSV -> DB done")


def migrate_lecturers(db: Session):
    for row in _rows(LECTURERS_CSV):
        db.merge(LecturerModel(
            id=int(row["id"]),
            name=row["name"].strip(),
            email=row["email"].strip().lower(),
            department=row.get("department") or None,
        ))
    print("✅ lecturers CSV -> DB done")


def migrate_students(db: Session):
    for row in _rows(STUDENTS_CSV):
        db.merge(StudentModel(
            id=int(row["id"]),
            matric_number=row["matric_number"].strip(),
            name=row["name"].strip(),
            department=row.get("department") or None,
            level=row.get("level") or None,
        ))
    print("✅ students CSV -> DB done")


def migrate_catalog():
    init_db()
    db: Session = SessionLocal()
    try:
        migrate_courses(db)
        migrate_lecturers(db)
        migrate_students(db)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    migrate_catalog()
