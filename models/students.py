from sqlalchemy import Column, Integer, String
from database.db import Base

class Student(Base):
    __tablename__ = "students"  # student master data

    id = Column(Integer, primary_key=True, index=True)                  # student ID (Primary Key)
    matric_number = Column(String(30), unique=True, nullable=False)    # matriculation number
    name = Column(String(100), nullable=False)                         # full name
    department = Column(String(100))                                   # department name
    level = Column(String(20))                                         # current level (e.g. LEVEL_300)
