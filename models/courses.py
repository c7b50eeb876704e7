from sqlalchemy import Column, Integer, String, Boolean
from database.db import Base

class Course(Base):
    __tablename__ = "courses"  # course catalogue

    id = Column(Integer, primary_key=True, index=True)         # course ID (Primary Key)
    code = Column(String(20), unique=True, nullable=False)    # course code (e.g. MCE 324)
    title = Column(String(200), nullable=False)               # course title
    credit_unit = Column(Integer, nullable=False, default=0)  # weight used for GPA
    level = Column(String(20))                                # LEVEL_100 .. LEVEL_500
    department = Column(String(100))                          # owning department
    is_active = Column(Boolean, default=True)
