from sqlalchemy import Column, Integer, String
from database.db import Base

class Lecturer(Base):
    __tablename__ = "lecturers"

    id = Column(Integer, primary_key=True, index=True)      # lecturer ID (PK)
    name = Column(String(100), nullable=False)              # lecturer name
    email = Column(String(100), unique=True)                # email
    department = Column(String(100))                        # department name
