from enum import Enum


class Semester(str, Enum):
    FIRST = "FIRST"
    SECOND = "SECOND"
    SUMMER = "SUMMER"


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    LECTURER = "LECTURER"
    DEPARTMENT_ADMIN = "DEPARTMENT_ADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    SENATE_ADMIN = "SENATE_ADMIN"


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    DEPARTMENT_APPROVED = "DEPARTMENT_APPROVED"
    FACULTY_APPROVED = "FACULTY_APPROVED"
    SENATE_APPROVED = "SENATE_APPROVED"
    REJECTED = "REJECTED"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


TERMINAL_STATUSES = frozenset({ApprovalStatus.SENATE_APPROVED, ApprovalStatus.REJECTED})
