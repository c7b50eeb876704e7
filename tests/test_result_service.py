import pytest

from models.enums import ApprovalStatus, Semester, UserRole
from services.errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError

from conftest import CURRENT_YEAR, PAST_YEAR

LECTURER, DEPT = UserRole.LECTURER, UserRole.DEPARTMENT_ADMIN


@pytest.fixture
def assigned(assignment_repository, catalog):
    # lecturer 1 teaches course 1 this first semester
    return assignment_repository.create(1, 1, CURRENT_YEAR, Semester.FIRST)


def _approve_all(state_machine, approval_id):
    state_machine.act(approval_id, "d1", UserRole.DEPARTMENT_ADMIN, "approve")
    state_machine.act(approval_id, "s1", UserRole.SCHOOL_ADMIN, "approve")
    return state_machine.act(approval_id, "x1", UserRole.SENATE_ADMIN, "approve")


def test_assigned_lecturer_records_scores(result_service, assigned):
    result, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 28, 55)
    assert (result.total_score, result.grade, result.grade_point) == (83, "A", 5.0)
    assert result.credit_unit == 3
    assert result.submitted_by == "1"
    assert (approval.status, approval.level) == (ApprovalStatus.PENDING, UserRole.DEPARTMENT_ADMIN)


def test_unassigned_lecturer_is_refused(result_service, assigned):
    with pytest.raises(AuthorizationError):
        result_service.record_scores("2", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 20, 40)
    with pytest.raises(AuthorizationError):
        result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "SECOND", 20, 40)


def test_students_cannot_record_scores(result_service, catalog):
    with pytest.raises(AuthorizationError):
        result_service.record_scores("1", UserRole.STUDENT, 1, 1, CURRENT_YEAR, "FIRST", 30, 70)


@pytest.mark.parametrize(
    "year, semester, ca, exam",
    [
        ("2024-2025", "FIRST", 10, 10),
        ("2024/2026", "FIRST", 10, 10),
        (CURRENT_YEAR, "THIRD", 10, 10),
        (CURRENT_YEAR, "FIRST", 31, 10),
        (CURRENT_YEAR, "FIRST", 10, 70.5),
        (CURRENT_YEAR, "FIRST", -1, 10),
        (CURRENT_YEAR, "FIRST", "ten", 10),
    ],
)
def test_bad_input_is_a_validation_error(result_service, catalog, year, semester, ca, exam):
    with pytest.raises(ValidationError):
        result_service.record_scores("d", DEPT, 1, 1, year, semester, ca, exam)


def test_missing_scores_count_as_zero(result_service, catalog):
    result, _ = result_service.record_scores("d", DEPT, 1, 2, CURRENT_YEAR, "FIRST", None, 45)
    assert result.ca_score == 0
    assert result.grade == "D"


def test_unknown_student_or_course(result_service, catalog):
    with pytest.raises(NotFoundError):
        result_service.record_scores("d", DEPT, 99, 1, CURRENT_YEAR, "FIRST", 10, 10)
    with pytest.raises(NotFoundError):
        result_service.record_scores("d", DEPT, 1, 99, CURRENT_YEAR, "FIRST", 10, 10)


def test_correction_while_pending_keeps_the_cycle(result_service, assigned):
    first, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    again, same = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 25, 40)
    assert again.id == first.id
    assert again.grade == "B"
    assert same.id == approval.id
    assert same.cycle == 1


def test_correction_after_rejection_opens_new_cycle(result_service, state_machine, assigned):
    result, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    state_machine.act(approval.id, "d1", UserRole.DEPARTMENT_ADMIN, "reject", "exam score looks wrong")

    corrected, reopened = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 50)
    assert corrected.id == result.id
    assert reopened.id != approval.id
    assert reopened.cycle == 2
    assert reopened.status == ApprovalStatus.PENDING


def test_correction_invalidates_a_stale_decision(result_service, state_machine, approval_repository, assigned,
                                                 monkeypatch):
    _, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    stale = approval_repository.get(approval.id)

    _, corrected = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 25, 40)
    assert corrected.version == stale.version + 1

    # a department admin still looking at the old scores
    monkeypatch.setattr(approval_repository, "get", lambda approval_id: stale)
    with pytest.raises(ConflictError):
        state_machine.act(approval.id, "d1", DEPT, "approve")


def test_approval_landing_mid_correction_blocks_the_write(result_service, state_machine, approval_repository,
                                                         assigned, monkeypatch):
    result, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    find_approval = approval_repository.find_approval

    def approve_right_after_the_lock_check(result_id):
        monkeypatch.setattr(approval_repository, "find_approval", find_approval)
        current = find_approval(result_id)
        state_machine.act(current.id, "d1", DEPT, "approve")
        return current

    monkeypatch.setattr(approval_repository, "find_approval", approve_right_after_the_lock_check)
    with pytest.raises(ConflictError):
        result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 5, 10)

    stored, current = result_service.get_result(result.id)
    assert stored.total_score == 30
    assert current.status == ApprovalStatus.DEPARTMENT_APPROVED


def test_locked_result_cannot_change(result_service, state_machine, assigned):
    _, approval = result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    state_machine.act(approval.id, "d1", UserRole.DEPARTMENT_ADMIN, "approve")

    with pytest.raises(StateError) as excinfo:
        result_service.record_scores("1", LECTURER, 1, 1, CURRENT_YEAR, "FIRST", 30, 70)
    assert excinfo.value.error_code == "RESULT_LOCKED"
    result, _ = result_service.get_result(approval.result_id)
    assert result.total_score == 30


def test_delete_only_before_any_approval(result_service, state_machine, catalog):
    kept, approval = result_service.record_scores("d", DEPT, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    state_machine.act(approval.id, "d1", UserRole.DEPARTMENT_ADMIN, "approve")
    state_machine.act(approval.id, "s1", UserRole.SCHOOL_ADMIN, "reject", "recheck")
    with pytest.raises(StateError):
        result_service.delete_result(kept.id)

    dropped, rejected = result_service.record_scores("d", DEPT, 2, 1, CURRENT_YEAR, "FIRST", 10, 20)
    state_machine.act(rejected.id, "d1", UserRole.DEPARTMENT_ADMIN, "reject", "wrong student")
    result_service.delete_result(dropped.id)
    with pytest.raises(NotFoundError):
        result_service.get_result(dropped.id)


def test_list_approvals_with_statistics(result_service, state_machine, catalog):
    _, a1 = result_service.record_scores("d", DEPT, 1, 1, CURRENT_YEAR, "FIRST", 28, 55)
    _, a2 = result_service.record_scores("d", DEPT, 1, 2, CURRENT_YEAR, "FIRST", 20, 35)
    result_service.record_scores("d", DEPT, 2, 1, PAST_YEAR, "SECOND", 10, 30)
    state_machine.act(a1.id, "d1", UserRole.DEPARTMENT_ADMIN, "approve")
    state_machine.act(a2.id, "d1", UserRole.DEPARTMENT_ADMIN, "reject", "missing CA")

    rows, stats = result_service.list_approvals()
    assert stats["total"] == 3
    assert stats["pending"] == 1
    assert stats["department_approved"] == 1
    assert stats["rejected"] == 1

    rows, stats = result_service.list_approvals(level="SCHOOL_ADMIN", status="DEPARTMENT_APPROVED")
    assert [r.approval.id for r in rows] == [a1.id]
    assert rows[0].course.code == "MCE 324"

    rows, _ = result_service.list_approvals(academic_year=PAST_YEAR)
    assert [r.student.matric_number for r in rows] == ["ENG/2021/002"]


def test_resubmitted_result_is_listed_once(result_service, state_machine, catalog):
    _, first = result_service.record_scores("d", DEPT, 1, 1, CURRENT_YEAR, "FIRST", 10, 20)
    state_machine.act(first.id, "d1", DEPT, "reject", "recheck the exam script")
    _, second = result_service.record_scores("d", DEPT, 1, 1, CURRENT_YEAR, "FIRST", 10, 50)

    rows, stats = result_service.list_approvals()
    assert [r.approval.id for r in rows] == [second.id]
    assert (stats["total"], stats["pending"], stats["rejected"]) == (1, 1, 0)

    rows, stats = result_service.list_approvals(status="REJECTED")
    assert rows == []
    assert stats["total"] == 0


def test_transcript_counts_senate_approved_only(result_service, state_machine, catalog):
    _, a1 = result_service.record_scores("d", DEPT, 1, 1, CURRENT_YEAR, "FIRST", 28, 55)   # A, cu 3
    _, a2 = result_service.record_scores("d", DEPT, 1, 2, CURRENT_YEAR, "FIRST", 20, 35)   # C, cu 2
    _, a3 = result_service.record_scores("d", DEPT, 1, 3, CURRENT_YEAR, "FIRST", 5, 10)    # F, cu 3
    _approve_all(state_machine, a1.id)
    _approve_all(state_machine, a2.id)
    state_machine.act(a3.id, "d1", UserRole.DEPARTMENT_ADMIN, "approve")

    summary = result_service.transcript(1)
    assert summary.cgpa == pytest.approx(4.2)
    assert summary.total_credits == 5
    assert [s.semester for s in summary.sessions] == ["FIRST"]
    assert summary.levels[0].level == "LEVEL_300"

    assert result_service.transcript(2).cgpa == 0.0
    with pytest.raises(NotFoundError):
        result_service.transcript(99)
