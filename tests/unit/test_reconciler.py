from recruiter_dashboard.models.domain.applicant_domain import RawApplicant
from recruiter_dashboard.models.domain.list_domain import RawJobList
from recruiter_dashboard.services.reconciler import EntityReconciler, reconcile


def _applicant(applicant_id, status="INITIATED"):
    return RawApplicant.model_validate(
        {"applicant_id": applicant_id, "name": f"Applicant {applicant_id}", "status": status}
    )


def _list(list_id, members):
    return RawJobList.model_validate(
        {"id": list_id, "list_name": f"List {list_id}", "applicants": members}
    )


def test_membership_is_symmetric():
    applicants = [_applicant(1), _applicant(2), _applicant(3), _applicant(4)]
    lists = [_list("A", [1, 2]), _list("B", ["2", 3]), _list("C", [])]

    linked_applicants, linked_lists = EntityReconciler().reconcile(applicants, lists)

    for job_list in linked_lists:
        for applicant in linked_applicants:
            in_list = applicant.id in job_list.member_ids
            assert in_list == (job_list.id in applicant.list_membership)

    by_id = {a.id: a for a in linked_applicants}
    assert by_id["2"].list_membership == ["A", "B"]
    assert by_id["4"].list_membership == []


def test_numeric_and_string_ids_match():
    applicants = [_applicant(919876543210)]
    lists = [_list(7, ["919876543210"]), _list(8, [919876543210])]

    linked_applicants, linked_lists = reconcile(applicants, lists)

    assert [job_list.derived_candidate_count for job_list in linked_lists] == [1, 1]
    assert linked_applicants[0].list_membership == ["7", "8"]


def test_ghost_member_ids_are_ignored():
    applicants = [_applicant(1), _applicant(2)]
    lists = [_list("A", [1, 2, 999, 1000])]

    _, linked_lists = reconcile(applicants, lists)

    job_list = linked_lists[0]
    assert job_list.derived_candidate_count == 2
    assert job_list.applicant_ids == ["1", "2"]
    # Authoritative membership is kept as received
    assert job_list.member_ids == ["1", "2", "999", "1000"]


def test_completed_count_uses_conversation_status():
    applicants = [
        _applicant(1, status="DETAILS_COMPLETED"),
        _applicant(2, status="MANDATE_MATCHING"),
        _applicant(3, status="INITIATED"),
        _applicant(4, status="PLACED"),
    ]
    _, linked_lists = reconcile(applicants, [_list("A", [1, 2, 3, 4])])

    assert linked_lists[0].derived_candidate_count == 4
    assert linked_lists[0].derived_completed_count == 2


def test_duplicates_keep_first_occurrence_and_order():
    applicants = [_applicant(2), _applicant(1), _applicant("2")]
    lists = [_list("B", [1]), _list("A", [2]), _list("B", [2])]

    linked_applicants, linked_lists = reconcile(applicants, lists)

    assert [a.id for a in linked_applicants] == ["2", "1"]
    assert [job_list.id for job_list in linked_lists] == ["B", "A"]
    assert linked_lists[0].member_ids == ["1"]


def test_reconcile_is_deterministic_and_accepts_linked_entities():
    applicants = [_applicant(1), _applicant(2)]
    lists = [_list("A", [1]), _list("B", [1, 2])]

    first = reconcile(applicants, lists)
    second = reconcile(applicants, lists)
    again = reconcile(*first)

    assert first == second
    assert again == first
