"""
Entity reconciliation.

Membership between applicants and lists is only ever stored on the list
side (each list's applicant ID array). Every pass rebuilds both directions
from that array:

1. For each list, match member IDs against the applicant set and derive
   the list's counts. Member IDs without an applicant (ghost IDs, usually
   left behind by soft deletes) are ignored.
2. In a separate pass, give every applicant the IDs of the lists whose
   member array contains it.

The reconciler is a pure function of its inputs: no I/O, no clock, no
shared state.
"""

from collections.abc import Sequence

from recruiter_dashboard.models.domain.applicant_domain import Applicant, RawApplicant
from recruiter_dashboard.models.domain.list_domain import JobList, RawJobList
from recruiter_dashboard.utils.ids import normalize_id, normalize_ids


class EntityReconciler:
    """Cross-links applicants and lists from one-directional membership data."""

    def reconcile(
        self,
        raw_applicants: Sequence[RawApplicant | Applicant],
        raw_lists: Sequence[RawJobList | JobList],
    ) -> tuple[list[Applicant], list[JobList]]:
        """
        Build the bidirectional view.

        Accepts backend records or already-reconciled entities, so the same
        pass can re-derive a snapshot after a local, optimistic edit.

        Returns:
            (applicants, lists), both in input order. Duplicate IDs keep
            their first occurrence.
        """
        applicants = _dedupe(_to_applicant(raw) for raw in raw_applicants)
        base_lists = _dedupe(_to_job_list(raw) for raw in raw_lists)
        applicants_by_id = {applicant.id: applicant for applicant in applicants}

        lists: list[JobList] = []
        for job_list in base_lists:
            matched = [applicants_by_id[m] for m in job_list.member_ids if m in applicants_by_id]
            lists.append(
                job_list.model_copy(
                    update={
                        "applicant_ids": [applicant.id for applicant in matched],
                        "derived_candidate_count": len(matched),
                        "derived_completed_count": sum(
                            1 for applicant in matched if applicant.has_completed_conversation
                        ),
                    }
                )
            )

        # Second pass over the authoritative member arrays, not the matches above
        membership: dict[str, list[str]] = {applicant.id: [] for applicant in applicants}
        for job_list in lists:
            for member_id in job_list.member_ids:
                if member_id in membership:
                    membership[member_id].append(job_list.id)

        linked = [
            applicant.model_copy(update={"list_membership": membership[applicant.id]})
            for applicant in applicants
        ]
        return linked, lists


def _to_applicant(raw: RawApplicant | Applicant) -> Applicant:
    if isinstance(raw, Applicant):
        return raw
    return Applicant.from_raw(raw)


def _to_job_list(raw: RawJobList | JobList) -> JobList:
    if isinstance(raw, JobList):
        return raw.model_copy(update={"member_ids": normalize_ids(raw.member_ids)})
    return JobList(
        id=normalize_id(raw.id),
        name=raw.list_name,
        description=raw.list_description,
        status=raw.status,
        member_ids=normalize_ids(raw.applicants),
        created_at=raw.created_at,
    )


def _dedupe(entities):
    seen: set[str] = set()
    result = []
    for entity in entities:
        if entity.id in seen:
            continue
        seen.add(entity.id)
        result.append(entity)
    return result


def reconcile(
    raw_applicants: Sequence[RawApplicant | Applicant],
    raw_lists: Sequence[RawJobList | JobList],
) -> tuple[list[Applicant], list[JobList]]:
    """Module-level shortcut for EntityReconciler().reconcile."""
    return EntityReconciler().reconcile(raw_applicants, raw_lists)
