"""
Mass-Deactivation Planning

Given the open PRs touched by a deactivation batch, decides for every
removed reviewer who (if anyone) takes their place. This is pure
computation over data the caller already fetched inside its transaction;
applying the plan is the caller's job.

Rules, per PR and independently of other PRs:
- reviewers outside the batch stay
- each removed reviewer gets at most one replacement: the first active
  member of the removed reviewer's team who is not the author, not already
  assigned or planned for this PR, and not part of the batch
- with no such member the reviewer is dropped and the PR shrinks

The pick is deterministic (first in enumeration order), unlike the random
pick of a single reassignment.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set

from pr_reviewer.models import PRReassignmentSummary, PullRequest, ReassignmentRecord, User
from pr_reviewer.services.selector import filter_candidates, pick_first


@dataclass
class DeactivationPlan:
    """Every swap to apply, plus the per-PR summary reported to the caller."""
    reassignments: List[ReassignmentRecord] = field(default_factory=list)
    summaries: List[PRReassignmentSummary] = field(default_factory=list)


def find_replacement(
    reviewer_team_members: Sequence[User],
    author_id: str,
    taken: Set[str],
    deactivating: Set[str],
) -> Optional[str]:
    """First structurally valid replacement id, or None."""
    candidates = filter_candidates(reviewer_team_members, {author_id} | taken | deactivating)
    chosen = pick_first(candidates)
    return chosen.user_id if chosen else None


def plan_pr(
    pr: PullRequest,
    current_reviewers: Sequence[str],
    deactivating: Set[str],
    reviewer_teams: Mapping[str, str],
    active_by_team: Mapping[str, Sequence[User]],
) -> DeactivationPlan:
    """Plan the swaps for one PR."""
    plan = DeactivationPlan()

    staying = [r for r in current_reviewers if r not in deactivating]
    removed = [r for r in current_reviewers if r in deactivating]
    if not removed:
        return plan

    new_reviewers = list(staying)
    taken = set(staying)

    for reviewer_id in removed:
        team_members = active_by_team.get(reviewer_teams.get(reviewer_id), [])
        replacement = find_replacement(team_members, pr.author_id, taken, deactivating)
        if replacement is not None:
            new_reviewers.append(replacement)
            taken.add(replacement)

        plan.reassignments.append(
            ReassignmentRecord(
                pull_request_id=pr.pull_request_id,
                old_reviewer_id=reviewer_id,
                new_reviewer_id=replacement,
            )
        )

    plan.summaries.append(
        PRReassignmentSummary(
            pull_request_id=pr.pull_request_id,
            old_reviewers=removed,
            new_reviewers=new_reviewers,
        )
    )
    return plan


def plan_deactivation(
    prs: Sequence[PullRequest],
    reviewers_map: Mapping[str, Sequence[str]],
    deactivating: Set[str],
    reviewer_teams: Mapping[str, str],
    active_by_team: Mapping[str, Sequence[User]],
) -> DeactivationPlan:
    """
    Plan the swaps for every affected PR.

    Args:
        prs: Open PRs with at least one reviewer in ``deactivating``
        reviewers_map: PR id -> current reviewer ids
        deactivating: Ids being deactivated in this batch
        reviewer_teams: Removed reviewer id -> that reviewer's team
        active_by_team: Team name -> its active members, in enumeration order

    Returns:
        DeactivationPlan; PRs with nothing removed are left out of the summaries
    """
    plan = DeactivationPlan()
    for pr in prs:
        pr_plan = plan_pr(
            pr,
            reviewers_map.get(pr.pull_request_id, []),
            deactivating,
            reviewer_teams,
            active_by_team,
        )
        plan.reassignments.extend(pr_plan.reassignments)
        plan.summaries.extend(pr_plan.summaries)
    return plan


def group_teams(users: Mapping[str, User]) -> Dict[str, str]:
    """User id -> team name for the given user records."""
    return {user_id: user.team_name for user_id, user in users.items()}
