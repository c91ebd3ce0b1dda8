"""
Candidate Selector

Computes who may review a PR: active members of a team minus an exclusion
set (at least the PR author and the reviewer being replaced). The pool is
returned without ordering guarantees beyond what the storage yields; the
callers decide how to pick from it:

- ``pick_random`` draws a uniform random subset (initial assignment,
  single reassignment)
- ``pick_first`` takes the first candidate (batch reconciliation)

The randomness source is injected so tests can pass a seeded
``random.Random`` or a stub instead of relying on global state.
"""

from typing import Collection, Iterable, List, MutableSequence, Optional, Protocol, Sequence, TypeVar

from pr_reviewer.errors import TeamNotFound
from pr_reviewer.models import User
from pr_reviewer.storage.base import Repository

T = TypeVar("T")


class RandomSource(Protocol):
    """The subset of ``random.Random`` the engines rely on."""

    def shuffle(self, x: MutableSequence) -> None:
        ...

    def choice(self, seq: Sequence[T]) -> T:
        ...


def filter_candidates(members: Iterable[User], exclude_ids: Collection[str]) -> List[User]:
    """Active members whose id is not excluded. Pure."""
    return [m for m in members if m.is_active and m.user_id not in exclude_ids]


def eligible_reviewers(
    repo: Repository,
    team_name: str,
    exclude_ids: Collection[str],
) -> List[User]:
    """
    Every active member of ``team_name`` not in ``exclude_ids``.

    Raises:
        TeamNotFound: If the team does not exist
    """
    if not repo.team_exists(team_name):
        raise TeamNotFound()

    return filter_candidates(repo.get_active_team_members(team_name), exclude_ids)


def pick_random(candidates: Sequence[User], count: int, rng: RandomSource) -> List[User]:
    """
    Uniformly random, duplicate-free subset of at most ``count`` candidates.

    When there are no more candidates than requested, all of them are taken.
    """
    if len(candidates) <= count:
        return list(candidates)

    pool = list(candidates)
    rng.shuffle(pool)
    return pool[:count]


def pick_first(candidates: Iterable[User]) -> Optional[User]:
    """First candidate in enumeration order, or None."""
    return next(iter(candidates), None)
