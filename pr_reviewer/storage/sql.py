"""SQLStorage: relational backend built on SQLAlchemy.

Works against any SQLAlchemy URL; PostgreSQL in production, SQLite for
local runs and tests.

Schema:
  teams         one row per team
  users         team membership and activity flag
  pull_requests PR metadata and status
  pr_reviewers  (pull_request_id, reviewer_id) assignment rows

Each transactional scope is one Session transaction. Reads of PR rows that
precede a reviewer change use SELECT ... FOR UPDATE, so on PostgreSQL two
concurrent reassignments of the same PR are serialized instead of both
acting on a stale reviewer list. SQLite has no row locks and pysqlite defers
BEGIN until the first write, so SQLite transactions are opened with
BEGIN IMMEDIATE: the write lock is taken before the first read and a second
scope waits for it. An in-memory SQLite database shares one connection,
which a process lock hands to one scope at a time.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    create_engine,
    delete,
    event,
    func,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pr_reviewer.errors import (
    PRAlreadyExists,
    PRNotFound,
    StorageError,
    TeamAlreadyExists,
    TeamNotFound,
    UserNotFound,
)
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import PRStatus, PullRequest, ReassignmentRecord, Team, User
from pr_reviewer.storage.base import Repository, Storage

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class TeamRow(Base):
    __tablename__ = "teams"

    team_name: Mapped[str] = mapped_column(String(255), primary_key=True)


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_team_active", "team_name", "is_active"),)

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    team_name: Mapped[str] = mapped_column(ForeignKey("teams.team_name"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PullRequestRow(Base):
    __tablename__ = "pull_requests"

    pull_request_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    pull_request_name: Mapped[str] = mapped_column(String(255), nullable=False)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=PRStatus.OPEN.value, index=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    merged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class PRReviewerRow(Base):
    __tablename__ = "pr_reviewers"

    pull_request_id: Mapped[str] = mapped_column(
        ForeignKey("pull_requests.pull_request_id"), primary_key=True
    )
    reviewer_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"), primary_key=True, index=True)


def _to_user(row: UserRow) -> User:
    return User(
        user_id=row.user_id,
        username=row.username,
        team_name=row.team_name,
        is_active=row.is_active,
    )


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset on the way back; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_pr(row: PullRequestRow) -> PullRequest:
    return PullRequest(
        pull_request_id=row.pull_request_id,
        pull_request_name=row.pull_request_name,
        author_id=row.author_id,
        status=PRStatus(row.status),
        created_at=_utc(row.created_at),
        merged_at=_utc(row.merged_at),
    )


_PR_ORDER = (PullRequestRow.created_at, PullRequestRow.pull_request_id)


class SQLRepository(Repository):
    """Repository bound to one open Session transaction."""

    def __init__(self, session: Session):
        self._session = session

    # Teams

    def team_exists(self, team_name: str) -> bool:
        return self._session.get(TeamRow, team_name) is not None

    def create_team(self, team_name: str, members: List[User]) -> None:
        if self.team_exists(team_name):
            raise TeamAlreadyExists()

        self._session.add(TeamRow(team_name=team_name))
        self._session.flush()
        for member in members:
            self._session.merge(
                UserRow(
                    user_id=member.user_id,
                    username=member.username,
                    team_name=team_name,
                    is_active=member.is_active,
                )
            )
        self._session.flush()

    def get_team(self, team_name: str) -> Team:
        if not self.team_exists(team_name):
            raise TeamNotFound()

        rows = self._session.scalars(
            select(UserRow).where(UserRow.team_name == team_name).order_by(UserRow.user_id)
        ).all()
        return Team(team_name=team_name, members=[_to_user(r) for r in rows])

    # Users

    def get_user(self, user_id: str) -> User:
        row = self._session.get(UserRow, user_id)
        if row is None:
            raise UserNotFound()
        return _to_user(row)

    def set_user_active(self, user_id: str, is_active: bool) -> None:
        result = self._session.execute(
            update(UserRow).where(UserRow.user_id == user_id).values(is_active=is_active)
        )
        if result.rowcount == 0:
            raise UserNotFound()

    def deactivate_users(self, user_ids: Iterable[str]) -> None:
        ids = list(user_ids)
        if not ids:
            return
        self._session.execute(
            update(UserRow).where(UserRow.user_id.in_(ids)).values(is_active=False)
        )

    def get_active_team_members(
        self, team_name: str, exclude_user_id: Optional[str] = None
    ) -> List[User]:
        stmt = select(UserRow).where(UserRow.team_name == team_name, UserRow.is_active.is_(True))
        if exclude_user_id:
            stmt = stmt.where(UserRow.user_id != exclude_user_id)
        rows = self._session.scalars(stmt.order_by(UserRow.user_id)).all()
        return [_to_user(r) for r in rows]

    # Pull requests

    def pr_exists(self, pr_id: str) -> bool:
        return self._session.get(PullRequestRow, pr_id) is not None

    def create_pr(self, pr: PullRequest, reviewer_ids: List[str]) -> None:
        if self.pr_exists(pr.pull_request_id):
            raise PRAlreadyExists()

        self._session.add(
            PullRequestRow(
                pull_request_id=pr.pull_request_id,
                pull_request_name=pr.pull_request_name,
                author_id=pr.author_id,
                status=pr.status.value,
                created_at=pr.created_at,
                merged_at=pr.merged_at,
            )
        )
        try:
            self._session.flush()
        except IntegrityError as e:
            # Another scope inserted the same id after the existence check
            raise PRAlreadyExists() from e
        for reviewer_id in dict.fromkeys(reviewer_ids):
            self._session.add(PRReviewerRow(pull_request_id=pr.pull_request_id, reviewer_id=reviewer_id))
        self._session.flush()

    def _locked_pr_row(self, pr_id: str) -> PullRequestRow:
        row = self._session.scalars(
            select(PullRequestRow).where(PullRequestRow.pull_request_id == pr_id).with_for_update()
        ).first()
        if row is None:
            raise PRNotFound()
        return row

    def get_pr(self, pr_id: str) -> PullRequest:
        row = self._session.get(PullRequestRow, pr_id)
        if row is None:
            raise PRNotFound()
        return _to_pr(row)

    def get_pr_with_reviewers(self, pr_id: str) -> Tuple[PullRequest, List[str]]:
        row = self._locked_pr_row(pr_id)
        return _to_pr(row), self.get_pr_reviewers(pr_id)

    def merge_pr(self, pr_id: str, merged_at: datetime) -> None:
        row = self._locked_pr_row(pr_id)
        row.status = PRStatus.MERGED.value
        row.merged_at = merged_at
        self._session.flush()

    # Reviewer assignments

    def get_pr_reviewers(self, pr_id: str) -> List[str]:
        return list(
            self._session.scalars(
                select(PRReviewerRow.reviewer_id)
                .where(PRReviewerRow.pull_request_id == pr_id)
                .order_by(PRReviewerRow.reviewer_id)
            ).all()
        )

    def is_reviewer_assigned(self, pr_id: str, user_id: str) -> bool:
        return self._session.get(PRReviewerRow, (pr_id, user_id)) is not None

    def add_reviewer(self, pr_id: str, user_id: str) -> None:
        if not self.is_reviewer_assigned(pr_id, user_id):
            self._session.add(PRReviewerRow(pull_request_id=pr_id, reviewer_id=user_id))
            self._session.flush()

    def remove_reviewer(self, pr_id: str, user_id: str) -> None:
        self._session.execute(
            delete(PRReviewerRow).where(
                PRReviewerRow.pull_request_id == pr_id,
                PRReviewerRow.reviewer_id == user_id,
            )
        )

    def get_user_reviews(self, user_id: str) -> List[PullRequest]:
        rows = self._session.scalars(
            select(PullRequestRow)
            .join(PRReviewerRow, PRReviewerRow.pull_request_id == PullRequestRow.pull_request_id)
            .where(PRReviewerRow.reviewer_id == user_id)
            .order_by(*_PR_ORDER)
        ).all()
        return [_to_pr(r) for r in rows]

    def get_open_prs_with_reviewers(
        self, reviewer_ids: Iterable[str]
    ) -> Tuple[List[PullRequest], Dict[str, List[str]]]:
        ids = list(set(reviewer_ids))
        if not ids:
            return [], {}

        reviewed = select(PRReviewerRow.pull_request_id).where(PRReviewerRow.reviewer_id.in_(ids))
        rows = self._session.scalars(
            select(PullRequestRow)
            .where(
                PullRequestRow.pull_request_id.in_(reviewed),
                PullRequestRow.status == PRStatus.OPEN.value,
            )
            .order_by(*_PR_ORDER)
            .with_for_update()
        ).all()

        prs = [_to_pr(r) for r in rows]
        reviewers_map: Dict[str, List[str]] = {pr.pull_request_id: [] for pr in prs}
        if prs:
            assignments = self._session.scalars(
                select(PRReviewerRow)
                .where(PRReviewerRow.pull_request_id.in_(list(reviewers_map)))
                .order_by(PRReviewerRow.pull_request_id, PRReviewerRow.reviewer_id)
            ).all()
            for assignment in assignments:
                reviewers_map[assignment.pull_request_id].append(assignment.reviewer_id)

        return prs, reviewers_map

    def bulk_reassign_reviewers(self, records: Iterable[ReassignmentRecord]) -> None:
        for record in records:
            self.remove_reviewer(record.pull_request_id, record.old_reviewer_id)
            if record.new_reviewer_id:
                self.add_reviewer(record.pull_request_id, record.new_reviewer_id)
        self._session.flush()

    # Statistics

    def get_assignment_stats(self) -> Dict[str, int]:
        rows = self._session.execute(
            select(PRReviewerRow.reviewer_id, func.count()).group_by(PRReviewerRow.reviewer_id)
        ).all()
        return {reviewer_id: count for reviewer_id, count in rows}


def _begin_immediate_on_sqlite(engine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite's own transaction handling is switched off so that SQLAlchemy's
    ``begin`` event decides when and how the transaction starts.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SQLStorage(Storage):
    """Stores teams, users and PRs in a relational database.

    The schema is created on startup; while the database is unreachable the
    attempt is retried with exponential backoff up to ``connect_retries`` times.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        connect_retries: int = 5,
        retry_base_delay: float = 0.5,
        retry_max_delay: float = 10.0,
    ):
        engine_kwargs = {"echo": echo, "future": True}
        is_sqlite = database_url.startswith("sqlite")
        shared_connection = database_url in ("sqlite://", "sqlite:///:memory:")
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if shared_connection:
                # In-memory SQLite exists per connection; every session must share one
                engine_kwargs["poolclass"] = StaticPool

        self._engine = create_engine(database_url, **engine_kwargs)
        if is_sqlite:
            _begin_immediate_on_sqlite(self._engine)
        self._scope_lock = threading.Lock() if shared_connection else None
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        for attempt in Retrying(
            stop=stop_after_attempt(connect_retries),
            wait=wait_exponential(multiplier=retry_base_delay, max=retry_max_delay),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying database connection",
                        attempt=attempt.retry_state.attempt_number
                    )
                Base.metadata.create_all(self._engine)

        logger.info("SQL storage ready", dialect=self._engine.dialect.name)

    @contextmanager
    def transaction(self) -> Iterator[Repository]:
        with self._scope_lock or nullcontext():
            session = self._session_factory()
            try:
                with session.begin():
                    yield SQLRepository(session)
            except SQLAlchemyError as e:
                logger.debug(
                    "Database transaction failed",
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise StorageError(f"database operation failed: {type(e).__name__}") from e
            finally:
                session.close()

    def close(self) -> None:
        self._engine.dispose()
