"""Postgres-backed repository for research sessions using SQLAlchemy."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from research_engine.core.database import get_session_factory
from research_engine.research.models import BusinessInput, SessionProgress, SessionRecord, TaskError, TaskId
from research_engine.research.state import Transition
from research_engine.schema.sessions import ResearchSession
from research_engine.storage.sessions_repo import SessionMutator, SessionsRepository
from research_engine.utils.db_retry import execute_with_retry


class PostgresSessionsRepository(SessionsRepository):
  """Persist research sessions to Postgres; mutations lock the row with SELECT ... FOR UPDATE."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_session(self, record: SessionRecord) -> None:
    async with self._session_factory() as session:
      row = ResearchSession(session_id=record.session_id)
      self._apply_record(row, record)
      row.created_at = record.created_at
      session.add(row)
      await session.commit()

  async def get_session(self, session_id: str) -> SessionRecord | None:
    async with self._session_factory() as session:
      row = await session.get(ResearchSession, session_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def mutate_session(self, session_id: str, mutate: SessionMutator) -> Transition | None:
    async def _attempt() -> Transition | None:
      async with self._session_factory() as session:
        async with session.begin():
          stmt = select(ResearchSession).where(ResearchSession.session_id == session_id).with_for_update()
          row = (await session.execute(stmt)).scalar_one_or_none()
          if row is None:
            return None
          transition = mutate(self._model_to_record(row))
          if transition.changed:
            self._apply_record(row, transition.record)
          return transition

    return await execute_with_retry(operation_name="session_mutation", func=_attempt)

  async def list_sessions(self, limit: int, offset: int, status: str | None = None) -> tuple[list[SessionRecord], int]:
    async with self._session_factory() as session:
      stmt = select(ResearchSession)
      count_stmt = select(func.count()).select_from(ResearchSession)
      if status is not None:
        stmt = stmt.where(ResearchSession.status == status)
        count_stmt = count_stmt.where(ResearchSession.status == status)
      stmt = stmt.order_by(ResearchSession.created_at.desc()).limit(limit).offset(offset)
      rows = (await session.execute(stmt)).scalars().all()
      total = (await session.execute(count_stmt)).scalar_one()
      return [self._model_to_record(row) for row in rows], int(total)

  @staticmethod
  def _apply_record(row: ResearchSession, record: SessionRecord) -> None:
    row.input_json = record.input.to_dict()
    row.task_ids = [task_id.value for task_id in record.task_ids]
    row.status = record.status
    row.progress_json = record.progress.to_dict()
    row.results_json = dict(record.results)
    row.errors_json = [{"step": error.step, "code": error.code, "message": error.message} for error in record.errors]
    row.metadata_json = record.metadata
    row.updated_at = record.updated_at
    row.completed_at = record.completed_at

  @staticmethod
  def _model_to_record(row: ResearchSession) -> SessionRecord:
    errors: list[Any] = row.errors_json or []
    return SessionRecord(
      session_id=row.session_id,
      input=BusinessInput.from_dict(row.input_json),
      task_ids=tuple(TaskId(value) for value in row.task_ids),
      status=row.status,  # type: ignore[arg-type]
      created_at=row.created_at,
      updated_at=row.updated_at,
      progress=SessionProgress.from_dict(row.progress_json or {}),
      results=dict(row.results_json or {}),
      errors=[TaskError(step=str(entry["step"]), code=str(entry["code"]), message=str(entry["message"])) for entry in errors],
      metadata=row.metadata_json,
      completed_at=row.completed_at,
    )
