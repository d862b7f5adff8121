from __future__ import annotations

from sqlalchemy import Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from research_engine.core.database import Base

_UTC_NOW = text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


class ResearchSession(Base):
  __tablename__ = "research_sessions"
  __table_args__ = (Index("ix_research_sessions_created_at", "created_at"),)

  session_id: Mapped[str] = mapped_column(String, primary_key=True)
  input_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  task_ids: Mapped[list] = mapped_column(JSONB, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  progress_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  results_json: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
  errors_json: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  metadata_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_UTC_NOW)
  updated_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_UTC_NOW)
  completed_at: Mapped[str | None] = mapped_column(String, nullable=True)
