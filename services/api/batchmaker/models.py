"""SQLAlchemy ORM models for the Batch Maker parser service.

Tables:
- recipe_parse_logs: Append-only log of parse attempts, used for per-user rate limiting
- workflows: Parsed recipes saved as workflows (step 0 = Prepare Ingredients)
- batch_templates: Batch definitions created together with an imported workflow
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    Index,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from .db import Base


def generate_workflow_id() -> str:
    """Workflow ids look like ``wf-1718000000000-k3j9x2a``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"wf-{int(time.time() * 1000)}-{suffix}"


class RecipeParseLog(Base):
    """One parse attempt (success or failure) that reached the model.

    Rows are never updated or deleted by the service; retention is handled
    outside of it.
    """
    __tablename__ = "recipe_parse_logs"
    __table_args__ = (
        Index("ix_recipe_parse_logs_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Workflow(Base):
    """A parsed recipe persisted as a runnable workflow."""
    __tablename__ = "workflows"
    __table_args__ = (
        Index("ix_workflows_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(40), primary_key=True, default=generate_workflow_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    servings: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    total_time_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    ingredients: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    batch_templates: Mapped[list["BatchTemplate"]] = relationship(
        back_populates="workflow", cascade="all, delete-orphan"
    )


class BatchTemplate(Base):
    """Reusable batch definition created alongside an imported workflow."""
    __tablename__ = "batch_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_id: Mapped[str] = mapped_column(
        String(40), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    ingredients: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    servings: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    total_estimated_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    workflow: Mapped["Workflow"] = relationship(back_populates="batch_templates")
