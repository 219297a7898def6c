"""Parse attempt log, workflows and batch templates

Revision ID: 001_parse_logs_and_workflows
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_parse_logs_and_workflows"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Parse attempts (rate limiting)
    op.create_table(
        "recipe_parse_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_recipe_parse_logs_user_created", "recipe_parse_logs", ["user_id", "created_at"])

    # Workflows
    op.create_table(
        "workflows",
        sa.Column("id", sa.String(40), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("servings", sa.String(80), nullable=True),
        sa.Column("total_time_minutes", sa.Float, nullable=False, server_default="0"),
        sa.Column("ingredients", sa.JSON, nullable=False),
        sa.Column("steps", sa.JSON, nullable=False),
        sa.Column("source_url", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_workflows_user_id", "workflows", ["user_id"])

    # Batch templates
    op.create_table(
        "batch_templates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("workflow_id", sa.String(40), sa.ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("ingredients", sa.JSON, nullable=False),
        sa.Column("servings", sa.String(80), nullable=True),
        sa.Column("total_estimated_minutes", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_batch_templates_workflow_id", "batch_templates", ["workflow_id"])


def downgrade() -> None:
    op.drop_index("ix_batch_templates_workflow_id", table_name="batch_templates")
    op.drop_table("batch_templates")
    op.drop_index("ix_workflows_user_id", table_name="workflows")
    op.drop_table("workflows")
    op.drop_index("ix_recipe_parse_logs_user_created", table_name="recipe_parse_logs")
    op.drop_table("recipe_parse_logs")
