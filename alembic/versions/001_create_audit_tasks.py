"""create_audit_tasks

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'audit_tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(64), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('queued', 'running', 'completed', 'error', name='taskstatus'),
            nullable=False,
        ),
        sa.Column('planned_configs', sa.JSON(), nullable=False),
        sa.Column('results', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_tasks_id'), 'audit_tasks', ['id'], unique=False)
    op.create_index(op.f('ix_audit_tasks_task_id'), 'audit_tasks', ['task_id'], unique=True)
    op.create_index(op.f('ix_audit_tasks_status'), 'audit_tasks', ['status'], unique=False)
    op.create_index(op.f('ix_audit_tasks_created_at'), 'audit_tasks', ['created_at'], unique=False)
    op.create_index('idx_audit_tasks_url', 'audit_tasks', ['url'], unique=False, postgresql_using='hash')


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_audit_tasks_url', table_name='audit_tasks')
    op.drop_index(op.f('ix_audit_tasks_created_at'), table_name='audit_tasks')
    op.drop_index(op.f('ix_audit_tasks_status'), table_name='audit_tasks')
    op.drop_index(op.f('ix_audit_tasks_task_id'), table_name='audit_tasks')
    op.drop_index(op.f('ix_audit_tasks_id'), table_name='audit_tasks')
    op.drop_table('audit_tasks')
    sa.Enum(name='taskstatus').drop(op.get_bind(), checkfirst=True)
