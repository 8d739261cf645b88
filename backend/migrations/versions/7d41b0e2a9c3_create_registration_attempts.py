"""create registration attempts journal

Revision ID: 7d41b0e2a9c3
Revises:
Create Date: 2026-10-16 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '7d41b0e2a9c3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'registration_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False),
        sa.Column('subdomain', sa.String(length=63), nullable=True),
        sa.Column('error_kind', sa.String(length=32), nullable=True),
        sa.Column('tenant_id', sa.String(length=64), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('credentials_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_registration_attempts')),
    )
    with op.batch_alter_table('registration_attempts', schema=None) as batch_op:
        batch_op.create_index('ix_registration_attempts_email', ['email'], unique=False)
        batch_op.create_index('ix_registration_attempts_state', ['state'], unique=False)


def downgrade():
    with op.batch_alter_table('registration_attempts', schema=None) as batch_op:
        batch_op.drop_index('ix_registration_attempts_state')
        batch_op.drop_index('ix_registration_attempts_email')

    op.drop_table('registration_attempts')
