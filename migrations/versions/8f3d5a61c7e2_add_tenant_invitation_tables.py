"""add_tenant_invitation_tables

Revision ID: 8f3d5a61c7e2
Revises: 4b1e7c2a9d10
Create Date: 2026-10-12 09:41:07.530219

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '8f3d5a61c7e2'
down_revision: Union[str, Sequence[str], None] = '4b1e7c2a9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant_invitations, tenant_invitation_roles and invitation_audit_logs."""
    op.create_table('tenant_invitations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('invited_by', sa.UUID(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'EXPIRED', 'CANCELLED')",
            name='ck_tenant_invitations_status',
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invited_by'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    # At most one PENDING invitation per (tenant, email)
    op.create_index(
        'uq_tenant_invitations_pending_email',
        'tenant_invitations',
        ['tenant_id', 'email'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )
    op.create_index('ix_tenant_invitations_tenant_status', 'tenant_invitations', ['tenant_id', 'status'], unique=False)
    # Expiry sweep scans PENDING rows by expires_at
    op.create_index('ix_tenant_invitations_expires_at', 'tenant_invitations', ['expires_at'], unique=False)

    op.create_table('tenant_invitation_roles',
        sa.Column('invitation_id', sa.UUID(), nullable=False),
        sa.Column('role_id', sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(['invitation_id'], ['tenant_invitations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('invitation_id', 'role_id'),
    )

    op.create_table('invitation_audit_logs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('invitation_id', sa.UUID(), nullable=True),
        sa.Column('tenant_id', sa.UUID(), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('error_code', sa.String(length=50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['invitation_id'], ['tenant_invitations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invitation_audit_logs_invitation_id', 'invitation_audit_logs', ['invitation_id'], unique=False)
    op.create_index('ix_invitation_audit_logs_tenant_id', 'invitation_audit_logs', ['tenant_id'], unique=False)
    op.create_index('ix_invitation_audit_logs_action', 'invitation_audit_logs', ['action'], unique=False)
    op.create_index('ix_invitation_audit_logs_created_at', 'invitation_audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Drop invitation tables."""
    op.drop_index('ix_invitation_audit_logs_created_at', table_name='invitation_audit_logs')
    op.drop_index('ix_invitation_audit_logs_action', table_name='invitation_audit_logs')
    op.drop_index('ix_invitation_audit_logs_tenant_id', table_name='invitation_audit_logs')
    op.drop_index('ix_invitation_audit_logs_invitation_id', table_name='invitation_audit_logs')
    op.drop_table('invitation_audit_logs')
    op.drop_table('tenant_invitation_roles')
    op.drop_index('ix_tenant_invitations_expires_at', table_name='tenant_invitations')
    op.drop_index('ix_tenant_invitations_tenant_status', table_name='tenant_invitations')
    op.drop_index('uq_tenant_invitations_pending_email', table_name='tenant_invitations')
    op.drop_table('tenant_invitations')
