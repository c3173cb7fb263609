"""Shared profiles, staff invites and outbox claims

Revision ID: 20261020_sharing
Revises: 20261017_initial
Create Date: 2026-10-20

This migration:
1. Adds shared_profiles (read-only case sharing between tenants)
2. Adds staff_invite_tokens (first-password links for onboarded admins)
3. Adds notification_outbox.claimed_at so a dispatcher owns a row while sending
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261020_sharing'
down_revision = '20261017_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('shared_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('applicant_id', sa.Integer(), nullable=False),
        sa.Column('from_tenant_id', sa.Integer(), nullable=False),
        sa.Column('to_tenant_id', sa.Integer(), nullable=False),
        sa.Column('shared_by_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('permissions', sa.String(length=16), nullable=False, server_default='read_only'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('viewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('viewed_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['applicant_id'], ['applicants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['from_tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['to_tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['shared_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['viewed_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shared_profiles', schema=None) as batch_op:
        batch_op.create_index('ix_shared_profiles_applicant_to', ['applicant_id', 'to_tenant_id'], unique=False)
        batch_op.create_index('ix_shared_profiles_from_to', ['from_tenant_id', 'to_tenant_id'], unique=False)
        batch_op.create_index('ix_shared_profiles_to_active', ['to_tenant_id', 'is_active'], unique=False)

    op.create_table('staff_invite_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('staff_invite_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_staff_invite_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_staff_invite_tokens_tenant_id'), ['tenant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_staff_invite_tokens_token_hash'), ['token_hash'], unique=True)

    with op.batch_alter_table('notification_outbox', schema=None) as batch_op:
        batch_op.add_column(sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True))


def downgrade():
    with op.batch_alter_table('notification_outbox', schema=None) as batch_op:
        batch_op.drop_column('claimed_at')

    op.drop_table('staff_invite_tokens')
    op.drop_table('shared_profiles')
