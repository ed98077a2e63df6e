"""Initial migration - create payment_records and payment_audit_log tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('gateway_order_id', sa.String(255), nullable=False),
        sa.Column('gateway_payment_id', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('appointment_id', sa.String(255), nullable=True),
        sa.Column('patient_id', sa.String(255), nullable=True),
        sa.Column('doctor_id', sa.String(255), nullable=True),
        sa.Column('receipt', sa.String(255), nullable=True),
        sa.Column('payment_link_id', sa.String(255), nullable=True),
        sa.Column('short_url', sa.String(512), nullable=True),
        sa.Column('notes_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payment_records_amount_positive'),
    )

    # The gateway order id is the webhook join key
    op.create_index('ix_payment_records_gateway_order_id', 'payment_records', ['gateway_order_id'], unique=True)
    op.create_index('ix_payment_records_status', 'payment_records', ['status'])
    op.create_index('ix_payment_records_created_at', 'payment_records', ['created_at'])
    op.create_index('ix_payment_records_appointment_id', 'payment_records', ['appointment_id'])

    op.create_table(
        'payment_audit_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('payment_id', sa.String(36), sa.ForeignKey('payment_records.id'), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('previous_status', sa.String(20), nullable=True),
        sa.Column('new_status', sa.String(20), nullable=False),
        sa.Column('gateway_event', sa.String(100), nullable=True),
        sa.Column('details_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_index('ix_payment_audit_log_payment_id', 'payment_audit_log', ['payment_id'])
    op.create_index('ix_payment_audit_log_action', 'payment_audit_log', ['action'])
    op.create_index('ix_payment_audit_log_created_at', 'payment_audit_log', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_payment_audit_log_created_at', table_name='payment_audit_log')
    op.drop_index('ix_payment_audit_log_action', table_name='payment_audit_log')
    op.drop_index('ix_payment_audit_log_payment_id', table_name='payment_audit_log')

    op.drop_index('ix_payment_records_appointment_id', table_name='payment_records')
    op.drop_index('ix_payment_records_created_at', table_name='payment_records')
    op.drop_index('ix_payment_records_status', table_name='payment_records')
    op.drop_index('ix_payment_records_gateway_order_id', table_name='payment_records')

    op.drop_table('payment_audit_log')
    op.drop_table('payment_records')
