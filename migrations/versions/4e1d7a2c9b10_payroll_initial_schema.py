"""payroll initial schema: employees, attendance, deductions, loans, gosi tiers

Revision ID: 4e1d7a2c9b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4e1d7a2c9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=160), nullable=False),
        sa.Column('nationality', sa.String(length=40), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('base_salary', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('housing_allowance', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('transportation_allowance', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('other_allowances', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('gosi_registration_date', sa.Date(), nullable=True),
        sa.Column('gosi_type', sa.String(length=16), nullable=True),
        sa.Column('is_payroll_excluded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_emp_status_excluded', 'employees', ['status', 'is_payroll_excluded'], unique=False)

    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='present'),
        sa.Column('late_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('check_in', sa.DateTime(), nullable=True),
        sa.Column('check_out', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'work_date', name='uq_attendance_user_date'),
    )
    op.create_index('ix_attendance_records_user_id', 'attendance_records', ['user_id'], unique=False)
    op.create_index('ix_attendance_work_date', 'attendance_records', ['work_date'], unique=False)

    op.create_table(
        'attendance_deductions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('deduction_date', sa.Date(), nullable=False),
        sa.Column('violation_type', sa.String(length=32), nullable=False),
        sa.Column('deduction_type', sa.String(length=32), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('minutes_late', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('attendance_record_id', sa.Integer(),
                  sa.ForeignKey('attendance_records.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'deduction_date', 'violation_type', name='uq_deduction_user_date_violation'),
    )
    op.create_index('ix_attendance_deductions_user_id', 'attendance_deductions', ['user_id'], unique=False)
    op.create_index('ix_deduction_date', 'attendance_deductions', ['deduction_date'], unique=False)

    op.create_table(
        'loan_installments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('loan_ref', sa.String(length=40), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('installment_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_loan_installments_user_id', 'loan_installments', ['user_id'], unique=False)
    op.create_index('ix_loan_inst_due_status', 'loan_installments', ['due_date', 'status'], unique=False)

    op.create_table(
        'gosi_rate_tiers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=40), nullable=False),
        sa.Column('registered_from', sa.Date(), nullable=False),
        sa.Column('employee_rate', sa.Numeric(6, 4), nullable=False),
        sa.Column('employer_rate', sa.Numeric(6, 4), nullable=False, server_default='0'),
        sa.Column('wage_cap', sa.Numeric(12, 2), nullable=False, server_default='45000'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('code', 'registered_from', name='uq_gosi_tier_code_from'),
    )
    op.create_index('ix_gosi_tier_resolve', 'gosi_rate_tiers', ['is_active', 'registered_from'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_gosi_tier_resolve', table_name='gosi_rate_tiers')
    op.drop_table('gosi_rate_tiers')
    op.drop_index('ix_loan_inst_due_status', table_name='loan_installments')
    op.drop_index('ix_loan_installments_user_id', table_name='loan_installments')
    op.drop_table('loan_installments')
    op.drop_index('ix_deduction_date', table_name='attendance_deductions')
    op.drop_index('ix_attendance_deductions_user_id', table_name='attendance_deductions')
    op.drop_table('attendance_deductions')
    op.drop_index('ix_attendance_work_date', table_name='attendance_records')
    op.drop_index('ix_attendance_records_user_id', table_name='attendance_records')
    op.drop_table('attendance_records')
    op.drop_index('ix_emp_status_excluded', table_name='employees')
    op.drop_table('employees')
