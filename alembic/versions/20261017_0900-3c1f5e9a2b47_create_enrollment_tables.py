"""create_enrollment_tables

Revision ID: 3c1f5e9a2b47
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f5e9a2b47'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False, comment='邮箱'),
        sa.Column('first_name', sa.String(length=50), nullable=False, server_default='', comment='名'),
        sa.Column('last_name', sa.String(length=50), nullable=False, server_default='', comment='姓'),
        sa.Column('phone', sa.String(length=20), nullable=True, comment='手机号'),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student', comment='角色: student/instructor/admin'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否激活'),
        sa.Column('total_students_enrolled', sa.Integer(), nullable=False, server_default='0', comment='讲师累计报名学生数'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False, comment='课程标题'),
        sa.Column('instructor_id', sa.Integer(), nullable=False, comment='讲师ID'),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='标价'),
        sa.Column('discount_price', sa.Numeric(precision=15, scale=2), nullable=True, comment='折扣价'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft', comment='状态: draft/published/archived'),
        sa.Column('total_enrollments', sa.Integer(), nullable=False, server_default='0', comment='报名总数'),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True, comment='发布时间'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='创建时间'),
        sa.ForeignKeyConstraint(['instructor_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_courses_id', 'courses', ['id'])
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])
    op.create_index('ix_courses_status', 'courses', ['status'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False, comment='学生ID'),
        sa.Column('course_id', sa.Integer(), nullable=False, comment='课程ID'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='支付状态: pending/completed/failed/refunded'),
        sa.Column('payment_method', sa.String(length=50), nullable=False, comment='支付方式: free/zarinpal/simulator'),
        sa.Column('payment_amount', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='实付金额'),
        sa.Column('payment_authority', sa.String(length=100), nullable=True, comment='网关授权码'),
        sa.Column('payment_ref_id', sa.String(length=100), nullable=True, comment='网关结算流水号'),
        sa.Column('failure_reason', sa.Text(), nullable=True, comment='失败原因'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='更新时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True, comment='退款时间'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0', comment='进度百分比'),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否学完'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True, comment='学完时间'),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True, comment='最后访问时间'),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'course_id', name='uq_enrollments_student_course'),
        sa.UniqueConstraint('payment_authority', name='uq_enrollments_payment_authority'),
    )
    op.create_index('ix_enrollments_id', 'enrollments', ['id'])
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])
    op.create_index('ix_enrollments_payment_status', 'enrollments', ['payment_status'])
    op.create_index('ix_enrollments_created_at', 'enrollments', ['created_at'])
    op.create_index('ix_enrollments_student_status', 'enrollments', ['student_id', 'payment_status'])
    op.create_index('ix_enrollments_course_status', 'enrollments', ['course_id', 'payment_status'])

    op.create_table(
        'simulated_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('authority', sa.String(length=100), nullable=False, comment='模拟授权码'),
        sa.Column('amount_minor', sa.Integer(), nullable=False, comment='网关金额'),
        sa.Column('description', sa.String(length=500), nullable=True, comment='描述'),
        sa.Column('callback_url', sa.String(length=500), nullable=False, comment='回调地址'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='requested',
                  comment='状态: requested/paid/verified'),
        sa.Column('ref_id', sa.String(length=100), nullable=True, comment='模拟结算流水号'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), comment='创建时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='模拟支付时间'),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True, comment='校验时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_simulated_payments_id', 'simulated_payments', ['id'])
    op.create_index('ix_simulated_payments_authority', 'simulated_payments', ['authority'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_simulated_payments_authority', table_name='simulated_payments')
    op.drop_index('ix_simulated_payments_id', table_name='simulated_payments')
    op.drop_table('simulated_payments')

    op.drop_index('ix_enrollments_course_status', table_name='enrollments')
    op.drop_index('ix_enrollments_student_status', table_name='enrollments')
    op.drop_index('ix_enrollments_created_at', table_name='enrollments')
    op.drop_index('ix_enrollments_payment_status', table_name='enrollments')
    op.drop_index('ix_enrollments_course_id', table_name='enrollments')
    op.drop_index('ix_enrollments_student_id', table_name='enrollments')
    op.drop_index('ix_enrollments_id', table_name='enrollments')
    op.drop_table('enrollments')

    op.drop_index('ix_courses_status', table_name='courses')
    op.drop_index('ix_courses_instructor_id', table_name='courses')
    op.drop_index('ix_courses_id', table_name='courses')
    op.drop_table('courses')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
