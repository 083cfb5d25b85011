"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Create stations table
    op.create_table('stations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('soft_deleted', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('capacity >= 0', name='ck_station_capacity_non_negative'),
        sa.CheckConstraint('latitude BETWEEN -90 AND 90', name='ck_station_latitude_range'),
        sa.CheckConstraint('longitude BETWEEN -180 AND 180', name='ck_station_longitude_range'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stations_name'), 'stations', ['name'], unique=False)

    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('account_status', sa.String(length=20), nullable=False),
        sa.Column('station_id', sa.Uuid(), nullable=True),
        sa.Column('soft_deleted', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)
    op.create_index(op.f('ix_users_station_id'), 'users', ['station_id'], unique=False)

    # Create vehicles table
    op.create_table('vehicles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('station_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('brand', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('seats', sa.Integer(), nullable=True),
        sa.Column('license_plate', sa.String(length=20), nullable=True),
        sa.Column('battery_level', sa.Integer(), nullable=False),
        sa.Column('hourly_rate', sa.Integer(), nullable=False),
        sa.Column('deposit_amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('soft_deleted', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('battery_level >= 0 AND battery_level <= 100', name='ck_vehicle_battery_range'),
        sa.CheckConstraint('hourly_rate >= 0', name='ck_vehicle_hourly_rate_non_negative'),
        sa.CheckConstraint('deposit_amount >= 0', name='ck_vehicle_deposit_non_negative'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('license_plate')
    )
    op.create_index(op.f('ix_vehicles_station_id'), 'vehicles', ['station_id'], unique=False)
    op.create_index(op.f('ix_vehicles_status'), 'vehicles', ['status'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('vehicle_id', sa.Uuid(), nullable=False),
        sa.Column('station_id', sa.Uuid(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('actual_end_time', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('pickup_location', sa.String(length=500), nullable=True),
        sa.Column('dropoff_location', sa.String(length=500), nullable=True),
        sa.Column('return_odometer', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('base_price', sa.Integer(), nullable=False),
        sa.Column('insurance_amount', sa.Integer(), nullable=False),
        sa.Column('tax_amount', sa.Integer(), nullable=False),
        sa.Column('discount_amount', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('deposit_amount', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('start_time < end_time', name='ck_booking_start_before_end'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_booking_discount_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_station_id'), 'bookings', ['station_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(
        'ix_bookings_vehicle_status_period', 'bookings',
        ['vehicle_id', 'status', 'start_time', 'end_time'], unique=False
    )

    # Create rental_histories table
    op.create_table('rental_histories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('distance', sa.Integer(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'rating IS NULL OR (rating >= 1 AND rating <= 5)', name='ck_rental_history_rating_range'
        ),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_rental_histories_user_id'), 'rental_histories', ['user_id'], unique=False)

    # Create payments table
    op.create_table('payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('refund_amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('payment_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False),
        sa.Column('checkout_url', sa.String(length=1000), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
        sa.CheckConstraint('refund_amount >= 0', name='ck_payment_refund_non_negative'),
        sa.CheckConstraint('refund_amount <= amount', name='ck_payment_refund_lte_amount'),
        sa.CheckConstraint(
            "status <> 'REFUNDED' OR refund_amount = amount", name='ck_payment_refunded_is_full'
        ),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payments_booking_id'), 'payments', ['booking_id'], unique=False)
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)
    op.create_index(op.f('ix_payments_transaction_id'), 'payments', ['transaction_id'], unique=True)

    # Create promotions tables
    op.create_table('promotions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount', sa.Float(), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=False),
        sa.Column('valid_until', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('discount > 0 AND discount <= 1', name='ck_promotion_discount_range'),
        sa.CheckConstraint('valid_from < valid_until', name='ck_promotion_window'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_promotions_code'), 'promotions', ['code'], unique=True)

    op.create_table('promotion_bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('promotion_id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('discount_amount', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['promotion_id'], ['promotions.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('promotion_id', 'booking_id', name='uq_promotion_booking')
    )
    op.create_index(op.f('ix_promotion_bookings_promotion_id'), 'promotion_bookings', ['promotion_id'], unique=False)
    op.create_index(op.f('ix_promotion_bookings_booking_id'), 'promotion_bookings', ['booking_id'], unique=False)

    # Create user_documents table
    op.create_table('user_documents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('document_type', sa.String(length=20), nullable=False),
        sa.Column('document_number', sa.String(length=100), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('file_url', sa.String(length=1000), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('verified_by', sa.Uuid(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['verified_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_documents_user_id'), 'user_documents', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_documents_status'), 'user_documents', ['status'], unique=False)

    # Create rental_contracts table
    op.create_table('rental_contracts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('contract_number', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('renter_name', sa.String(length=255), nullable=True),
        sa.Column('witness_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('signed_file_url', sa.String(length=1000), nullable=True),
        sa.Column('signed_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contract_number')
    )
    op.create_index(op.f('ix_rental_contracts_booking_id'), 'rental_contracts', ['booking_id'], unique=False)

    # Create vehicle_inspections table
    op.create_table('vehicle_inspections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('vehicle_id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=True),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('inspection_type', sa.String(length=20), nullable=False),
        sa.Column('battery_level', sa.Integer(), nullable=True),
        sa.Column('exterior_condition', sa.String(length=255), nullable=True),
        sa.Column('interior_condition', sa.String(length=255), nullable=True),
        sa.Column('tire_condition', sa.String(length=255), nullable=True),
        sa.Column('mileage', sa.Integer(), nullable=True),
        sa.Column('damage_notes', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('image_urls', sa.JSON(), nullable=False),
        sa.Column('document_verified', sa.Boolean(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'battery_level IS NULL OR (battery_level >= 0 AND battery_level <= 100)',
            name='ck_inspection_battery_range'
        ),
        sa.CheckConstraint('mileage IS NULL OR mileage >= 0', name='ck_inspection_mileage_non_negative'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['staff_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_vehicle_inspections_vehicle_id'), 'vehicle_inspections', ['vehicle_id'], unique=False)
    op.create_index(op.f('ix_vehicle_inspections_booking_id'), 'vehicle_inspections', ['booking_id'], unique=False)
    op.create_index(op.f('ix_vehicle_inspections_staff_id'), 'vehicle_inspections', ['staff_id'], unique=False)

    # Create notifications table
    op.create_table('notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('notifications')
    op.drop_table('vehicle_inspections')
    op.drop_table('rental_contracts')
    op.drop_table('user_documents')
    op.drop_table('promotion_bookings')
    op.drop_table('promotions')
    op.drop_table('payments')
    op.drop_table('rental_histories')
    op.drop_table('bookings')
    op.drop_table('vehicles')
    op.drop_table('users')
    op.drop_table('stations')
