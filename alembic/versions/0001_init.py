from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(100), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='employee'),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'shipments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('shipper_name', sa.String(100), nullable=False),
        sa.Column('carrier_name', sa.String(100), nullable=False),
        sa.Column('pickup_location', sa.JSON, nullable=False),
        sa.Column('delivery_location', sa.JSON, nullable=False),
        sa.Column('tracking_number', sa.String(20), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='PENDING'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='MEDIUM'),
        sa.Column('rate', sa.Float, nullable=False),
        sa.Column('weight', sa.Float, nullable=False),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=False),
        # actual_delivery stays null until the shipment is delivered
        sa.Column('actual_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('flagged', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.String(1000), nullable=True),
        sa.Column('created_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rate >= 0', name='ck_shipments_rate_non_negative'),
        sa.CheckConstraint('weight >= 0', name='ck_shipments_weight_non_negative'),
    )
    op.create_index('ix_shipments_tracking_number', 'shipments', ['tracking_number'], unique=True)
    op.create_index('ix_shipments_shipper_name', 'shipments', ['shipper_name'])
    op.create_index('ix_shipments_carrier_name', 'shipments', ['carrier_name'])
    op.create_index('ix_shipments_status', 'shipments', ['status'])
    op.create_index('ix_shipments_priority', 'shipments', ['priority'])
    op.create_index('ix_shipments_flagged', 'shipments', ['flagged'])
    op.create_index('ix_shipments_estimated_delivery', 'shipments', ['estimated_delivery'])
    op.create_index('ix_shipments_created_at', 'shipments', ['created_at'])
    op.create_index('ix_shipments_status_created_at', 'shipments', ['status', 'created_at'])
    op.create_index('ix_shipments_carrier_name_status', 'shipments', ['carrier_name', 'status'])

def downgrade():
    op.drop_table('shipments')
    op.drop_table('users')
