"""initial_vibes_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, comment='Timestamp when record was created'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False, comment='Timestamp when record was last updated'),
    ]


def upgrade() -> None:
    # Create neighborhoods table
    op.create_table(
        'neighborhoods',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True, comment='State abbreviation (CA)'),
        sa.Column('metro_area', sa.String(length=255), nullable=True),
        sa.Column('median_price', sa.Integer(), nullable=True),
        sa.Column('walk_score', sa.Integer(), nullable=True),
        sa.Column('transit_score', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_neighborhoods_state', 'neighborhoods', ['state'], unique=False)
    op.create_index('idx_neighborhoods_created_at', 'neighborhoods', ['created_at'], unique=False)

    # Create properties table
    op.create_table(
        'properties',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('zpid', sa.String(length=32), nullable=True, comment='Zillow property id'),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('zip_code', sa.String(length=10), nullable=True),
        sa.Column('price', sa.Integer(), nullable=True),
        sa.Column('bedrooms', sa.Integer(), nullable=True),
        sa.Column('bathrooms', sa.Float(), nullable=True),
        sa.Column('square_feet', sa.Integer(), nullable=True),
        sa.Column('property_type', sa.String(length=50), nullable=True),
        sa.Column('year_built', sa.Integer(), nullable=True),
        sa.Column('lot_size_sqft', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amenities', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('images', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Ordered gallery image URLs'),
        sa.Column('neighborhood_id', sa.String(length=36), nullable=True),
        sa.Column('zillow_images_refreshed_at', sa.DateTime(timezone=True), nullable=True, comment='Last Zillow gallery refresh attempt'),
        sa.Column('zillow_images_refreshed_count', sa.Integer(), nullable=True, comment='Gallery size observed at last refresh'),
        sa.Column('zillow_images_refresh_status', sa.String(length=20), nullable=True, comment='ok, empty or failed'),
        *_timestamps(),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('TRUE'), nullable=False, comment='Soft delete flag - False indicates deleted record'),
        sa.CheckConstraint(
            "zillow_images_refresh_status IN ('ok', 'empty', 'failed')",
            name='check_zillow_images_refresh_status'
        ),
        sa.ForeignKeyConstraint(['neighborhood_id'], ['neighborhoods.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_properties_created_at', 'properties', ['created_at'], unique=False)
    op.create_index('idx_properties_price', 'properties', ['price'], unique=False)
    op.create_index('idx_properties_neighborhood_id', 'properties', ['neighborhood_id'], unique=False)

    # Create property_vibes table
    op.create_table(
        'property_vibes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('property_id', sa.String(length=36), nullable=False),
        sa.Column('tagline', sa.String(length=255), nullable=False),
        sa.Column('vibe_statement', sa.Text(), nullable=False),
        sa.Column('feature_highlights', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('lifestyle_fits', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('suggested_tags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('emotional_hooks', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('primary_vibes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('aesthetics', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('input_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('raw_output', sa.Text(), nullable=True),
        sa.Column('model_used', sa.String(length=100), nullable=False),
        sa.Column('images_analyzed', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('source_data_hash', sa.String(length=64), nullable=False),
        sa.Column('generation_cost_usd', sa.Float(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('property_id'),
    )

    # Create neighborhood_vibes table
    op.create_table(
        'neighborhood_vibes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('neighborhood_id', sa.String(length=36), nullable=False),
        sa.Column('tagline', sa.String(length=255), nullable=False),
        sa.Column('vibe_statement', sa.Text(), nullable=False),
        sa.Column('neighborhood_themes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('local_highlights', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('resident_fits', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('suggested_tags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('input_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('raw_output', sa.Text(), nullable=True),
        sa.Column('model_used', sa.String(length=100), nullable=False),
        sa.Column('source_data_hash', sa.String(length=64), nullable=False),
        sa.Column('generation_cost_usd', sa.Float(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['neighborhood_id'], ['neighborhoods.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('neighborhood_id'),
    )


def downgrade() -> None:
    op.drop_table('neighborhood_vibes')
    op.drop_table('property_vibes')
    op.drop_index('idx_properties_neighborhood_id', table_name='properties')
    op.drop_index('idx_properties_price', table_name='properties')
    op.drop_index('idx_properties_created_at', table_name='properties')
    op.drop_table('properties')
    op.drop_index('idx_neighborhoods_created_at', table_name='neighborhoods')
    op.drop_index('idx_neighborhoods_state', table_name='neighborhoods')
    op.drop_table('neighborhoods')
