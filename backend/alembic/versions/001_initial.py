"""Initial schema

Profiles, clients, grootboek, BTW codes, boekingsregels, BTW aangiftes,
upload logs and saved column mappings. Seeds the Dutch BTW codes.

Revision ID: 001_initial
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RUBRIEK_COLUMNS = (
    'rubriek_1a_omzet', 'rubriek_1a_btw',
    'rubriek_1b_omzet', 'rubriek_1b_btw',
    'rubriek_1c_omzet', 'rubriek_1c_btw',
    'rubriek_1d_omzet', 'rubriek_1d_btw',
    'rubriek_1e_omzet',
    'rubriek_2a_omzet',
    'rubriek_3a_omzet',
    'rubriek_3b_omzet',
    'rubriek_4a_omzet', 'rubriek_4a_btw',
    'rubriek_4b_omzet', 'rubriek_4b_btw',
    'rubriek_5a_btw',
    'rubriek_5b_btw', 'rubriek_5b_grondslag',
    'rubriek_5c_btw',
    'rubriek_5d_btw',
    'rubriek_5e_btw',
)


def _timestamps(updated: bool = True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True)
        )
    return columns


def upgrade() -> None:
    # Create profiles table
    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    # Create clients table
    op.create_table(
        'clients',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('kvk_number', sa.String(20), nullable=True),
        sa.Column('btw_number', sa.String(30), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('fiscal_year_start', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'name', name='uq_clients_user_name'),
        sa.CheckConstraint('fiscal_year_start BETWEEN 1 AND 12', name='ck_clients_fiscal_year_start'),
    )
    op.create_index('ix_clients_user_id', 'clients', ['user_id'])
    op.create_index('ix_clients_name', 'clients', ['name'])

    # Create grootboek_accounts table
    op.create_table(
        'grootboek_accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('account_number', sa.String(20), nullable=False),
        sa.Column('account_name', sa.String(255), nullable=False),
        sa.Column('account_type', sa.String(20), nullable=False),
        sa.Column('btw_code', sa.String(20), nullable=True),
        sa.Column('btw_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('rubriek', sa.String(10), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'account_number', name='uq_grootboek_client_number'),
        sa.CheckConstraint(
            "account_type IN ('activa', 'passiva', 'kosten', 'omzet')",
            name='ck_grootboek_account_type',
        ),
    )
    op.create_index('ix_grootboek_accounts_client_id', 'grootboek_accounts', ['client_id'])

    # Create btw_codes table
    op.create_table(
        'btw_codes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('rubriek', sa.String(10), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.CheckConstraint(
            "type IN ('verschuldigd', 'voorbelasting', 'verlegd', 'geen')",
            name='ck_btw_codes_type',
        ),
    )

    # Create boekingsregels table
    op.create_table(
        'boekingsregels',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('boekstuk_nummer', sa.String(50), nullable=True),
        sa.Column('boekdatum', sa.Date(), nullable=False),
        sa.Column('omschrijving', sa.Text(), nullable=False),
        sa.Column('grootboek_account_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('account_number', sa.String(20), nullable=False),
        sa.Column('debet', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('credit', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('btw_code', sa.String(20), nullable=True),
        sa.Column('btw_bedrag', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('tegenrekening', sa.String(50), nullable=True),
        sa.Column('factuurnummer', sa.String(100), nullable=True),
        sa.Column('relatie', sa.String(255), nullable=True),
        sa.Column('periode', sa.Integer(), nullable=False),
        sa.Column('jaar', sa.Integer(), nullable=False),
        sa.Column('is_validated', sa.Boolean(), nullable=True, server_default='false'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['grootboek_account_id'], ['grootboek_accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('periode BETWEEN 1 AND 12', name='ck_boekingsregels_periode'),
        sa.CheckConstraint('debet >= 0 AND credit >= 0', name='ck_boekingsregels_amounts'),
    )
    op.create_index('ix_boekingsregels_client_id', 'boekingsregels', ['client_id'])
    op.create_index('ix_boekingsregels_periode', 'boekingsregels', ['periode'])
    op.create_index('ix_boekingsregels_jaar', 'boekingsregels', ['jaar'])

    # Create btw_aangiftes table
    op.create_table(
        'btw_aangiftes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('periode_type', sa.String(10), nullable=False),
        sa.Column('periode', sa.Integer(), nullable=False),
        sa.Column('jaar', sa.Integer(), nullable=False),
        *[
            sa.Column(name, sa.Numeric(15, 2), nullable=False, server_default='0')
            for name in RUBRIEK_COLUMNS
        ],
        sa.Column('status', sa.String(20), nullable=False, server_default='concept'),
        sa.Column('ingediend_op', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'periode_type', 'periode', 'jaar', name='uq_btw_aangiftes_client_period'),
        sa.CheckConstraint("periode_type IN ('maand', 'kwartaal', 'jaar')", name='ck_btw_aangiftes_periode_type'),
        sa.CheckConstraint("status IN ('concept', 'definitief', 'ingediend')", name='ck_btw_aangiftes_status'),
    )
    op.create_index('ix_btw_aangiftes_client_id', 'btw_aangiftes', ['client_id'])

    # Create upload_logs table
    op.create_table(
        'upload_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_type', sa.String(20), nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='processing'),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "file_type IN ('grootboek', 'boekingsregels', 'clients')",
            name='ck_upload_logs_file_type',
        ),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name='ck_upload_logs_status',
        ),
    )
    op.create_index('ix_upload_logs_client_id', 'upload_logs', ['client_id'])

    # Create column_mappings table
    op.create_table(
        'column_mappings',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('upload_type', sa.String(20), nullable=False),
        sa.Column('mapping', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_column_mappings_user_id', 'column_mappings', ['user_id'])

    # Insert the Dutch BTW codes
    op.execute("""
        INSERT INTO btw_codes (id, code, description, percentage, rubriek, type, is_active)
        VALUES
        -- Verschuldigd (sales)
        (gen_random_uuid(), '1a', 'Leveringen/diensten belast met hoog tarief', 21.00, '1a', 'verschuldigd', true),
        (gen_random_uuid(), '1b', 'Leveringen/diensten belast met laag tarief', 9.00, '1b', 'verschuldigd', true),
        (gen_random_uuid(), '1c', 'Leveringen/diensten belast met overige tarieven', 0.00, '1c', 'verschuldigd', true),
        (gen_random_uuid(), '1d', 'Privégebruik', 21.00, '1d', 'verschuldigd', true),
        -- Omzet without Dutch BTW
        (gen_random_uuid(), '1e', 'Leveringen/diensten belast met 0% of niet bij u belast', 0.00, '1e', 'geen', true),
        (gen_random_uuid(), '2a', 'Leveringen naar landen buiten de EU', 0.00, '2a', 'geen', true),
        (gen_random_uuid(), '3a', 'Leveringen naar landen binnen de EU', 0.00, '3a', 'geen', true),
        (gen_random_uuid(), '3b', 'Diensten naar landen binnen de EU', 0.00, '3b', 'geen', true),
        -- Verlegd (reverse charge)
        (gen_random_uuid(), '4a', 'Leveringen uit landen buiten de EU', 21.00, '4a', 'verlegd', true),
        (gen_random_uuid(), '4b', 'Leveringen uit landen binnen de EU', 21.00, '4b', 'verlegd', true),
        -- Voorbelasting (purchases)
        (gen_random_uuid(), '5b', 'Voorbelasting hoog tarief', 21.00, '5b', 'voorbelasting', true),
        (gen_random_uuid(), '5b-laag', 'Voorbelasting laag tarief', 9.00, '5b', 'voorbelasting', true),
        (gen_random_uuid(), 'geen', 'Geen BTW', 0.00, 'geen', 'geen', true)
    """)


def downgrade() -> None:
    op.drop_index('ix_column_mappings_user_id', table_name='column_mappings')
    op.drop_table('column_mappings')
    op.drop_index('ix_upload_logs_client_id', table_name='upload_logs')
    op.drop_table('upload_logs')
    op.drop_index('ix_btw_aangiftes_client_id', table_name='btw_aangiftes')
    op.drop_table('btw_aangiftes')
    op.drop_index('ix_boekingsregels_jaar', table_name='boekingsregels')
    op.drop_index('ix_boekingsregels_periode', table_name='boekingsregels')
    op.drop_index('ix_boekingsregels_client_id', table_name='boekingsregels')
    op.drop_table('boekingsregels')
    op.drop_table('btw_codes')
    op.drop_index('ix_grootboek_accounts_client_id', table_name='grootboek_accounts')
    op.drop_table('grootboek_accounts')
    op.drop_index('ix_clients_name', table_name='clients')
    op.drop_index('ix_clients_user_id', table_name='clients')
    op.drop_table('clients')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')
