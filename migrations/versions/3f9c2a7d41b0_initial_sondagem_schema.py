"""Initial sondagem schema: students with per-period phases, reference tables, oracle audit

Revision ID: 3f9c2a7d41b0
Revises:
Create Date: 2026-10-19 09:40:12.504113

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f9c2a7d41b0'
down_revision = None
branch_labels = None
depends_on = None

PHASE_COLUMNS = [
    f'fase_{domain}_{period}'
    for domain in ('desenho', 'escrita')
    for period in ('inicial', '1bim', '2bim', '3bim', '4bim')
]


def upgrade():
    from sqlalchemy import inspect
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    # db.create_all may already have created the tables
    if 'alunos' not in existing_tables:
        op.create_table('alunos',
            sa.Column('codigo', sa.String(length=64), nullable=False),
            sa.Column('nome', sa.String(length=200), nullable=False),
            sa.Column('data_nascimento', sa.String(length=10), nullable=True),
            sa.Column('escola', sa.String(length=64), nullable=True),
            sa.Column('serie', sa.String(length=80), nullable=True),
            sa.Column('turma', sa.String(length=80), nullable=True),
            sa.Column('observacoes', sa.Text(), nullable=True),
            *[sa.Column(name, sa.String(length=80), nullable=True) for name in PHASE_COLUMNS],
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('codigo')
        )
        with op.batch_alter_table('alunos', schema=None) as batch_op:
            batch_op.create_index(batch_op.f('ix_alunos_escola'), ['escola'], unique=False)

    if 'escolas' not in existing_tables:
        op.create_table('escolas',
            sa.Column('codigo', sa.String(length=64), nullable=False),
            sa.Column('nome', sa.String(length=200), nullable=False),
            sa.PrimaryKeyConstraint('codigo')
        )

    if 'series' not in existing_tables:
        op.create_table('series',
            sa.Column('serie', sa.String(length=80), nullable=False),
            sa.PrimaryKeyConstraint('serie')
        )

    if 'turmas' not in existing_tables:
        op.create_table('turmas',
            sa.Column('turma', sa.String(length=80), nullable=False),
            sa.PrimaryKeyConstraint('turma')
        )

    if 'oracle_calls' not in existing_tables:
        op.create_table('oracle_calls',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('kind', sa.String(length=30), nullable=False),
            sa.Column('provider', sa.String(length=30), nullable=False),
            sa.Column('model', sa.String(length=100), nullable=True),
            sa.Column('student_code', sa.String(length=64), nullable=True),
            sa.Column('input_tokens', sa.Integer(), nullable=False),
            sa.Column('output_tokens', sa.Integer(), nullable=False),
            sa.Column('cost_usd', sa.Float(), nullable=False),
            sa.Column('latency_ms', sa.Integer(), nullable=False),
            sa.Column('attempts', sa.Integer(), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False),
            sa.Column('error', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        with op.batch_alter_table('oracle_calls', schema=None) as batch_op:
            batch_op.create_index(batch_op.f('ix_oracle_calls_student_code'), ['student_code'], unique=False)
            batch_op.create_index(batch_op.f('ix_oracle_calls_created_at'), ['created_at'], unique=False)


def downgrade():
    op.drop_table('oracle_calls')
    op.drop_table('turmas')
    op.drop_table('series')
    op.drop_table('escolas')
    op.drop_table('alunos')
