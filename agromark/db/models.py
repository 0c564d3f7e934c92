# =============================================================================
# Database Models — AgroMark Ledger (SQLAlchemy ORM)
# =============================================================================
#
# Read-side mapping of the ledger schema owned by the back-office service.
# Physical table names are snake_case; column names are camelCase, which
# is why generated SQL must double-quote them (e.g. "valorTotal").
#
# SCHEMA OVERVIEW:
#
# ┌───────────────┐  fornecedorId  ┌──────────────────────┐   ┌────────────────┐
# │ pessoa        │◀───────────────│ movimento_contas     │──▶│ parcela_contas │
# ├───────────────┤  faturadoId    ├──────────────────────┤1:N├────────────────┤
# │ id (PK)       │◀───────────────│ id (PK)              │   │ movimentoId    │
# │ tipo          │                │ numeroNotaFiscal     │   │ valorParcela   │
# │ razaoSocial   │                │ dataEmissao          │   │ statusParcela  │
# │ documento     │                │ valorTotal           │   └────────────────┘
# └───────────────┘                └──────────┬───────────┘
#                                             │ N:M
#                          ┌──────────────────▼───────┐   ┌───────────────┐
#                          │ movimento_classificacao  │──▶│ classificacao │
#                          └──────────────────────────┘   └───────────────┘
#
# Migrations are managed elsewhere; these models exist so the embedding
# cache can load ledger rows with typed relationships.
# =============================================================================

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for the ledger models."""

    pass


# ---------------------------------------------------------------------------
# Enums — stored as PostgreSQL enum types named after the Prisma enums
# ---------------------------------------------------------------------------


class PessoaTipo(str, enum.Enum):
    """Role a counterparty plays in the ledger."""

    FORNECEDOR = "FORNECEDOR"  # Supplier (issuer of an expense invoice)
    FATURADO = "FATURADO"      # Billed party (our company)
    CLIENTE = "CLIENTE"        # Customer (revenue invoices)


class StatusRegistro(str, enum.Enum):
    ATIVO = "ATIVO"
    INATIVO = "INATIVO"


class ClassificacaoTipo(str, enum.Enum):
    DESPESA = "DESPESA"
    RECEITA = "RECEITA"


class MovimentoTipo(str, enum.Enum):
    APAGAR = "APAGAR"      # Payable
    ARECEBER = "ARECEBER"  # Receivable


class StatusParcela(str, enum.Enum):
    ABERTA = "ABERTA"
    PAGA = "PAGA"
    CANCELADA = "CANCELADA"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class Pessoa(Base):
    """A counterparty: supplier, billed party or customer."""

    __tablename__ = "pessoa"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tipo: Mapped[PessoaTipo] = mapped_column(
        Enum(PessoaTipo, name="PessoaTipo"), nullable=False,
    )
    razao_social: Mapped[str] = mapped_column("razaoSocial", String, nullable=False)
    fantasia: Mapped[str | None] = mapped_column(String, nullable=True)

    # CNPJ (14 digits) or CPF (11 digits), digits only
    documento: Mapped[str] = mapped_column(String, nullable=False)

    status: Mapped[StatusRegistro] = mapped_column(
        Enum(StatusRegistro, name="StatusRegistro"),
        nullable=False,
        default=StatusRegistro.ATIVO,
    )
    criado_em: Mapped[datetime] = mapped_column(
        "criadoEm", DateTime, server_default=func.now(), nullable=False,
    )
    atualizado_em: Mapped[datetime] = mapped_column(
        "atualizadoEm", DateTime, server_default=func.now(), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Pessoa(id={self.id}, tipo={self.tipo}, razao_social='{self.razao_social}')>"


class Classificacao(Base):
    """An expense or revenue category (e.g. 'INSUMOS AGRÍCOLAS')."""

    __tablename__ = "classificacao"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tipo: Mapped[ClassificacaoTipo] = mapped_column(
        Enum(ClassificacaoTipo, name="ClassificacaoTipo"), nullable=False,
    )
    descricao: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[StatusRegistro] = mapped_column(
        Enum(StatusRegistro, name="StatusRegistro"),
        nullable=False,
        default=StatusRegistro.ATIVO,
    )

    def __repr__(self) -> str:
        return f"<Classificacao(id={self.id}, descricao='{self.descricao}')>"


class MovimentoContas(Base):
    """
    A ledger row: one invoice, payable or receivable.

    Joins the supplier and the billed party (both `pessoa` rows), carries
    the invoice total and is linked to one or more categories.
    """

    __tablename__ = "movimento_contas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tipo: Mapped[MovimentoTipo] = mapped_column(
        Enum(MovimentoTipo, name="MovimentoTipo"),
        nullable=False,
        default=MovimentoTipo.APAGAR,
    )
    numero_nota_fiscal: Mapped[str] = mapped_column(
        "numeroNotaFiscal", String, nullable=False,
    )
    data_emissao: Mapped[datetime] = mapped_column(
        "dataEmissao", DateTime, nullable=False,
    )
    descricao: Mapped[str | None] = mapped_column(String, nullable=True)
    valor_total: Mapped[Decimal] = mapped_column(
        "valorTotal", Numeric(14, 2), nullable=False,
    )

    fornecedor_id: Mapped[int] = mapped_column(
        "fornecedorId", Integer, ForeignKey("pessoa.id"), nullable=False,
    )
    faturado_id: Mapped[int] = mapped_column(
        "faturadoId", Integer, ForeignKey("pessoa.id"), nullable=False,
    )

    fornecedor: Mapped[Pessoa] = relationship(
        "Pessoa", foreign_keys=[fornecedor_id],
    )
    faturado: Mapped[Pessoa] = relationship(
        "Pessoa", foreign_keys=[faturado_id],
    )
    parcelas: Mapped[list["ParcelaContas"]] = relationship(
        "ParcelaContas", back_populates="movimento",
    )
    classificacoes: Mapped[list["MovimentoClassificacao"]] = relationship(
        "MovimentoClassificacao", back_populates="movimento",
    )

    def __repr__(self) -> str:
        return (
            f"<MovimentoContas(id={self.id}, nf='{self.numero_nota_fiscal}', "
            f"valor={self.valor_total})>"
        )


class ParcelaContas(Base):
    """An instalment of a ledger row."""

    __tablename__ = "parcela_contas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identificacao: Mapped[str] = mapped_column(String, nullable=False)
    data_vencimento: Mapped[datetime] = mapped_column(
        "dataVencimento", DateTime, nullable=False,
    )
    valor_parcela: Mapped[Decimal] = mapped_column(
        "valorParcela", Numeric(14, 2), nullable=False,
    )
    valor_saldo: Mapped[Decimal] = mapped_column(
        "valorSaldo", Numeric(14, 2), nullable=False,
    )
    status_parcela: Mapped[StatusParcela] = mapped_column(
        "statusParcela",
        Enum(StatusParcela, name="StatusParcela"),
        nullable=False,
        default=StatusParcela.ABERTA,
    )
    movimento_id: Mapped[int] = mapped_column(
        "movimentoId", Integer, ForeignKey("movimento_contas.id"), nullable=False,
    )

    movimento: Mapped[MovimentoContas] = relationship(
        "MovimentoContas", back_populates="parcelas",
    )


class MovimentoClassificacao(Base):
    """Association between a ledger row and a category."""

    __tablename__ = "movimento_classificacao"

    movimento_id: Mapped[int] = mapped_column(
        "movimentoId",
        Integer,
        ForeignKey("movimento_contas.id"),
        primary_key=True,
    )
    classificacao_id: Mapped[int] = mapped_column(
        "classificacaoId",
        Integer,
        ForeignKey("classificacao.id"),
        primary_key=True,
    )

    movimento: Mapped[MovimentoContas] = relationship(
        "MovimentoContas", back_populates="classificacoes",
    )
    classificacao: Mapped[Classificacao] = relationship("Classificacao")


# Physical table names, in the order they are described to the SQL
# generator. The SQL guard only allows statements that read from these.
LEDGER_TABLES: tuple[str, ...] = (
    MovimentoContas.__tablename__,
    ParcelaContas.__tablename__,
    Pessoa.__tablename__,
    Classificacao.__tablename__,
    MovimentoClassificacao.__tablename__,
)
