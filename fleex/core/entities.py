from dataclasses import dataclass, field
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
import uuid

# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros da loja (tenant).
# ====================================================================


def _novo_id() -> str:
    return str(uuid.uuid4())


def _agora() -> datetime:
    return datetime.now(timezone.utc)


class PlanoTipo(str, Enum):
    """Planos de assinatura do lojista."""
    FREE = 'FREE'
    PRO = 'PRO'
    BUSINESS = 'BUSINESS'
    PROFESSIONAL = 'PROFESSIONAL'


class MetodoEntrega(str, Enum):
    """Formas de entrega oferecidas no checkout."""
    RETIRADA = 'pickup'
    ENTREGA_LOCAL = 'delivery'
    TRANSPORTADORA = 'shipping'


class StatusPedido(str, Enum):
    PENDENTE = 'pending'
    PAGO = 'paid'
    ENVIADO = 'shipped'
    CONCLUIDO = 'completed'
    CANCELADO = 'canceled'


class MetodoPagamento(str, Enum):
    PIX = 'pix'
    CARTAO = 'card'


@dataclass
class SessaoLoja:
    """
    Contexto explícito de uma chamada à persistência: qual loja (tenant)
    está sendo acessada e quem está agindo.
    """
    loja_id: str
    ator: str = 'Sistema'


@dataclass
class SubConta:
    """Colaborador com acesso ao painel (plano Profissional)."""
    nome: str
    papel: str = 'editor'
    id: str = field(default_factory=_novo_id)


@dataclass
class RegistroAtividade:
    """Entrada do log de atividades do painel."""
    autor: str
    acao: str
    detalhes: Optional[str] = None
    id: str = field(default_factory=_novo_id)
    data: datetime = field(default_factory=_agora)


@dataclass
class PerfilLoja:
    """Perfil do lojista (tenant). Lido pelo checkout, nunca alterado por ele."""
    id: str
    nome: str
    slug: str
    email: str = ''
    bio: str = ''
    avatar_url: str = ''
    plano: PlanoTipo = PlanoTipo.FREE
    tema_id: str = 'minimal-light'
    cor_primaria: str = '#0ea5e9'
    telefone: str = ''
    chave_pix: str = ''
    cep_loja: str = ''
    cidade_loja: str = ''
    estado_loja: str = ''
    pagamento_automatico: bool = False
    subcontas: List[SubConta] = field(default_factory=list)
    atividades: List[RegistroAtividade] = field(default_factory=list)


@dataclass
class Link:
    """Link exibido na página pública (link-in-bio)."""
    titulo: str
    url: str
    ativo: bool = True
    cliques: int = 0
    id: str = field(default_factory=_novo_id)


@dataclass
class Categoria:
    nome: str
    id: str = field(default_factory=_novo_id)


@dataclass
class Variante:
    """Variação livre de um produto (tamanho, cor...)."""
    nome: str
    id: str = field(default_factory=_novo_id)


@dataclass
class Produto:
    """Produto do catálogo da loja."""
    titulo: str
    preco: Decimal
    estoque: int = 0
    descricao: str = ''
    imagens: List[str] = field(default_factory=list)
    categoria_id: Optional[str] = None
    ativo: bool = True
    vendas: int = 0
    variantes: List[Variante] = field(default_factory=list)
    # Dimensões usadas apenas pelo frete
    peso: Optional[Decimal] = None
    largura: Optional[Decimal] = None
    altura: Optional[Decimal] = None
    comprimento: Optional[Decimal] = None
    id: str = field(default_factory=_novo_id)

    @property
    def possui_variantes(self) -> bool:
        return bool(self.variantes)


VARIANTE_PADRAO = 'default'


@dataclass
class ItemCarrinho:
    """Snapshot de um produto no carrinho, com quantidade e variante escolhida."""
    produto: Produto
    quantidade: int = 1
    variante: Optional[Variante] = None

    @property
    def chave(self) -> Tuple[str, str]:
        """Identidade da linha: (produto, variante ou 'default')."""
        return (self.produto.id, self.variante.id if self.variante else VARIANTE_PADRAO)

    @property
    def subtotal(self) -> Decimal:
        return self.produto.preco * self.quantidade

    @property
    def descricao(self) -> str:
        texto = f"{self.quantidade}x {self.produto.titulo}"
        if self.variante:
            texto += f" ({self.variante.nome})"
        return texto


@dataclass
class Cupom:
    """Cupom de desconto percentual. O código é sempre armazenado em maiúsculas."""
    codigo: str
    percentual_desconto: Decimal
    uso: int = 0
    id: str = field(default_factory=_novo_id)

    def __post_init__(self):
        self.codigo = self.codigo.strip().upper()


@dataclass
class CotacaoFrete:
    servico: str
    preco: Decimal
    prazo_dias: int


@dataclass
class DadosCliente:
    """Identificação do cliente coletada na etapa de detalhes."""
    nome: str = ''
    telefone: str = ''
    cidade: str = ''
    estado: str = ''
    cep: str = ''


@dataclass
class Totais:
    subtotal: Decimal
    desconto: Decimal
    frete: Decimal
    total: Decimal


@dataclass
class Pedido:
    """Pedido registrado ao final do checkout. Nunca é excluído, apenas muda de status."""
    nome_cliente: str
    telefone_cliente: str
    resumo_itens: str
    total: Decimal
    metodo_entrega: MetodoEntrega
    cidade_cliente: str = ''
    estado_cliente: str = ''
    cep_cliente: str = ''
    servico_frete: Optional[str] = None
    custo_frete: Optional[Decimal] = None
    endereco: Optional[str] = None
    status: StatusPedido = StatusPedido.PENDENTE
    metodo_pagamento: Optional[str] = None
    codigo_rastreio: Optional[str] = None
    id: str = field(default_factory=_novo_id)
    data: datetime = field(default_factory=_agora)

    @property
    def codigo_curto(self) -> str:
        return self.id[-4:]


@dataclass
class CarrinhoAbandonado:
    """Snapshot de um checkout fechado antes do sucesso, com contato do cliente."""
    nome_cliente: str
    telefone_cliente: str
    itens: List[ItemCarrinho]
    total: Decimal
    recuperado: bool = False
    id: str = field(default_factory=_novo_id)
    data: datetime = field(default_factory=_agora)


@dataclass
class Catalogo:
    """Conjunto editável no painel e salvo de uma vez pelo auto-salvamento."""
    links: List[Link] = field(default_factory=list)
    produtos: List[Produto] = field(default_factory=list)
    categorias: List[Categoria] = field(default_factory=list)
    cupons: List[Cupom] = field(default_factory=list)
