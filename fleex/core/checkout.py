# fleex/core/checkout.py
"""
Máquina de estados do checkout.

Etapas: Detalhes → Entrega → (Endereço | pula) → Pagamento → (Gateway | pula) → Sucesso.
`transicionar(etapa, evento, contexto)` é pura: consulta apenas os guardas
(predicados sobre o contexto) e devolve a próxima etapa ou levanta o erro do
guarda que falhou. Os efeitos (gravar pedido, cotar frete...) ficam no
FluxoCheckoutUseCase.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from fleex.core.carrinho import calcular_totais
from fleex.core.entities import (
    PerfilLoja, ItemCarrinho, DadosCliente, MetodoEntrega, CotacaoFrete, Cupom,
    Pedido, StatusPedido, MetodoPagamento, Totais
)
from fleex.core.exceptions import DadosInvalidosError, EtapaInvalidaError
from fleex.core.planos import recursos_do_plano


class EtapaCheckout(str, Enum):
    DETALHES = 'details'
    ENTREGA = 'delivery'
    ENDERECO = 'address'
    PAGAMENTO = 'payment'
    GATEWAY = 'gateway'
    SUCESSO = 'success'


class EventoCheckout(str, Enum):
    CONTINUAR = 'continuar'
    VOLTAR = 'voltar'


@dataclass
class ContextoCheckout:
    """Estado de uma sessão de checkout de um cliente numa loja."""
    loja: PerfilLoja
    itens: List[ItemCarrinho] = field(default_factory=list)
    cliente: DadosCliente = field(default_factory=DadosCliente)
    metodo_entrega: Optional[MetodoEntrega] = None
    opcoes_frete: List[CotacaoFrete] = field(default_factory=list)
    frete_selecionado: Optional[CotacaoFrete] = None
    erro_frete: str = ''
    endereco: str = ''
    cupom_aplicado: Optional[Cupom] = None
    pedido: Optional[Pedido] = None
    metodo_pagamento: MetodoPagamento = MetodoPagamento.PIX
    etapa: EtapaCheckout = EtapaCheckout.DETALHES

    @property
    def totais(self) -> Totais:
        return calcular_totais(self.itens, self.cupom_aplicado, self.frete_selecionado)


# ====================================================================
# GUARDAS (predicados puros sobre o contexto)
# ====================================================================

def _normalizar_cidade(cidade: Optional[str]) -> str:
    return (cidade or '').strip().lower()


def cliente_local(ctx: ContextoCheckout) -> bool:
    """Cliente na mesma cidade da loja (comparação sem caixa e sem espaços nas pontas)."""
    cidade_loja = _normalizar_cidade(ctx.loja.cidade_loja)
    return bool(cidade_loja) and _normalizar_cidade(ctx.cliente.cidade) == cidade_loja


def exige_transportadora(ctx: ContextoCheckout) -> bool:
    """Planos com envio por transportadora forçam o frete para clientes de outra cidade."""
    return recursos_do_plano(ctx.loja.plano).envio_transportadora and not cliente_local(ctx)


def metodos_entrega_disponiveis(ctx: ContextoCheckout) -> List[MetodoEntrega]:
    if exige_transportadora(ctx):
        return [MetodoEntrega.TRANSPORTADORA]
    return [MetodoEntrega.RETIRADA, MetodoEntrega.ENTREGA_LOCAL]


def detalhes_completos(ctx: ContextoCheckout) -> bool:
    cliente = ctx.cliente
    return all(valor.strip() for valor in (cliente.nome, cliente.telefone, cliente.cidade, cliente.estado))


def frete_definido(ctx: ContextoCheckout) -> bool:
    return ctx.metodo_entrega == MetodoEntrega.TRANSPORTADORA and ctx.frete_selecionado is not None


def precisa_endereco(ctx: ContextoCheckout) -> bool:
    return ctx.metodo_entrega != MetodoEntrega.RETIRADA


def endereco_preenchido(ctx: ContextoCheckout) -> bool:
    return bool(ctx.endereco.strip())


def pedido_registrado(ctx: ContextoCheckout) -> bool:
    return ctx.pedido is not None


def pagamento_aprovado(ctx: ContextoCheckout) -> bool:
    return ctx.pedido is not None and ctx.pedido.status == StatusPedido.PAGO


# ====================================================================
# FUNÇÃO DE TRANSIÇÃO
# ====================================================================

def _validar_entrega(ctx: ContextoCheckout):
    if exige_transportadora(ctx):
        if not frete_definido(ctx):
            raise DadosInvalidosError("Selecione uma opção de frete.")
        return
    if ctx.metodo_entrega not in metodos_entrega_disponiveis(ctx):
        raise DadosInvalidosError("Escolha uma forma de entrega.")


def _continuar(etapa: EtapaCheckout, ctx: ContextoCheckout) -> EtapaCheckout:
    if etapa == EtapaCheckout.DETALHES:
        if not detalhes_completos(ctx):
            raise DadosInvalidosError("Preencha todos os dados.")
        return EtapaCheckout.ENTREGA

    if etapa == EtapaCheckout.ENTREGA:
        _validar_entrega(ctx)
        return EtapaCheckout.ENDERECO if precisa_endereco(ctx) else EtapaCheckout.PAGAMENTO

    if etapa == EtapaCheckout.ENDERECO:
        if not endereco_preenchido(ctx):
            raise DadosInvalidosError("Preencha o endereço.")
        return EtapaCheckout.PAGAMENTO

    if etapa == EtapaCheckout.PAGAMENTO:
        if not pedido_registrado(ctx):
            raise EtapaInvalidaError("Finalize o pedido para continuar.")
        return EtapaCheckout.GATEWAY if ctx.loja.pagamento_automatico else EtapaCheckout.SUCESSO

    if etapa == EtapaCheckout.GATEWAY:
        if not pagamento_aprovado(ctx):
            raise EtapaInvalidaError("Aguardando aprovação do pagamento.")
        return EtapaCheckout.SUCESSO

    raise EtapaInvalidaError("O checkout já foi concluído.")


def _voltar(etapa: EtapaCheckout, ctx: ContextoCheckout) -> EtapaCheckout:
    if etapa == EtapaCheckout.ENTREGA:
        return EtapaCheckout.DETALHES
    if etapa == EtapaCheckout.ENDERECO:
        return EtapaCheckout.ENTREGA
    if etapa == EtapaCheckout.PAGAMENTO:
        return EtapaCheckout.ENDERECO if precisa_endereco(ctx) else EtapaCheckout.ENTREGA
    # Detalhes não tem anterior; depois do pedido criado não há volta.
    raise EtapaInvalidaError("Não é possível voltar a partir desta etapa.")


def transicionar(etapa: EtapaCheckout, evento: EventoCheckout, ctx: ContextoCheckout) -> EtapaCheckout:
    """Calcula a próxima etapa sem efeitos colaterais."""
    if evento == EventoCheckout.CONTINUAR:
        return _continuar(etapa, ctx)
    if evento == EventoCheckout.VOLTAR:
        return _voltar(etapa, ctx)
    raise EtapaInvalidaError(f"Evento de checkout desconhecido: {evento}.")
