# fleex/presentation/cart_manager.py
# Gerencia o carrinho e o checkout de cada loja na sessão do Django.

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from django.http import HttpRequest

from fleex.core.carrinho import MotorCarrinho, BuscaProduto
from fleex.core.checkout import ContextoCheckout, EtapaCheckout
from fleex.core.entities import (
    ItemCarrinho, PerfilLoja, DadosCliente, MetodoEntrega, MetodoPagamento
)
from fleex.core.ports import ICacheCarrinho
from fleex.infrastructure.mappers import (
    ItemCarrinhoMapper, CotacaoFreteMapper, CupomMapper, PedidoMapper
)


class CacheCarrinhoSessao(ICacheCarrinho):
    """
    Cache do carrinho na sessão do cliente. Cada loja tem sua própria chave,
    então carrinhos de lojas diferentes nunca se misturam.
    """

    PREFIXO = 'fleex_cart_'

    def __init__(self, request: HttpRequest):
        self.request = request

    def _chave(self, loja_id: str) -> str:
        return f"{self.PREFIXO}{loja_id}"

    def carregar(self, loja_id: str) -> List[ItemCarrinho]:
        dados = self.request.session.get(self._chave(loja_id)) or []
        return [ItemCarrinhoMapper.from_dict(item) for item in dados]

    def salvar(self, loja_id: str, itens: List[ItemCarrinho]) -> None:
        self.request.session[self._chave(loja_id)] = [ItemCarrinhoMapper.to_dict(item) for item in itens]
        self.request.session.modified = True

    def limpar(self, loja_id: str) -> None:
        if self._chave(loja_id) in self.request.session:
            del self.request.session[self._chave(loja_id)]
            self.request.session.modified = True


# ====================================================================
# SERIALIZAÇÃO DO CONTEXTO DE CHECKOUT
# ====================================================================

def contexto_para_dict(ctx: ContextoCheckout) -> Dict[str, Any]:
    """O perfil da loja não vai para a sessão: é relido a cada requisição."""
    return {
        'etapa': ctx.etapa.value,
        'itens': [ItemCarrinhoMapper.to_dict(item) for item in ctx.itens],
        'cliente': asdict(ctx.cliente),
        'metodo_entrega': ctx.metodo_entrega.value if ctx.metodo_entrega else None,
        'opcoes_frete': [CotacaoFreteMapper.to_dict(opcao) for opcao in ctx.opcoes_frete],
        'frete_selecionado': CotacaoFreteMapper.to_dict(ctx.frete_selecionado) if ctx.frete_selecionado else None,
        'erro_frete': ctx.erro_frete,
        'endereco': ctx.endereco,
        'cupom_aplicado': CupomMapper.to_dict(ctx.cupom_aplicado) if ctx.cupom_aplicado else None,
        'pedido': PedidoMapper.to_dict(ctx.pedido) if ctx.pedido else None,
        'metodo_pagamento': ctx.metodo_pagamento.value,
    }


def contexto_de_dict(perfil: PerfilLoja, dados: Dict[str, Any]) -> ContextoCheckout:
    frete = dados.get('frete_selecionado')
    cupom = dados.get('cupom_aplicado')
    pedido = dados.get('pedido')
    metodo_entrega = dados.get('metodo_entrega')
    return ContextoCheckout(
        loja=perfil,
        etapa=EtapaCheckout(dados['etapa']),
        itens=[ItemCarrinhoMapper.from_dict(item) for item in dados.get('itens') or []],
        cliente=DadosCliente(**(dados.get('cliente') or {})),
        metodo_entrega=MetodoEntrega(metodo_entrega) if metodo_entrega else None,
        opcoes_frete=[CotacaoFreteMapper.from_dict(opcao) for opcao in dados.get('opcoes_frete') or []],
        frete_selecionado=CotacaoFreteMapper.from_dict(frete) if frete else None,
        erro_frete=dados.get('erro_frete') or '',
        endereco=dados.get('endereco') or '',
        cupom_aplicado=CupomMapper.from_dict(cupom) if cupom else None,
        pedido=PedidoMapper.from_dict(pedido) if pedido else None,
        metodo_pagamento=MetodoPagamento(dados.get('metodo_pagamento') or MetodoPagamento.PIX.value),
    )


class LojaSessionManager:
    """
    Estado de um cliente numa loja, guardado na sessão do Django:
    - o carrinho (via CacheCarrinhoSessao);
    - se o carrinho já está ativo nesta visita (sem oferta de restauração pendente);
    - o contexto do checkout em andamento.
    """

    CHECKOUT_PREFIXO = 'fleex_sessao_'
    ATIVO_PREFIXO = 'fleex_cart_ativo_'

    def __init__(self, request: HttpRequest, loja_id: str, buscar_produto: Optional[BuscaProduto] = None):
        self.request = request
        self.loja_id = loja_id
        self.buscar_produto = buscar_produto
        self.cache = CacheCarrinhoSessao(request)

    # --- Carrinho ---

    def abrir_carrinho(self, nova_visita: bool = False) -> MotorCarrinho:
        """
        Numa nova visita (página da loja carregada), um carrinho salvo vira
        oferta de restauração. Nas demais requisições o carrinho ativo é
        retomado como está.
        """
        chave_ativo = f"{self.ATIVO_PREFIXO}{self.loja_id}"
        if nova_visita:
            self.request.session[chave_ativo] = False

        if self.request.session.get(chave_ativo):
            return MotorCarrinho(
                self.loja_id, self.cache,
                itens=self.cache.carregar(self.loja_id),
                buscar_produto=self.buscar_produto,
            )
        return MotorCarrinho.abrir(self.loja_id, self.cache, buscar_produto=self.buscar_produto)

    def registrar_carrinho(self, motor: MotorCarrinho):
        """Guarda se a sessão do carrinho já começou (chamado após cada ação)."""
        self.request.session[f"{self.ATIVO_PREFIXO}{self.loja_id}"] = motor.sessao_iniciada
        self.request.session.modified = True

    # --- Checkout ---

    def carregar_checkout(self, perfil: PerfilLoja) -> Optional[ContextoCheckout]:
        dados = self.request.session.get(f"{self.CHECKOUT_PREFIXO}{self.loja_id}")
        if not dados:
            return None
        return contexto_de_dict(perfil, dados)

    def salvar_checkout(self, ctx: ContextoCheckout):
        self.request.session[f"{self.CHECKOUT_PREFIXO}{self.loja_id}"] = contexto_para_dict(ctx)
        self.request.session.modified = True

    def limpar_checkout(self):
        chave = f"{self.CHECKOUT_PREFIXO}{self.loja_id}"
        if chave in self.request.session:
            del self.request.session[chave]
            self.request.session.modified = True
