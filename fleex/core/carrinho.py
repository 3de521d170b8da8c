# fleex/core/carrinho.py
"""
Motor do carrinho de compras.

Mantém as linhas em ordem de inserção, respeita o estoque vigente no momento
de cada alteração e grava um snapshot completo no cache local da sessão a cada
mutação (carrinho vazio limpa a entrada do cache).
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from fleex.core.entities import ItemCarrinho, Produto, Variante, Cupom, CotacaoFrete, Totais
from fleex.core.exceptions import (
    SelecaoObrigatoriaError, DadosInvalidosError, EstoqueInsuficienteError, ItemNaoEncontradoError
)
from fleex.core.ports import ICacheCarrinho

logger = logging.getLogger(__name__)

CENTAVOS = Decimal('0.01')

BuscaProduto = Callable[[str], Optional[Produto]]


def calcular_totais(itens: List[ItemCarrinho], cupom: Optional[Cupom] = None,
                    frete: Optional[CotacaoFrete] = None) -> Totais:
    """Subtotal, desconto percentual do cupom sobre o subtotal, frete e total."""
    subtotal = sum((item.subtotal for item in itens), Decimal('0'))
    desconto = Decimal('0')
    if cupom is not None:
        desconto = (subtotal * Decimal(str(cupom.percentual_desconto)) / Decimal('100')).quantize(
            CENTAVOS, rounding=ROUND_HALF_UP
        )
    valor_frete = frete.preco if frete is not None else Decimal('0')
    return Totais(
        subtotal=subtotal.quantize(CENTAVOS),
        desconto=desconto,
        frete=Decimal(valor_frete).quantize(CENTAVOS),
        total=(subtotal - desconto + valor_frete).quantize(CENTAVOS),
    )


class MotorCarrinho:
    """
    Carrinho de uma loja para uma sessão de cliente.

    Ao abrir (`abrir`), um carrinho salvo não vazio vira uma oferta de
    restauração em vez de ser mesclado; a sessão só passa a gravar no cache
    depois da primeira ação do cliente.
    """

    def __init__(
        self,
        loja_id: str,
        cache: Optional[ICacheCarrinho] = None,
        itens: Optional[List[ItemCarrinho]] = None,
        buscar_produto: Optional[BuscaProduto] = None,
    ):
        self.loja_id = loja_id
        self.cache = cache
        self.itens: List[ItemCarrinho] = list(itens or [])
        self.buscar_produto = buscar_produto
        self.oferta_restauracao: Optional[List[ItemCarrinho]] = None
        self.sessao_iniciada = True

    @classmethod
    def abrir(cls, loja_id: str, cache: ICacheCarrinho,
              buscar_produto: Optional[BuscaProduto] = None) -> 'MotorCarrinho':
        motor = cls(loja_id, cache, buscar_produto=buscar_produto)
        salvo = cache.carregar(loja_id)
        if salvo:
            motor.oferta_restauracao = salvo
            motor.sessao_iniciada = False
        return motor

    # --- Persistência ---

    def _persistir(self):
        if self.cache is None or not self.sessao_iniciada:
            return
        if self.itens:
            self.cache.salvar(self.loja_id, self.itens)
        else:
            self.cache.limpar(self.loja_id)

    def _iniciar_sessao(self):
        """Qualquer ação do cliente descarta a oferta de restauração pendente."""
        if self.sessao_iniciada and self.oferta_restauracao is None:
            return
        self.sessao_iniciada = True
        self.oferta_restauracao = None
        self._persistir()

    def restaurar(self) -> List[ItemCarrinho]:
        """Aceita a oferta: o carrinho salvo volta a ser o carrinho ativo."""
        if self.oferta_restauracao:
            self.itens = list(self.oferta_restauracao)
        self.oferta_restauracao = None
        self.sessao_iniciada = True
        self._persistir()
        return self.itens

    def descartar_oferta(self):
        self._iniciar_sessao()

    # --- Mutações ---

    def adicionar(self, produto: Produto, variante: Optional[Variante] = None) -> Optional[ItemCarrinho]:
        """
        Adiciona uma unidade do produto (na variante escolhida).
        Sem estoque, não faz nada; se a linha existente já estiver no limite do
        estoque, levanta EstoqueInsuficienteError sem alterar o carrinho.
        """
        if produto.possui_variantes and variante is None:
            raise SelecaoObrigatoriaError()
        if variante is not None and variante.id not in {v.id for v in produto.variantes}:
            raise DadosInvalidosError("Variação inválida para este produto.")

        self._iniciar_sessao()

        if produto.estoque <= 0:
            return None

        novo = ItemCarrinho(produto=produto, quantidade=1, variante=variante)
        existente = next((item for item in self.itens if item.chave == novo.chave), None)

        if existente is not None:
            if existente.quantidade + 1 > produto.estoque:
                logger.info("Estoque insuficiente para o produto %s (estoque %s).", produto.id, produto.estoque)
                raise EstoqueInsuficienteError(
                    produto_id=produto.id,
                    estoque_atual=produto.estoque,
                    quantidade_solicitada=existente.quantidade + 1,
                )
            existente.quantidade += 1
            item = existente
        else:
            self.itens.append(novo)
            item = novo

        self._persistir()
        return item

    def remover(self, indice: int) -> ItemCarrinho:
        self._iniciar_sessao()
        if not 0 <= indice < len(self.itens):
            raise ItemNaoEncontradoError("Item não encontrado no carrinho.")
        removido = self.itens.pop(indice)
        self._persistir()
        return removido

    def atualizar_quantidade(self, indice: int, delta: int) -> bool:
        """
        Aplica +/- na linha. Rejeita (sem erro) se a nova quantidade passar do
        estoque atual do produto ou ficar abaixo de 1. Retorna se alterou.
        """
        self._iniciar_sessao()
        if not 0 <= indice < len(self.itens):
            raise ItemNaoEncontradoError("Item não encontrado no carrinho.")

        item = self.itens[indice]
        estoque_atual = self._estoque_atual(item.produto)
        candidata = item.quantidade + delta

        if candidata > estoque_atual or candidata < 1:
            return False

        item.quantidade = candidata
        self._persistir()
        return True

    def limpar(self):
        """Esvazia o carrinho após um pedido concluído."""
        self.itens = []
        self.oferta_restauracao = None
        self.sessao_iniciada = True
        if self.cache is not None:
            self.cache.limpar(self.loja_id)

    # --- Consultas ---

    def _estoque_atual(self, produto: Produto) -> int:
        if self.buscar_produto is None:
            return produto.estoque
        atual = self.buscar_produto(produto.id)
        return atual.estoque if atual is not None else 0

    def calcular_totais(self, cupom: Optional[Cupom] = None, frete: Optional[CotacaoFrete] = None) -> Totais:
        return calcular_totais(self.itens, cupom, frete)

    @property
    def quantidade_total(self) -> int:
        return sum(item.quantidade for item in self.itens)

    @property
    def vazio(self) -> bool:
        return not self.itens
