# fleex/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (armazenamento,
persistência da loja, gateways) DEVE seguir para se conectar aos Casos de Uso.
Toda chamada de persistência recebe explicitamente a `SessaoLoja`.
"""

from typing import Protocol, List, Optional, Dict, Any
from abc import abstractmethod

from fleex.core.entities import (
    SessaoLoja, PerfilLoja, Link, Produto, Categoria, Cupom, Pedido,
    CarrinhoAbandonado, ItemCarrinho, CotacaoFrete, RegistroAtividade
)


# ====================================================================
# 1. ARMAZENAMENTO (capacidade genérica chave-valor por loja)
# ====================================================================

class IArmazenamento(Protocol):
    """Armazenamento de documentos JSON por (loja, coleção)."""

    @abstractmethod
    def ler(self, sessao: SessaoLoja, colecao: str) -> Any: ...

    @abstractmethod
    def gravar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> None: ...


# ====================================================================
# 2. PERSISTÊNCIA DA LOJA (API consumida pelo core)
# ====================================================================

class IPersistenciaLoja(Protocol):
    """
    Gateway de persistência da loja. Todas as operações podem falhar no remoto;
    as implementações garantem a gravação local antes de qualquer sincronização.
    """

    @abstractmethod
    def obter_perfil(self, sessao: SessaoLoja) -> Optional[PerfilLoja]: ...

    @abstractmethod
    def atualizar_perfil(self, sessao: SessaoLoja, alteracoes: Dict[str, Any]) -> PerfilLoja: ...

    @abstractmethod
    def obter_links(self, sessao: SessaoLoja) -> List[Link]: ...

    @abstractmethod
    def salvar_links(self, sessao: SessaoLoja, links: List[Link]) -> None: ...

    @abstractmethod
    def obter_produtos(self, sessao: SessaoLoja) -> List[Produto]: ...

    @abstractmethod
    def salvar_produtos(self, sessao: SessaoLoja, produtos: List[Produto]) -> None: ...

    @abstractmethod
    def obter_categorias(self, sessao: SessaoLoja) -> List[Categoria]: ...

    @abstractmethod
    def salvar_categorias(self, sessao: SessaoLoja, categorias: List[Categoria]) -> None: ...

    @abstractmethod
    def obter_cupons(self, sessao: SessaoLoja) -> List[Cupom]: ...

    @abstractmethod
    def salvar_cupons(self, sessao: SessaoLoja, cupons: List[Cupom]) -> None: ...

    @abstractmethod
    def listar_pedidos(self, sessao: SessaoLoja) -> List[Pedido]:
        """Pedidos da loja, do mais recente para o mais antigo."""
        ...

    @abstractmethod
    def criar_pedido(self, sessao: SessaoLoja, pedido: Pedido) -> Pedido: ...

    @abstractmethod
    def atualizar_status_pedido(self, sessao: SessaoLoja, pedido_id: str, alteracoes: Dict[str, Any]) -> List[Pedido]:
        """Mescla os campos no pedido existente e devolve a coleção completa atualizada."""
        ...

    @abstractmethod
    def baixar_estoque(self, sessao: SessaoLoja, pedido_id: str, itens: List[ItemCarrinho]) -> None:
        """Reduz o estoque dos produtos comprados, no máximo uma vez por pedido."""
        ...

    @abstractmethod
    def obter_carrinhos_abandonados(self, sessao: SessaoLoja) -> List[CarrinhoAbandonado]: ...

    @abstractmethod
    def salvar_carrinho_abandonado(self, sessao: SessaoLoja, carrinho: CarrinhoAbandonado) -> None: ...

    @abstractmethod
    def calcular_frete(self, cep: str) -> List[CotacaoFrete]: ...

    @abstractmethod
    def registrar_atividade(self, sessao: SessaoLoja, autor: str, acao: str,
                            detalhes: Optional[str] = None) -> RegistroAtividade: ...


# ====================================================================
# 3. CACHE DO CARRINHO E GATEWAYS
# ====================================================================

class ICacheCarrinho(Protocol):
    """Cache local do carrinho, por loja e por sessão do cliente."""

    @abstractmethod
    def carregar(self, loja_id: str) -> List[ItemCarrinho]: ...

    @abstractmethod
    def salvar(self, loja_id: str, itens: List[ItemCarrinho]) -> None: ...

    @abstractmethod
    def limpar(self, loja_id: str) -> None: ...


class IGatewayPagamento(Protocol):
    """Aprovação de pagamento. Nesta aplicação a aprovação é simulada."""

    @abstractmethod
    def aprovar(self, pedido: Pedido, metodo: str) -> None: ...


class IWhatsappGateway(Protocol):
    """Monta o link de conversa do WhatsApp com a mensagem já preenchida."""

    @abstractmethod
    def montar_link(self, telefone: str, mensagem: str) -> str: ...


class INotificadorPainel(Protocol):
    """Superfície de aviso do painel do lojista (notificação + alerta sonoro)."""

    @abstractmethod
    def notificar_novo_pedido(self, pedido: Pedido) -> None: ...

    @abstractmethod
    def tocar_alerta(self) -> None: ...

