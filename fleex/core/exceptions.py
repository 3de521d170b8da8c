class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    pass

class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados obrigatórios estão ausentes ou inválidos."""
    def __init__(self, message="Os dados fornecidos são inválidos."):
        self.message = message
        super().__init__(self.message)

class SelecaoObrigatoriaError(DadosInvalidosError):
    """Produto com variações adicionado sem uma variação escolhida."""
    def __init__(self, message="Por favor, selecione uma opção."):
        super().__init__(message)

class CepInvalidoError(DadosInvalidosError):
    def __init__(self, message="CEP inválido. O CEP deve conter 8 números."):
        super().__init__(message)

class CupomInvalidoError(DadosInvalidosError):
    def __init__(self, message="Cupom inválido ou expirado."):
        super().__init__(message)

class LimitePlanoExcedidoError(DadosInvalidosError):
    """O catálogo excede o limite de produtos do plano da loja."""
    def __init__(self, limite: int, message=None):
        self.limite = limite
        if message is None:
            message = f"Seu plano permite no máximo {limite} produtos."
        super().__init__(message)

class RecursoForaDoPlanoError(DadosInvalidosError):
    """Recurso (cupons, pagamento automático) não incluído no plano da loja."""
    def __init__(self, recurso: str, message=None):
        self.recurso = recurso
        if message is None:
            message = f"Seu plano não inclui {recurso}."
        super().__init__(message)

# ===============================================
# ERROS DE PERSISTÊNCIA E ENTIDADE
# ===============================================

class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    def __init__(self, message="O item solicitado não foi encontrado."):
        self.message = message
        super().__init__(self.message)

class ProdutoNaoEncontradoError(ItemNaoEncontradoError):
    def __init__(self, message="O produto solicitado não foi encontrado."):
        super().__init__(message)

class PedidoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro específico para Pedidos não encontrados."""
    pass

class LojaNaoEncontradaError(ItemNaoEncontradoError):
    def __init__(self, message="Loja não encontrada."):
        super().__init__(message)

class CepNaoEncontradoError(ItemNaoEncontradoError):
    def __init__(self, message="CEP não encontrado."):
        super().__init__(message)

class RemotoIndisponivelError(BaseErroCore):
    """
    Falha ou timeout no armazenamento remoto. Nunca chega ao cliente final:
    o armazenamento resiliente trata e usa o cache local.
    """
    def __init__(self, message="Armazenamento remoto indisponível."):
        self.message = message
        super().__init__(self.message)

class EstoqueInsuficienteError(BaseErroCore):
    """Erro levantado quando a quantidade solicitada excede o estoque."""
    def __init__(self, produto_id: str, estoque_atual: int, quantidade_solicitada: int, message=None):
        self.produto_id = produto_id
        self.estoque_atual = estoque_atual
        self.quantidade_solicitada = quantidade_solicitada
        if message is None:
            message = "Estoque insuficiente para adicionar mais itens."
        self.message = message
        super().__init__(message)

# ===============================================
# ERROS DE FLUXO DE COMPRA E PAGAMENTO
# ===============================================

class CarrinhoVazioError(BaseErroCore):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    def __init__(self, message="O carrinho de compras está vazio."):
        self.message = message
        super().__init__(self.message)

class EtapaInvalidaError(BaseErroCore):
    """Ação disparada numa etapa do checkout que não a aceita."""
    def __init__(self, message="Esta ação não está disponível nesta etapa do checkout."):
        self.message = message
        super().__init__(self.message)

class StatusInvalidoError(BaseErroCore):
    """Erro levantado ao tentar definir um status de pedido inválido."""
    def __init__(self, message="O status fornecido não é válido para um pedido."):
        self.message = message
        super().__init__(self.message)
