import logging
import sys
import time
from typing import Callable, Optional, TextIO
from urllib.parse import quote, urlencode

from fleex.core.ports import IGatewayPagamento, IWhatsappGateway, INotificadorPainel
from fleex.core.entities import Pedido

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas das portas de saída do Core.
# ====================================================================

class PagamentoSimuladoGateway(IGatewayPagamento):
    """
    Aprovação de pagamento simulada: apenas espera o atraso configurado.
    Não há processador real; o pedido é marcado como pago pelo caso de uso.
    """

    def __init__(self, latencia: float = 2.0, dormir: Callable[[float], None] = time.sleep):
        self.latencia = latencia
        self.dormir = dormir

    def aprovar(self, pedido: Pedido, metodo: str) -> None:
        logger.info("Simulando aprovação do pedido %s via %s.", pedido.id, metodo)
        if self.latencia > 0:
            self.dormir(self.latencia)


class WhatsAppLinkGateway(IWhatsappGateway):
    """Link `https://wa.me/<telefone>?text=<mensagem>` para abrir a conversa com o lojista."""

    def __init__(self, base_url: str = 'https://wa.me/'):
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'

    def montar_link(self, telefone: str, mensagem: str) -> str:
        numero = ''.join(c for c in (telefone or '') if c.isdigit())
        return f"{self.base_url}{numero}?text={quote(mensagem, safe='')}"


class QRCodeGateway:
    """Gera a URL da imagem de QR Code (serviço externo) para um conteúdo qualquer."""

    def __init__(self, base_url: str = 'https://api.qrserver.com/v1/create-qr-code/', tamanho: str = '300x300'):
        self.base_url = base_url
        self.tamanho = tamanho

    def url_imagem(self, conteudo: str) -> str:
        return f"{self.base_url}?{urlencode({'size': self.tamanho, 'data': conteudo})}"


class NotificadorTerminal(INotificadorPainel):
    """
    Avisos do painel no terminal: a notificação fica visível por `duracao`
    segundos (informativo) e o alerta sonoro é o sino do terminal.
    """

    def __init__(self, saida: Optional[TextIO] = None, duracao: float = 5.0):
        self.saida = saida or sys.stdout
        self.duracao = duracao

    def notificar_novo_pedido(self, pedido: Pedido) -> None:
        self.saida.write(
            f"🔔 Novo pedido #{pedido.codigo_curto} de {pedido.nome_cliente}: "
            f"R$ {pedido.total:.2f} (visível por {self.duracao:g}s)\n"
        )
        self.saida.flush()

    def tocar_alerta(self) -> None:
        try:
            self.saida.write('\a')
            self.saida.flush()
        except OSError:
            # Terminal sem suporte ao sino: o aviso escrito basta.
            logger.debug("Alerta sonoro indisponível neste terminal.")
