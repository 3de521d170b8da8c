# fleex/core/sincronizacao.py
"""
Laço de sincronização do painel do lojista e auto-salvamento do catálogo.

- SincronizadorPainel: a cada ciclo relê pedidos e carrinhos abandonados. Se a
  quantidade de pedidos aumentou, avisa o lojista (notificação + alerta); se só
  o conteúdo mudou, troca o estado em silêncio.
- AutoSalvamento: agrupa as edições do catálogo e grava uma única vez depois
  de um intervalo sem novas alterações.
"""
import functools
import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fleex.core.entities import SessaoLoja, Pedido, CarrinhoAbandonado, Catalogo
from fleex.core.ports import IPersistenciaLoja, INotificadorPainel

logger = logging.getLogger(__name__)

NOME_THREAD = 'fleex-autosalvamento'


def assinatura(valores: list) -> str:
    """Resumo do conteúdo completo de uma coleção, para detectar qualquer alteração."""
    return hashlib.sha256(repr(valores).encode('utf-8')).hexdigest()


@dataclass
class EstadoPainel:
    """Último estado conhecido pelo painel (serializável entre requisições)."""
    total_pedidos: int = 0
    assinatura_pedidos: str = ''
    assinatura_carrinhos: str = ''


@dataclass
class ResultadoSincronizacao:
    pedidos: List[Pedido] = field(default_factory=list)
    carrinhos: List[CarrinhoAbandonado] = field(default_factory=list)
    novo_pedido: Optional[Pedido] = None
    alterado: bool = False


class SincronizadorPainel:
    """
    Um ciclo (`tick`) por vez: o lock impede que dois ciclos da mesma loja
    se sobreponham quando a leitura remota demora mais que o intervalo.
    """

    def __init__(
        self,
        persistencia: IPersistenciaLoja,
        sessao: SessaoLoja,
        notificador: Optional[INotificadorPainel] = None,
        intervalo: float = 5.0,
        estado: Optional[EstadoPainel] = None,
    ):
        self.persistencia = persistencia
        self.sessao = sessao
        self.notificador = notificador
        self.intervalo = intervalo
        self.estado = estado
        self._lock = threading.Lock()
        self._parar = threading.Event()

    def carregar_inicial(self) -> ResultadoSincronizacao:
        """Estado de partida do painel; não gera notificação."""
        with self._lock:
            pedidos = self.persistencia.listar_pedidos(self.sessao)
            carrinhos = self.persistencia.obter_carrinhos_abandonados(self.sessao)
            self.estado = EstadoPainel(len(pedidos), assinatura(pedidos), assinatura(carrinhos))
            return ResultadoSincronizacao(pedidos=pedidos, carrinhos=carrinhos)

    def tick(self) -> ResultadoSincronizacao:
        if self.estado is None:
            return self.carregar_inicial()

        with self._lock:
            pedidos = self.persistencia.listar_pedidos(self.sessao)
            carrinhos = self.persistencia.obter_carrinhos_abandonados(self.sessao)
            anterior = self.estado
            atual = EstadoPainel(len(pedidos), assinatura(pedidos), assinatura(carrinhos))
            resultado = ResultadoSincronizacao(pedidos=pedidos, carrinhos=carrinhos)

            if atual.total_pedidos > anterior.total_pedidos:
                resultado.novo_pedido = pedidos[0]
                resultado.alterado = True
                logger.info("Novo pedido %s na loja %s.", pedidos[0].id, self.sessao.loja_id)
                if self.notificador is not None:
                    self.notificador.notificar_novo_pedido(pedidos[0])
                    self.notificador.tocar_alerta()
            elif atual != anterior:
                resultado.alterado = True
                logger.debug("Painel da loja %s atualizado sem novos pedidos.", self.sessao.loja_id)

            self.estado = atual
            return resultado

    def executar(self, max_ciclos: Optional[int] = None):
        """Roda o laço até `parar()` (ou até `max_ciclos`)."""
        self._parar.clear()
        ciclos = 0
        if self.estado is None:
            self.carregar_inicial()
        while not self._parar.is_set():
            if max_ciclos is not None and ciclos >= max_ciclos:
                break
            if self._parar.wait(self.intervalo):
                break
            self.tick()
            ciclos += 1

    def parar(self):
        self._parar.set()


class AutoSalvamento:
    """
    Debounce do salvamento do catálogo: cada `agendar` reinicia o temporizador;
    só o último pacote agendado é gravado.
    """

    OCIOSO = 'ocioso'
    PENDENTE = 'pendente'
    SALVANDO = 'salvando'
    SALVO = 'salvo'
    ERRO = 'erro'

    def __init__(
        self,
        salvar: Callable[[SessaoLoja, Catalogo], object],
        atraso: float = 2.0,
        criar_timer: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.salvar = salvar
        self.atraso = atraso
        self.criar_timer = criar_timer
        self.status = self.OCIOSO
        self._pendente = None
        self._timer = None
        self._geracao = 0
        self._lock = threading.Lock()

    def agendar(self, sessao: SessaoLoja, catalogo: Catalogo):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._geracao += 1
            self._pendente = (sessao, catalogo)
            self.status = self.PENDENTE
            self._timer = self.criar_timer(self.atraso, functools.partial(self.descarregar, self._geracao))
            self._timer.name = NOME_THREAD
            self._timer.daemon = True
            self._timer.start()

    def descarregar(self, geracao: Optional[int] = None) -> bool:
        """
        Grava o pacote pendente, se houver. Retorna se gravou.
        Chamado pelo temporizador, recebe a geração do agendamento; um
        temporizador de um agendamento já substituído não faz nada.
        """
        with self._lock:
            if geracao is not None and geracao != self._geracao:
                return False
            pendente, self._pendente = self._pendente, None
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            if pendente is None:
                return False
            self.status = self.SALVANDO

        sessao, catalogo = pendente
        try:
            self.salvar(sessao, catalogo)
        except Exception:
            self.status = self.ERRO
            logger.exception("Falha no auto-salvamento do catálogo da loja %s.", sessao.loja_id)
            return False

        self.status = self.SALVO
        logger.info("Auto-salvamento do catálogo da loja %s concluído.", sessao.loja_id)
        return True

    def cancelar(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pendente = None
            self.status = self.OCIOSO
