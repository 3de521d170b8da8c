# fleex/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Repositórios/Gateways
concretos da camada de Infraestrutura.
"""
import threading
from typing import Dict

from django.conf import settings
from django.db import connections

from fleex.infrastructure.instances import (
    get_persistencia,
    get_pagamento_gateway,
    get_whatsapp_gateway,
)
from fleex.infrastructure.repositories import LojaRepositoryDjango
from .entities import SessaoLoja, Catalogo
from .sincronizacao import SincronizadorPainel, AutoSalvamento, EstadoPainel, NOME_THREAD
from .use_cases import (
    FluxoCheckoutUseCase,
    VitrinePublicaUseCase,
    GerenciarPedidosPainelUseCase,
    GerenciarCatalogoUseCase,
    GerenciarPerfilUseCase,
)

loja_repo = LojaRepositoryDjango()


# ====================================================================
# Use Cases da loja pública
# ====================================================================

def get_vitrine_use_case() -> VitrinePublicaUseCase:
    return VitrinePublicaUseCase(get_persistencia())

def get_fluxo_checkout_use_case() -> FluxoCheckoutUseCase:
    return FluxoCheckoutUseCase(
        persistencia=get_persistencia(),
        pagamento_gateway=get_pagamento_gateway(),
        whatsapp_gateway=get_whatsapp_gateway(),
    )


# ====================================================================
# Use Cases do painel do lojista
# ====================================================================

def get_pedidos_painel_use_case() -> GerenciarPedidosPainelUseCase:
    return GerenciarPedidosPainelUseCase(get_persistencia())

def get_catalogo_use_case() -> GerenciarCatalogoUseCase:
    return GerenciarCatalogoUseCase(get_persistencia())

def get_perfil_use_case() -> GerenciarPerfilUseCase:
    return GerenciarPerfilUseCase(get_persistencia())

def get_sincronizador_painel(sessao: SessaoLoja, estado: EstadoPainel = None, notificador=None) -> SincronizadorPainel:
    """Sem notificador, o novo pedido é devolvido apenas no resultado do ciclo."""
    return SincronizadorPainel(
        get_persistencia(),
        sessao,
        notificador=notificador,
        intervalo=settings.FLEEX_SYNC_INTERVALO,
        estado=estado,
    )


def _salvar_catalogo(sessao: SessaoLoja, catalogo: Catalogo):
    try:
        get_catalogo_use_case().salvar(sessao, catalogo)
    finally:
        # A thread do temporizador abre sua própria conexão com o banco.
        if threading.current_thread().name == NOME_THREAD:
            connections.close_all()


_auto_salvamentos: Dict[str, AutoSalvamento] = {}
_auto_salvamentos_lock = threading.Lock()

def get_auto_salvamento(sessao: SessaoLoja) -> AutoSalvamento:
    """Um debounce por loja, compartilhado pelas requisições do processo."""
    with _auto_salvamentos_lock:
        auto = _auto_salvamentos.get(sessao.loja_id)
        if auto is None:
            auto = AutoSalvamento(_salvar_catalogo, atraso=settings.FLEEX_AUTOSAVE_ATRASO)
            _auto_salvamentos[sessao.loja_id] = auto
        return auto
