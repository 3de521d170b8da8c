"""
Módulo de inicialização dos repositórios e gateways.
Deve ser importado somente depois que o Django estiver configurado.

As configurações são lidas a cada chamada, para que `override_settings`
(testes) e mudanças de ambiente sejam respeitadas.
"""
from django.conf import settings

from fleex.core.frete import CotadorFrete
from .repositories import (
    ArmazenamentoLocalDjango,
    ArmazenamentoFirebase,
    ArmazenamentoResiliente,
    PersistenciaLojaDjango,
)
from .gateways import PagamentoSimuladoGateway, WhatsAppLinkGateway, QRCodeGateway, NotificadorTerminal


def get_armazenamento() -> ArmazenamentoResiliente:
    remoto = ArmazenamentoFirebase(
        base_url=settings.FLEEX_REMOTO_URL,
        token=settings.FLEEX_REMOTO_TOKEN,
        timeout=settings.FLEEX_REMOTO_TIMEOUT,
    )
    return ArmazenamentoResiliente(ArmazenamentoLocalDjango(), remoto, timeout=settings.FLEEX_REMOTO_TIMEOUT)


def get_persistencia() -> PersistenciaLojaDjango:
    return PersistenciaLojaDjango(
        get_armazenamento(),
        cotador=CotadorFrete(latencia=settings.FLEEX_FRETE_LATENCIA),
    )


def get_pagamento_gateway() -> PagamentoSimuladoGateway:
    return PagamentoSimuladoGateway(latencia=settings.FLEEX_PAGAMENTO_LATENCIA)


def get_whatsapp_gateway() -> WhatsAppLinkGateway:
    return WhatsAppLinkGateway(settings.FLEEX_WHATSAPP_URL)


def get_qrcode_gateway() -> QRCodeGateway:
    return QRCodeGateway(settings.FLEEX_QRCODE_URL)


def get_notificador(saida=None) -> NotificadorTerminal:
    return NotificadorTerminal(saida=saida, duracao=settings.FLEEX_NOTIFICACAO_DURACAO)
