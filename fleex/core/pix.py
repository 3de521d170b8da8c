# fleex/core/pix.py
"""
Geração do payload Pix (BR Code) no formato EMV tag-tamanho-valor,
com CRC-16/CCITT-FALSE ao final.
"""
import unicodedata
from decimal import Decimal
from typing import Optional, Union

GUI_PIX = 'br.gov.bcb.pix'
TXID_CORINGA = '***'
TAMANHO_MAXIMO_TEXTO = 25
CABECALHO_CRC = '6304'


def normalizar_texto(texto: str) -> str:
    """Remove acentos (NFD sem marcas combinantes) e limita a 25 caracteres."""
    decomposto = unicodedata.normalize('NFD', texto or '')
    sem_acentos = ''.join(c for c in decomposto if not unicodedata.combining(c))
    return sem_acentos[:TAMANHO_MAXIMO_TEXTO]


def formatar_campo(tag: str, valor: str) -> str:
    return f"{tag}{len(valor):02d}{valor}"


def crc16_ccitt(dados: str) -> str:
    """CRC-16/CCITT-FALSE (poly 0x1021, init 0xFFFF), em 4 dígitos hexadecimais maiúsculos."""
    crc = 0xFFFF
    for caractere in dados:
        crc ^= ord(caractere) << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def gerar_payload_pix(
    chave: str,
    nome_recebedor: str,
    cidade: str,
    valor: Optional[Union[Decimal, float]] = None,
    txid: str = TXID_CORINGA,
) -> str:
    """
    Monta o BR Code Pix. O campo 54 (valor) só é emitido quando o valor é
    maior que zero; sem ele o código aceita qualquer valor.
    """
    conta_recebedor = formatar_campo('00', GUI_PIX) + formatar_campo('01', chave)

    payload = (
        formatar_campo('00', '01')
        + formatar_campo('26', conta_recebedor)
        + formatar_campo('52', '0000')
        + formatar_campo('53', '986')
    )

    if valor is not None and Decimal(str(valor)) > 0:
        payload += formatar_campo('54', f"{Decimal(str(valor)):.2f}")

    payload += (
        formatar_campo('58', 'BR')
        + formatar_campo('59', normalizar_texto(nome_recebedor))
        + formatar_campo('60', normalizar_texto(cidade))
        + formatar_campo('62', formatar_campo('05', txid or TXID_CORINGA))
    )

    payload += CABECALHO_CRC
    return payload + crc16_ccitt(payload)
