# fleex/core/frete.py
"""
Cotação de frete sintética e determinística, baseada no último dígito do CEP.
Substitui uma API real de transportadoras.
"""
import re
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List

from fleex.core.entities import CotacaoFrete
from fleex.core.exceptions import CepInvalidoError, CepNaoEncontradoError

PRECO_BASE = Decimal('18')
FATOR_EXPRESSO = Decimal('1.6')
FATOR_TRANSPORTADORA = Decimal('0.9')
PRAZO_TRANSPORTADORA = 7

CENTAVOS = Decimal('0.01')


def limpar_cep(cep: str) -> str:
    return re.sub(r'\D', '', cep or '')


def formatar_cep(cep: str) -> str:
    """Máscara 00000-000 para exibição."""
    digitos = limpar_cep(cep)[:8]
    if len(digitos) > 5:
        return f"{digitos[:5]}-{digitos[5:]}"
    return digitos


def cotar_frete(cep: str) -> List[CotacaoFrete]:
    """Retorna as três opções (econômica, expressa, transportadora) para o CEP."""
    digitos = limpar_cep(cep)
    if len(digitos) != 8:
        raise CepInvalidoError()
    if set(digitos) == {'0'}:
        raise CepNaoEncontradoError()

    ultimo = int(digitos[-1])
    base = PRECO_BASE + ultimo

    return [
        CotacaoFrete(
            servico='PAC (Correios)',
            preco=base.quantize(CENTAVOS, rounding=ROUND_HALF_UP),
            prazo_dias=5 + (ultimo % 3),
        ),
        CotacaoFrete(
            servico='SEDEX (Correios)',
            preco=(base * FATOR_EXPRESSO).quantize(CENTAVOS, rounding=ROUND_HALF_UP),
            prazo_dias=1 + (ultimo % 2),
        ),
        CotacaoFrete(
            servico='JadLog .Com',
            preco=(base * FATOR_TRANSPORTADORA).quantize(CENTAVOS, rounding=ROUND_HALF_UP),
            prazo_dias=PRAZO_TRANSPORTADORA,
        ),
    ]


class CotadorFrete:
    """Envolve `cotar_frete` com a latência artificial de uma consulta externa."""

    def __init__(self, latencia: float = 1.0, dormir: Callable[[float], None] = time.sleep):
        self.latencia = latencia
        self.dormir = dormir

    def cotar(self, cep: str) -> List[CotacaoFrete]:
        if self.latencia > 0:
            self.dormir(self.latencia)
        return cotar_frete(cep)
