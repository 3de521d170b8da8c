# fleex/core/planos.py
"""
Tabela de recursos por plano de assinatura.

Resolvida uma vez por requisição via `recursos_do_plano`; o checkout consulta
apenas o que precisa (ex: se a loja envia por transportadora).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Tuple

from fleex.core.entities import PlanoTipo

PRODUTOS_ILIMITADOS = 9999


@dataclass(frozen=True)
class RecursosPlano:
    nome: str
    preco_mensal: Decimal
    limite_produtos: int
    taxa_venda_percentual: int
    pagamento_automatico: bool = False
    envio_transportadora: bool = False
    cupons: bool = False
    recuperacao_carrinho: bool = False
    equipe: bool = False
    log_atividades: bool = False
    destaques: Tuple[str, ...] = ()


PLANOS: Dict[PlanoTipo, RecursosPlano] = {
    PlanoTipo.FREE: RecursosPlano(
        nome='Free',
        preco_mensal=Decimal('0.00'),
        limite_produtos=10,
        taxa_venda_percentual=10,
        destaques=('Até 10 produtos', 'Variações de Cor/Tamanho', 'Taxa de 10% por venda',
                   'Apenas Pagamento via PIX', 'Painel Básico'),
    ),
    PlanoTipo.PRO: RecursosPlano(
        nome='Pro',
        preco_mensal=Decimal('19.99'),
        limite_produtos=30,
        taxa_venda_percentual=5,
        pagamento_automatico=True,
        destaques=('Até 30 produtos', 'Taxa de 5% por venda', 'PIX, Cartão e Boleto',
                   'Dashboard Completo', 'Automação de Pagamentos'),
    ),
    PlanoTipo.BUSINESS: RecursosPlano(
        nome='Business',
        preco_mensal=Decimal('39.99'),
        limite_produtos=PRODUTOS_ILIMITADOS,
        taxa_venda_percentual=0,
        pagamento_automatico=True,
        envio_transportadora=True,
        cupons=True,
        recuperacao_carrinho=True,
        destaques=('Produtos Ilimitados', 'Recuperação de Carrinho', 'Cupons de Desconto',
                   'Pixel Meta & Analytics'),
    ),
    PlanoTipo.PROFESSIONAL: RecursosPlano(
        nome='Profissional',
        preco_mensal=Decimal('140.00'),
        limite_produtos=PRODUTOS_ILIMITADOS,
        taxa_venda_percentual=0,
        pagamento_automatico=True,
        envio_transportadora=True,
        cupons=True,
        recuperacao_carrinho=True,
        equipe=True,
        log_atividades=True,
        destaques=('Tudo do Business', 'Acesso para Equipe (Colaboradores)', 'Logs de Atividade',
                   'White Label Completo', 'Suporte VIP'),
    ),
}


def recursos_do_plano(plano) -> RecursosPlano:
    """Aceita o enum ou o valor textual salvo no perfil."""
    return PLANOS[PlanoTipo(plano)]
