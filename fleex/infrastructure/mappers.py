"""
Mapeadores (Mappers) para converter entre:
1. Documentos JSON gravados no armazenamento (local e remoto)
2. Entidades de Domínio (fleex.core.entities)

Decimais viajam como texto e datas em ISO 8601.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fleex.core.entities import (
    PerfilLoja, PlanoTipo, SubConta, RegistroAtividade, Link, Categoria, Variante, Produto,
    ItemCarrinho, Cupom, CotacaoFrete, Pedido, MetodoEntrega, StatusPedido, CarrinhoAbandonado
)


def _decimal(valor: Any) -> Optional[Decimal]:
    if valor is None or valor == '':
        return None
    return Decimal(str(valor))


def _texto_decimal(valor: Optional[Decimal]) -> Optional[str]:
    return None if valor is None else str(valor)


def _data(valor: Any) -> datetime:
    if isinstance(valor, datetime):
        return valor
    return datetime.fromisoformat(valor)


class BaseMapper:
    """Contrato comum: `to_dict(entidade)` e `from_dict(dados)`."""

    @staticmethod
    def to_dict(entidade) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_dict(dados: Dict[str, Any]):
        raise NotImplementedError


# ====================================================================
# MAPPERS DO CATÁLOGO
# ====================================================================

class LinkMapper(BaseMapper):

    @staticmethod
    def to_dict(link: Link) -> Dict[str, Any]:
        return {'id': link.id, 'titulo': link.titulo, 'url': link.url, 'ativo': link.ativo, 'cliques': link.cliques}

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> Link:
        return Link(
            id=dados['id'],
            titulo=dados.get('titulo', ''),
            url=dados.get('url', ''),
            ativo=dados.get('ativo', True),
            cliques=dados.get('cliques', 0),
        )


class CategoriaMapper(BaseMapper):

    @staticmethod
    def to_dict(categoria: Categoria) -> Dict[str, Any]:
        return {'id': categoria.id, 'nome': categoria.nome}

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> Categoria:
        return Categoria(id=dados['id'], nome=dados.get('nome', ''))


class ProdutoMapper(BaseMapper):
    """Mapeador para Produto (com variantes e dimensões de frete)."""

    @staticmethod
    def to_dict(produto: Produto) -> Dict[str, Any]:
        return {
            'id': produto.id,
            'titulo': produto.titulo,
            'preco': _texto_decimal(produto.preco),
            'estoque': produto.estoque,
            'descricao': produto.descricao,
            'imagens': list(produto.imagens),
            'categoria_id': produto.categoria_id,
            'ativo': produto.ativo,
            'vendas': produto.vendas,
            'variantes': [{'id': v.id, 'nome': v.nome} for v in produto.variantes],
            'peso': _texto_decimal(produto.peso),
            'largura': _texto_decimal(produto.largura),
            'altura': _texto_decimal(produto.altura),
            'comprimento': _texto_decimal(produto.comprimento),
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> Produto:
        return Produto(
            id=dados['id'],
            titulo=dados.get('titulo', ''),
            preco=_decimal(dados.get('preco')) or Decimal('0'),
            estoque=int(dados.get('estoque') or 0),
            descricao=dados.get('descricao') or '',
            imagens=list(dados.get('imagens') or []),
            categoria_id=dados.get('categoria_id'),
            ativo=dados.get('ativo', True),
            vendas=int(dados.get('vendas') or 0),
            variantes=[Variante(id=v['id'], nome=v['nome']) for v in dados.get('variantes') or []],
            peso=_decimal(dados.get('peso')),
            largura=_decimal(dados.get('largura')),
            altura=_decimal(dados.get('altura')),
            comprimento=_decimal(dados.get('comprimento')),
        )


class CupomMapper(BaseMapper):

    @staticmethod
    def to_dict(cupom: Cupom) -> Dict[str, Any]:
        return {
            'id': cupom.id,
            'codigo': cupom.codigo,
            'percentual_desconto': _texto_decimal(cupom.percentual_desconto),
            'uso': cupom.uso,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> Cupom:
        return Cupom(
            id=dados['id'],
            codigo=dados.get('codigo', ''),
            percentual_desconto=_decimal(dados.get('percentual_desconto')) or Decimal('0'),
            uso=int(dados.get('uso') or 0),
        )


# ====================================================================
# MAPPERS DE CARRINHO, PEDIDO E FRETE
# ====================================================================

class ItemCarrinhoMapper(BaseMapper):
    """Snapshot completo do produto dentro da linha do carrinho."""

    @staticmethod
    def to_dict(item: ItemCarrinho) -> Dict[str, Any]:
        return {
            'produto': ProdutoMapper.to_dict(item.produto),
            'quantidade': item.quantidade,
            'variante': {'id': item.variante.id, 'nome': item.variante.nome} if item.variante else None,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> ItemCarrinho:
        variante = dados.get('variante')
        return ItemCarrinho(
            produto=ProdutoMapper.from_dict(dados['produto']),
            quantidade=int(dados.get('quantidade') or 1),
            variante=Variante(id=variante['id'], nome=variante['nome']) if variante else None,
        )


class CotacaoFreteMapper(BaseMapper):

    @staticmethod
    def to_dict(cotacao: CotacaoFrete) -> Dict[str, Any]:
        return {'servico': cotacao.servico, 'preco': _texto_decimal(cotacao.preco), 'prazo_dias': cotacao.prazo_dias}

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> CotacaoFrete:
        return CotacaoFrete(
            servico=dados['servico'],
            preco=_decimal(dados['preco']),
            prazo_dias=int(dados['prazo_dias']),
        )


class PedidoMapper(BaseMapper):

    @staticmethod
    def to_dict(pedido: Pedido) -> Dict[str, Any]:
        return {
            'id': pedido.id,
            'data': pedido.data.isoformat(),
            'nome_cliente': pedido.nome_cliente,
            'telefone_cliente': pedido.telefone_cliente,
            'cidade_cliente': pedido.cidade_cliente,
            'estado_cliente': pedido.estado_cliente,
            'cep_cliente': pedido.cep_cliente,
            'resumo_itens': pedido.resumo_itens,
            'total': _texto_decimal(pedido.total),
            'metodo_entrega': MetodoEntrega(pedido.metodo_entrega).value,
            'servico_frete': pedido.servico_frete,
            'custo_frete': _texto_decimal(pedido.custo_frete),
            'endereco': pedido.endereco,
            'status': StatusPedido(pedido.status).value,
            'metodo_pagamento': pedido.metodo_pagamento,
            'codigo_rastreio': pedido.codigo_rastreio,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> Pedido:
        return Pedido(
            id=dados['id'],
            data=_data(dados['data']),
            nome_cliente=dados.get('nome_cliente', ''),
            telefone_cliente=dados.get('telefone_cliente', ''),
            cidade_cliente=dados.get('cidade_cliente') or '',
            estado_cliente=dados.get('estado_cliente') or '',
            cep_cliente=dados.get('cep_cliente') or '',
            resumo_itens=dados.get('resumo_itens', ''),
            total=_decimal(dados.get('total')) or Decimal('0'),
            metodo_entrega=MetodoEntrega(dados.get('metodo_entrega', MetodoEntrega.RETIRADA.value)),
            servico_frete=dados.get('servico_frete'),
            custo_frete=_decimal(dados.get('custo_frete')),
            endereco=dados.get('endereco'),
            status=StatusPedido(dados.get('status', StatusPedido.PENDENTE.value)),
            metodo_pagamento=dados.get('metodo_pagamento'),
            codigo_rastreio=dados.get('codigo_rastreio'),
        )


class CarrinhoAbandonadoMapper(BaseMapper):

    @staticmethod
    def to_dict(carrinho: CarrinhoAbandonado) -> Dict[str, Any]:
        return {
            'id': carrinho.id,
            'data': carrinho.data.isoformat(),
            'nome_cliente': carrinho.nome_cliente,
            'telefone_cliente': carrinho.telefone_cliente,
            'itens': [ItemCarrinhoMapper.to_dict(item) for item in carrinho.itens],
            'total': _texto_decimal(carrinho.total),
            'recuperado': carrinho.recuperado,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> CarrinhoAbandonado:
        return CarrinhoAbandonado(
            id=dados['id'],
            data=_data(dados['data']),
            nome_cliente=dados.get('nome_cliente', ''),
            telefone_cliente=dados.get('telefone_cliente', ''),
            itens=[ItemCarrinhoMapper.from_dict(item) for item in dados.get('itens') or []],
            total=_decimal(dados.get('total')) or Decimal('0'),
            recuperado=dados.get('recuperado', False),
        )


# ====================================================================
# MAPPER DO PERFIL DA LOJA
# ====================================================================

class RegistroAtividadeMapper(BaseMapper):

    @staticmethod
    def to_dict(registro: RegistroAtividade) -> Dict[str, Any]:
        return {
            'id': registro.id,
            'data': registro.data.isoformat(),
            'autor': registro.autor,
            'acao': registro.acao,
            'detalhes': registro.detalhes,
        }

    @staticmethod
    def from_dict(dados: Dict[str, Any]) -> RegistroAtividade:
        return RegistroAtividade(
            id=dados['id'],
            data=_data(dados['data']),
            autor=dados.get('autor', ''),
            acao=dados.get('acao', ''),
            detalhes=dados.get('detalhes'),
        )


class PerfilLojaMapper(BaseMapper):

    CAMPOS_SIMPLES = (
        'nome', 'slug', 'email', 'bio', 'avatar_url', 'tema_id', 'cor_primaria', 'telefone',
        'chave_pix', 'cep_loja', 'cidade_loja', 'estado_loja', 'pagamento_automatico',
    )

    @classmethod
    def to_dict(cls, perfil: PerfilLoja) -> Dict[str, Any]:
        dados = {campo: getattr(perfil, campo) for campo in cls.CAMPOS_SIMPLES}
        dados['id'] = perfil.id
        dados['plano'] = PlanoTipo(perfil.plano).value
        dados['subcontas'] = [{'id': s.id, 'nome': s.nome, 'papel': s.papel} for s in perfil.subcontas]
        dados['atividades'] = [RegistroAtividadeMapper.to_dict(a) for a in perfil.atividades]
        return dados

    @classmethod
    def from_dict(cls, dados: Dict[str, Any]) -> PerfilLoja:
        simples = {campo: dados[campo] for campo in cls.CAMPOS_SIMPLES if dados.get(campo) is not None}
        return PerfilLoja(
            id=dados['id'],
            plano=PlanoTipo(dados.get('plano', PlanoTipo.FREE.value)),
            subcontas=[SubConta(id=s['id'], nome=s['nome'], papel=s.get('papel', 'editor'))
                       for s in dados.get('subcontas') or []],
            atividades=[RegistroAtividadeMapper.from_dict(a) for a in dados.get('atividades') or []],
            **simples,
        )
