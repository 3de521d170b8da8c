from rest_framework import serializers

from fleex.core.checkout import metodos_entrega_disponiveis
from fleex.core.planos import recursos_do_plano
from fleex.core.entities import (
    Link, Categoria, Produto, Variante, Cupom, Catalogo, PlanoTipo, StatusPedido,
    MetodoEntrega, MetodoPagamento
)


class EnumField(serializers.Field):
    """Representa um Enum do core pelo seu valor (ex.: 'pending', 'BUSINESS')."""

    def to_representation(self, value):
        return getattr(value, 'value', value)

    def to_internal_value(self, data):
        return data


def _decimal(**kwargs):
    return serializers.DecimalField(max_digits=12, decimal_places=2, **kwargs)


# ====================================================================
# SERIALIZERS DO CATÁLOGO (leitura e gravação em bloco)
# ====================================================================

class LinkSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    titulo = serializers.CharField(max_length=255)
    url = serializers.CharField(max_length=2048)
    ativo = serializers.BooleanField(default=True)
    cliques = serializers.IntegerField(default=0, min_value=0)


class CategoriaSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    nome = serializers.CharField(max_length=255)


class VarianteSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    nome = serializers.CharField(max_length=255)


class ProdutoSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    titulo = serializers.CharField(max_length=255)
    preco = _decimal()
    estoque = serializers.IntegerField(default=0)
    descricao = serializers.CharField(allow_blank=True, default='')
    imagens = serializers.ListField(child=serializers.CharField(), default=list)
    categoria_id = serializers.CharField(allow_null=True, required=False, default=None)
    ativo = serializers.BooleanField(default=True)
    vendas = serializers.IntegerField(default=0, min_value=0)
    variantes = VarianteSerializer(many=True, default=list)
    peso = _decimal(allow_null=True, required=False, default=None)
    largura = _decimal(allow_null=True, required=False, default=None)
    altura = _decimal(allow_null=True, required=False, default=None)
    comprimento = _decimal(allow_null=True, required=False, default=None)


class CupomSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    codigo = serializers.CharField(max_length=50)
    percentual_desconto = _decimal(min_value=0, max_value=100)
    uso = serializers.IntegerField(default=0, min_value=0)


def _com_id(dados: dict) -> dict:
    """Itens novos chegam sem id: deixa a entidade gerar um."""
    return {chave: valor for chave, valor in dados.items() if not (chave == 'id' and not valor)}


class CatalogoSerializer(serializers.Serializer):
    """Pacote completo editado no painel: links, produtos, categorias e cupons."""
    links = LinkSerializer(many=True, default=list)
    produtos = ProdutoSerializer(many=True, default=list)
    categorias = CategoriaSerializer(many=True, default=list)
    cupons = CupomSerializer(many=True, default=list)

    def to_catalogo(self) -> Catalogo:
        dados = self.validated_data
        produtos = []
        for produto in dados['produtos']:
            campos = _com_id(dict(produto))
            campos['variantes'] = [Variante(**_com_id(dict(v))) for v in campos.get('variantes', [])]
            produtos.append(Produto(**campos))
        return Catalogo(
            links=[Link(**_com_id(dict(link))) for link in dados['links']],
            produtos=produtos,
            categorias=[Categoria(**_com_id(dict(c))) for c in dados['categorias']],
            cupons=[Cupom(**_com_id(dict(c))) for c in dados['cupons']],
        )


# ====================================================================
# SERIALIZERS DO CARRINHO E DO CHECKOUT
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    produto_id = serializers.CharField(source='produto.id')
    titulo = serializers.CharField(source='produto.titulo')
    preco_unitario = _decimal(source='produto.preco')
    variante = VarianteSerializer(allow_null=True)
    quantidade = serializers.IntegerField()
    subtotal = _decimal()
    descricao = serializers.CharField()


class TotaisSerializer(serializers.Serializer):
    subtotal = _decimal()
    desconto = _decimal()
    frete = _decimal()
    total = _decimal()


class CotacaoFreteSerializer(serializers.Serializer):
    servico = serializers.CharField()
    preco = _decimal()
    prazo_dias = serializers.IntegerField()


class PedidoSerializer(serializers.Serializer):
    id = serializers.CharField()
    codigo_curto = serializers.CharField()
    data = serializers.DateTimeField()
    nome_cliente = serializers.CharField()
    telefone_cliente = serializers.CharField()
    cidade_cliente = serializers.CharField()
    estado_cliente = serializers.CharField()
    cep_cliente = serializers.CharField()
    resumo_itens = serializers.CharField()
    total = _decimal()
    metodo_entrega = EnumField()
    servico_frete = serializers.CharField(allow_null=True)
    custo_frete = _decimal(allow_null=True)
    endereco = serializers.CharField(allow_null=True)
    status = EnumField()
    metodo_pagamento = serializers.CharField(allow_null=True)
    codigo_rastreio = serializers.CharField(allow_null=True)


class CarrinhoAbandonadoSerializer(serializers.Serializer):
    id = serializers.CharField()
    data = serializers.DateTimeField()
    nome_cliente = serializers.CharField()
    telefone_cliente = serializers.CharField()
    itens = ItemCarrinhoSerializer(many=True)
    total = _decimal()
    recuperado = serializers.BooleanField()


class ContextoCheckoutSerializer(serializers.Serializer):
    etapa = EnumField()
    itens = ItemCarrinhoSerializer(many=True)
    cliente = serializers.SerializerMethodField()
    metodo_entrega = EnumField(allow_null=True)
    metodos_disponiveis = serializers.SerializerMethodField()
    opcoes_frete = CotacaoFreteSerializer(many=True)
    frete_selecionado = CotacaoFreteSerializer(allow_null=True)
    erro_frete = serializers.CharField(allow_blank=True)
    endereco = serializers.CharField(allow_blank=True)
    cupom_aplicado = serializers.CharField(source='cupom_aplicado.codigo', allow_null=True, default=None)
    totais = TotaisSerializer()
    pedido = PedidoSerializer(allow_null=True)

    def get_cliente(self, ctx):
        cliente = ctx.cliente
        return {
            'nome': cliente.nome, 'telefone': cliente.telefone,
            'cidade': cliente.cidade, 'estado': cliente.estado, 'cep': cliente.cep,
        }

    def get_metodos_disponiveis(self, ctx):
        return [metodo.value for metodo in metodos_entrega_disponiveis(ctx)]


class AcaoCarrinhoSerializer(serializers.Serializer):
    ACOES = ['adicionar', 'remover', 'quantidade', 'restaurar', 'descartar']

    acao = serializers.ChoiceField(choices=ACOES)
    produto_id = serializers.CharField(required=False)
    variante_id = serializers.CharField(required=False, allow_null=True)
    indice = serializers.IntegerField(required=False, min_value=0)
    delta = serializers.IntegerField(required=False)

    def validate(self, attrs):
        acao = attrs['acao']
        if acao == 'adicionar' and not attrs.get('produto_id'):
            raise serializers.ValidationError({'produto_id': "Informe o produto."})
        if acao in ('remover', 'quantidade') and attrs.get('indice') is None:
            raise serializers.ValidationError({'indice': "Informe a linha do carrinho."})
        if acao == 'quantidade' and attrs.get('delta') not in (1, -1):
            raise serializers.ValidationError({'delta': "A quantidade muda de uma em uma unidade (+1 ou -1)."})
        return attrs


class AcaoCheckoutSerializer(serializers.Serializer):
    ACOES = [
        'iniciar', 'detalhes', 'entrega', 'cotar_frete', 'selecionar_frete', 'endereco',
        'cupom', 'finalizar', 'aprovar_pagamento', 'voltar', 'fechar',
    ]

    acao = serializers.ChoiceField(choices=ACOES)
    nome = serializers.CharField(required=False, allow_blank=True, default='')
    telefone = serializers.CharField(required=False, allow_blank=True, default='')
    cidade = serializers.CharField(required=False, allow_blank=True, default='')
    estado = serializers.CharField(required=False, allow_blank=True, default='')
    metodo = serializers.ChoiceField(choices=[m.value for m in MetodoEntrega], required=False)
    cep = serializers.CharField(required=False, allow_blank=True, default='')
    servico = serializers.CharField(required=False, allow_blank=True, default='')
    endereco = serializers.CharField(required=False, allow_blank=True, default='')
    codigo = serializers.CharField(required=False, allow_blank=True, default='')
    metodo_pagamento = serializers.ChoiceField(
        choices=[m.value for m in MetodoPagamento], required=False, default=MetodoPagamento.PIX.value
    )


# ====================================================================
# SERIALIZERS DA VITRINE E DO PAINEL
# ====================================================================

class PerfilPublicoSerializer(serializers.Serializer):
    id = serializers.CharField()
    nome = serializers.CharField()
    slug = serializers.CharField()
    bio = serializers.CharField()
    avatar_url = serializers.CharField()
    tema_id = serializers.CharField()
    cor_primaria = serializers.CharField()
    plano = EnumField()
    cidade_loja = serializers.CharField()
    estado_loja = serializers.CharField()


class SubContaSerializer(serializers.Serializer):
    id = serializers.CharField()
    nome = serializers.CharField()
    papel = serializers.CharField()


class RecursosPlanoSerializer(serializers.Serializer):
    """Cartão do plano no painel: preço, limites e recursos liberados."""
    nome = serializers.CharField()
    preco_mensal = _decimal()
    limite_produtos = serializers.IntegerField()
    taxa_venda_percentual = serializers.IntegerField()
    pagamento_automatico = serializers.BooleanField()
    envio_transportadora = serializers.BooleanField()
    cupons = serializers.BooleanField()
    recuperacao_carrinho = serializers.BooleanField()
    equipe = serializers.BooleanField()
    log_atividades = serializers.BooleanField()
    destaques = serializers.ListField(child=serializers.CharField())


class PerfilLojaSerializer(PerfilPublicoSerializer):
    email = serializers.CharField()
    telefone = serializers.CharField()
    chave_pix = serializers.CharField()
    cep_loja = serializers.CharField()
    pagamento_automatico = serializers.BooleanField()
    subcontas = serializers.SerializerMethodField()
    recursos_plano = serializers.SerializerMethodField()

    def get_subcontas(self, perfil):
        # Equipe só aparece nos planos que a incluem.
        if not recursos_do_plano(perfil.plano).equipe:
            return []
        return SubContaSerializer(perfil.subcontas, many=True).data

    def get_recursos_plano(self, perfil):
        return RecursosPlanoSerializer(recursos_do_plano(perfil.plano)).data


class AtualizarPerfilSerializer(serializers.Serializer):
    """Campos que o lojista pode alterar no painel (PATCH parcial)."""
    nome = serializers.CharField(max_length=255)
    email = serializers.EmailField(allow_blank=True)
    bio = serializers.CharField(allow_blank=True)
    avatar_url = serializers.CharField(allow_blank=True)
    plano = serializers.ChoiceField(choices=[p.value for p in PlanoTipo])
    tema_id = serializers.CharField()
    cor_primaria = serializers.CharField(max_length=20)
    telefone = serializers.CharField(allow_blank=True)
    chave_pix = serializers.CharField(allow_blank=True)
    cep_loja = serializers.CharField(allow_blank=True)
    cidade_loja = serializers.CharField(allow_blank=True)
    estado_loja = serializers.CharField(allow_blank=True, max_length=2)
    pagamento_automatico = serializers.BooleanField()


class RegistroAtividadeSerializer(serializers.Serializer):
    id = serializers.CharField()
    data = serializers.DateTimeField()
    autor = serializers.CharField()
    acao = serializers.CharField()
    detalhes = serializers.CharField(allow_null=True)


class AtualizarStatusPedidoSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in StatusPedido])
    codigo_rastreio = serializers.CharField(required=False, allow_blank=True)
