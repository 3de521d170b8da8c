import logging
from dataclasses import asdict

from django.urls import reverse
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from fleex.core import dependency_injection as di
from fleex.core.exceptions import (
    BaseErroCore,
    DadosInvalidosError,
    EstoqueInsuficienteError,
    EtapaInvalidaError,
    ItemNaoEncontradoError,
    ProdutoNaoEncontradoError,
)
from fleex.core.planos import recursos_do_plano
from fleex.core.sincronizacao import EstadoPainel
from fleex.infrastructure.instances import get_armazenamento, get_persistencia, get_qrcode_gateway

from .cart_manager import LojaSessionManager
from .serializers import (
    AcaoCarrinhoSerializer,
    AcaoCheckoutSerializer,
    AtualizarPerfilSerializer,
    AtualizarStatusPedidoSerializer,
    CarrinhoAbandonadoSerializer,
    CatalogoSerializer,
    CategoriaSerializer,
    ContextoCheckoutSerializer,
    CotacaoFreteSerializer,
    CupomSerializer,
    ItemCarrinhoSerializer,
    LinkSerializer,
    PedidoSerializer,
    PerfilLojaSerializer,
    PerfilPublicoSerializer,
    ProdutoSerializer,
    RegistroAtividadeSerializer,
    TotaisSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# VIEWS: Orquestram a requisição, a execução dos casos de uso e a resposta.
# ====================================================================

def resposta_erro(erro: BaseErroCore) -> Response:
    """Converte os erros do Core em respostas HTTP: 404, 409 ou 400."""
    if isinstance(erro, EstoqueInsuficienteError):
        codigo = status.HTTP_409_CONFLICT
    elif isinstance(erro, ItemNaoEncontradoError):
        codigo = status.HTTP_404_NOT_FOUND
    else:
        codigo = status.HTTP_400_BAD_REQUEST
    mensagem = getattr(erro, 'message', None) or str(erro)
    return Response({'erro': mensagem, 'tipo': type(erro).__name__}, status=codigo)


class FleexAPIView(APIView):
    """Base das views da API: erros do Core viram respostas `{"erro", "tipo"}`."""

    def handle_exception(self, exc):
        if isinstance(exc, BaseErroCore):
            return resposta_erro(exc)
        return super().handle_exception(exc)


def payload_carrinho(motor) -> dict:
    oferta = motor.oferta_restauracao
    return {
        'itens': ItemCarrinhoSerializer(motor.itens, many=True).data,
        'quantidade_total': motor.quantidade_total,
        'totais': TotaisSerializer(motor.calcular_totais()).data,
        'oferta_restauracao': ItemCarrinhoSerializer(oferta, many=True).data if oferta else None,
    }


# ====================================================================
# 1. LOJA PÚBLICA (cliente anônimo, sessão do Django)
# ====================================================================

class LojaPublicaAPIView(FleexAPIView):
    permission_classes = [AllowAny]

    def carregar_loja(self, request, slug):
        """Resolve a loja pelo slug e prepara o estado do cliente na sessão."""
        self.sessao = di.loja_repo.sessao_por_slug(slug)
        self.vitrine_uc = di.get_vitrine_use_case()
        self.perfil = self.vitrine_uc.obter_perfil(self.sessao)
        self.gerenciador = LojaSessionManager(
            request,
            self.sessao.loja_id,
            buscar_produto=lambda produto_id: self.vitrine_uc.buscar_produto(self.sessao, produto_id),
        )


class VitrineAPIView(LojaPublicaAPIView):
    """
    Página pública da loja: perfil, links e produtos ativos, categorias e o
    QR Code da loja. Cada carregamento é uma nova visita: um carrinho salvo
    volta como oferta de restauração.
    """

    def get(self, request, slug):
        self.carregar_loja(request, slug)
        vitrine = self.vitrine_uc.executar(
            self.sessao,
            categoria_id=request.query_params.get('categoria') or None,
            busca=request.query_params.get('busca') or None,
            produto_id=request.query_params.get('produto') or None,
        )

        motor = self.gerenciador.abrir_carrinho(nova_visita=True)
        self.gerenciador.registrar_carrinho(motor)

        qrcode = get_qrcode_gateway()
        url_loja = request.build_absolute_uri(reverse('vitrine', args=[slug]))
        destaque = None
        if vitrine.produto_destaque is not None:
            url_produto = f"{url_loja}?produto={vitrine.produto_destaque.id}"
            destaque = {
                'produto': ProdutoSerializer(vitrine.produto_destaque).data,
                'url_compartilhamento': url_produto,
            }

        return Response({
            'perfil': PerfilPublicoSerializer(vitrine.perfil).data,
            'links': LinkSerializer(vitrine.links, many=True).data,
            'produtos': ProdutoSerializer(vitrine.produtos, many=True).data,
            'categorias': CategoriaSerializer(vitrine.categorias, many=True).data,
            'produto_destaque': destaque,
            'compartilhar': {'url': url_loja, 'qrcode_url': qrcode.url_imagem(url_loja)},
            'carrinho': payload_carrinho(motor),
        })


class CarrinhoAPIView(LojaPublicaAPIView):
    """Carrinho do cliente nesta loja."""

    def get(self, request, slug):
        self.carregar_loja(request, slug)
        motor = self.gerenciador.abrir_carrinho()
        self.gerenciador.registrar_carrinho(motor)
        return Response(payload_carrinho(motor))

    def post(self, request, slug):
        serializer = AcaoCarrinhoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        dados = serializer.validated_data

        self.carregar_loja(request, slug)
        motor = self.gerenciador.abrir_carrinho()
        acao = dados['acao']
        alterado = True

        try:
            if acao == 'adicionar':
                produto = self.vitrine_uc.buscar_produto(self.sessao, dados['produto_id'])
                if produto is None or not produto.ativo:
                    raise ProdutoNaoEncontradoError()
                variante = None
                if dados.get('variante_id'):
                    variante = next((v for v in produto.variantes if v.id == dados['variante_id']), None)
                    if variante is None:
                        raise DadosInvalidosError("Variação inválida para este produto.")
                # Sem estoque, o carrinho não muda.
                alterado = motor.adicionar(produto, variante) is not None
            elif acao == 'remover':
                motor.remover(dados['indice'])
            elif acao == 'quantidade':
                alterado = motor.atualizar_quantidade(dados['indice'], dados['delta'])
            elif acao == 'restaurar':
                motor.restaurar()
            elif acao == 'descartar':
                motor.descartar_oferta()
        finally:
            self.gerenciador.registrar_carrinho(motor)

        resposta = payload_carrinho(motor)
        resposta['alterado'] = alterado
        return Response(resposta)


class FreteAPIView(LojaPublicaAPIView):
    """Cotação de frete por CEP (fora do checkout)."""

    def get(self, request, slug):
        di.loja_repo.sessao_por_slug(slug)
        opcoes = get_persistencia().calcular_frete(request.query_params.get('cep', ''))
        return Response({'opcoes': CotacaoFreteSerializer(opcoes, many=True).data})


class CheckoutAPIView(LojaPublicaAPIView):
    """
    Checkout em etapas. Cada POST carrega uma `acao`; o contexto fica na
    sessão e volta atualizado na resposta (inclusive quando a ação falha).
    """

    def get(self, request, slug):
        self.carregar_loja(request, slug)
        ctx = self.gerenciador.carregar_checkout(self.perfil)
        if ctx is None:
            return Response({'etapa': None})
        return Response(ContextoCheckoutSerializer(ctx).data)

    def post(self, request, slug):
        serializer = AcaoCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        dados = serializer.validated_data
        acao = dados['acao']

        self.carregar_loja(request, slug)
        checkout_uc = di.get_fluxo_checkout_use_case()

        if acao == 'iniciar':
            motor = self.gerenciador.abrir_carrinho()
            ctx = checkout_uc.iniciar(self.perfil, motor)
            self.gerenciador.salvar_checkout(ctx)
            return Response(ContextoCheckoutSerializer(ctx).data, status=status.HTTP_201_CREATED)

        ctx = self.gerenciador.carregar_checkout(self.perfil)

        if acao == 'fechar':
            abandonado = checkout_uc.fechar(ctx, self.sessao)
            self.gerenciador.limpar_checkout()
            return Response({'etapa': None, 'carrinho_abandonado': abandonado is not None})

        if ctx is None:
            raise EtapaInvalidaError("Nenhum checkout em andamento.")

        try:
            self.executar_acao(checkout_uc, ctx, acao, dados)
        finally:
            self.gerenciador.salvar_checkout(ctx)
        return Response(ContextoCheckoutSerializer(ctx).data)

    def executar_acao(self, checkout_uc, ctx, acao, dados):
        if acao == 'detalhes':
            checkout_uc.informar_detalhes(ctx, dados['nome'], dados['telefone'], dados['cidade'], dados['estado'])
        elif acao == 'entrega':
            if dados.get('metodo'):
                checkout_uc.escolher_entrega(ctx, dados['metodo'])
            checkout_uc.continuar(ctx)
        elif acao == 'cotar_frete':
            checkout_uc.cotar_frete(ctx, dados['cep'])
        elif acao == 'selecionar_frete':
            checkout_uc.selecionar_frete(ctx, dados['servico'])
        elif acao == 'endereco':
            checkout_uc.informar_endereco(ctx, dados['endereco'])
        elif acao == 'cupom':
            if dados['codigo'].strip():
                checkout_uc.aplicar_cupom(ctx, self.sessao, dados['codigo'])
            else:
                checkout_uc.remover_cupom(ctx)
        elif acao == 'finalizar':
            motor = self.gerenciador.abrir_carrinho()
            try:
                checkout_uc.finalizar(ctx, self.sessao, motor)
            finally:
                self.gerenciador.registrar_carrinho(motor)
        elif acao == 'aprovar_pagamento':
            checkout_uc.aprovar_pagamento(ctx, self.sessao, dados['metodo_pagamento'])
        elif acao == 'voltar':
            checkout_uc.voltar(ctx)


class PixAPIView(LojaPublicaAPIView):
    """Payload Pix (copia e cola) e QR Code do total atual do checkout."""

    def get(self, request, slug):
        self.carregar_loja(request, slug)
        ctx = self.gerenciador.carregar_checkout(self.perfil)
        if ctx is None:
            raise EtapaInvalidaError("Nenhum checkout em andamento.")
        payload = di.get_fluxo_checkout_use_case().payload_pix(ctx)
        return Response({
            'payload': payload,
            'qrcode_url': get_qrcode_gateway().url_imagem(payload),
            'total': TotaisSerializer(ctx.totais).data['total'],
        })


class WhatsappAPIView(LojaPublicaAPIView):
    """Link do WhatsApp para o cliente confirmar o pedido com o lojista."""

    def get(self, request, slug):
        self.carregar_loja(request, slug)
        ctx = self.gerenciador.carregar_checkout(self.perfil)
        if ctx is None:
            raise EtapaInvalidaError("Nenhum checkout em andamento.")
        checkout_uc = di.get_fluxo_checkout_use_case()
        url = checkout_uc.link_whatsapp(ctx)
        return Response({'url': url, 'mensagem': checkout_uc.mensagem_whatsapp(ctx)})


class StatusAPIView(FleexAPIView):
    """Indicador de conexão com o armazenamento remoto."""
    permission_classes = [AllowAny]

    def get(self, request):
        online = get_armazenamento().verificar_conexao()
        return Response({'online': online})


# ====================================================================
# 2. PAINEL DO LOJISTA (autenticado; a loja é a do usuário logado)
# ====================================================================

class PainelAPIView(FleexAPIView):
    permission_classes = [IsAuthenticated]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.sessao = di.loja_repo.sessao_do_dono(request.user)


class PerfilPainelAPIView(PainelAPIView):

    def get(self, request):
        perfil = di.get_perfil_use_case().obter(self.sessao)
        return Response(PerfilLojaSerializer(perfil).data)

    def patch(self, request):
        serializer = AtualizarPerfilSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        perfil = di.get_perfil_use_case().atualizar(self.sessao, dict(serializer.validated_data))
        return Response(PerfilLojaSerializer(perfil).data)


class CatalogoPainelAPIView(PainelAPIView):
    """
    Catálogo editável (links, produtos, categorias, cupons). O PUT é agrupado
    pelo auto-salvamento; com `?imediato=1` grava na hora.
    """

    def get(self, request):
        catalogo = di.get_catalogo_use_case().obter(self.sessao)
        return Response(CatalogoSerializer(catalogo).data)

    def put(self, request):
        serializer = CatalogoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        catalogo = serializer.to_catalogo()
        catalogo_uc = di.get_catalogo_use_case()

        if request.query_params.get('imediato') in ('1', 'true'):
            catalogo_uc.salvar(self.sessao, catalogo)
            return Response({'status': 'salvo', 'catalogo': CatalogoSerializer(catalogo).data})

        # Erros de validação aparecem já na requisição, não no temporizador.
        catalogo_uc.validar(di.get_perfil_use_case().obter(self.sessao), catalogo)
        auto_salvamento = di.get_auto_salvamento(self.sessao)
        auto_salvamento.agendar(self.sessao, catalogo)
        return Response({'status': auto_salvamento.status}, status=status.HTTP_202_ACCEPTED)


class PedidosPainelAPIView(PainelAPIView):

    def get(self, request):
        pedidos = di.get_pedidos_painel_use_case().listar(self.sessao)
        return Response(PedidoSerializer(pedidos, many=True).data)


class PedidoPainelAPIView(PainelAPIView):
    """Atualização manual do status (e do código de rastreio) de um pedido."""

    def patch(self, request, pedido_id):
        serializer = AtualizarStatusPedidoSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        pedido = di.get_pedidos_painel_use_case().atualizar_status(
            self.sessao,
            pedido_id,
            serializer.validated_data['status'],
            codigo_rastreio=serializer.validated_data.get('codigo_rastreio'),
        )
        return Response(PedidoSerializer(pedido).data)


class CarrinhosAbandonadosAPIView(PainelAPIView):

    def get(self, request):
        perfil = di.get_perfil_use_case().obter(self.sessao)
        carrinhos = di.get_pedidos_painel_use_case().listar_carrinhos_abandonados(self.sessao)
        return Response({
            'recurso_disponivel': recursos_do_plano(perfil.plano).recuperacao_carrinho,
            'carrinhos': CarrinhoAbandonadoSerializer(carrinhos, many=True).data,
        })


class AtividadesAPIView(PainelAPIView):

    def get(self, request):
        perfil_uc = di.get_perfil_use_case()
        perfil = perfil_uc.obter(self.sessao)
        return Response({
            'recurso_disponivel': recursos_do_plano(perfil.plano).log_atividades,
            'atividades': RegistroAtividadeSerializer(perfil.atividades, many=True).data,
        })


class SincronizarPainelAPIView(PainelAPIView):
    """
    Um ciclo do laço de sincronização do painel. O último estado visto fica na
    sessão do lojista; `novo_pedido` vem preenchido quando chegou pedido novo.
    """
    CHAVE_ESTADO = 'fleex_painel_estado'

    def get(self, request):
        dados_estado = request.session.get(self.CHAVE_ESTADO)
        estado = EstadoPainel(**dados_estado) if dados_estado else None

        sincronizador = di.get_sincronizador_painel(self.sessao, estado)
        resultado = sincronizador.tick()

        request.session[self.CHAVE_ESTADO] = asdict(sincronizador.estado)
        request.session.modified = True

        novo = resultado.novo_pedido
        return Response({
            'alterado': resultado.alterado,
            'novo_pedido': PedidoSerializer(novo).data if novo else None,
            'pedidos': PedidoSerializer(resultado.pedidos, many=True).data,
            'carrinhos': CarrinhoAbandonadoSerializer(resultado.carrinhos, many=True).data,
        })
