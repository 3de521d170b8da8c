# fleex/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Dict, Any

# Entidades e Exceções
from fleex.core.entities import (
    SessaoLoja, PerfilLoja, Link, Produto, Categoria, Cupom, Pedido, CarrinhoAbandonado,
    CotacaoFrete, MetodoEntrega, MetodoPagamento, StatusPedido, RegistroAtividade, Catalogo
)
from fleex.core.exceptions import (
    CarrinhoVazioError,
    CupomInvalidoError,
    DadosInvalidosError,
    EtapaInvalidaError,
    LimitePlanoExcedidoError,
    LojaNaoEncontradaError,
    PedidoNaoEncontradoError,
    ProdutoNaoEncontradoError,
    RecursoForaDoPlanoError,
    StatusInvalidoError,
    CepInvalidoError,
    CepNaoEncontradoError,
)
from fleex.core.carrinho import MotorCarrinho
from fleex.core.checkout import (
    ContextoCheckout, EtapaCheckout, EventoCheckout, transicionar, metodos_entrega_disponiveis
)
from fleex.core.frete import formatar_cep
from fleex.core.pix import gerar_payload_pix
from fleex.core.planos import recursos_do_plano

# Portas (Interfaces) - Importadas do fleex/core/ports.py
from fleex.core.ports import (
    IPersistenciaLoja,
    IGatewayPagamento,
    IWhatsappGateway,
)

logger = logging.getLogger(__name__)

CHAVE_PIX_PADRAO = 'test@pix.com'
CIDADE_PIX_PADRAO = 'Cidade'


# ====================================================================
# 1. VITRINE PÚBLICA
# ====================================================================

@dataclass
class Vitrine:
    perfil: PerfilLoja
    links: List[Link] = field(default_factory=list)
    produtos: List[Produto] = field(default_factory=list)
    categorias: List[Categoria] = field(default_factory=list)
    produto_destaque: Optional[Produto] = None


class VitrinePublicaUseCase:
    """Monta a página pública da loja: links ativos, produtos ativos e categorias."""
    def __init__(self, persistencia: IPersistenciaLoja):
        self.persistencia = persistencia

    def obter_perfil(self, sessao: SessaoLoja) -> PerfilLoja:
        perfil = self.persistencia.obter_perfil(sessao)
        if perfil is None:
            raise LojaNaoEncontradaError()
        return perfil

    def executar(
        self,
        sessao: SessaoLoja,
        categoria_id: Optional[str] = None,
        busca: Optional[str] = None,
        produto_id: Optional[str] = None,
    ) -> Vitrine:
        perfil = self.obter_perfil(sessao)
        produtos = [p for p in self.persistencia.obter_produtos(sessao) if p.ativo]

        destaque = None
        if produto_id:
            destaque = next((p for p in produtos if p.id == produto_id), None)
            if destaque is None:
                raise ProdutoNaoEncontradoError()

        if categoria_id:
            produtos = [p for p in produtos if p.categoria_id == categoria_id]
        if busca:
            termo = busca.strip().lower()
            produtos = [
                p for p in produtos
                if termo in p.titulo.lower() or termo in (p.descricao or '').lower()
            ]

        return Vitrine(
            perfil=perfil,
            links=[link for link in self.persistencia.obter_links(sessao) if link.ativo],
            produtos=produtos,
            categorias=self.persistencia.obter_categorias(sessao),
            produto_destaque=destaque,
        )

    def buscar_produto(self, sessao: SessaoLoja, produto_id: str) -> Optional[Produto]:
        """Estoque vigente de um produto (usado pelo motor do carrinho)."""
        return next((p for p in self.persistencia.obter_produtos(sessao) if p.id == produto_id), None)


# ====================================================================
# 2. CHECKOUT
# ====================================================================

class FluxoCheckoutUseCase:
    """
    Orquestra o checkout: aplica os dados do cliente no contexto, executa os
    efeitos (cotação, pedido, baixa de estoque, pagamento) e delega a decisão
    de etapa à função pura `transicionar`.
    """
    def __init__(self,
                 persistencia: IPersistenciaLoja,
                 pagamento_gateway: IGatewayPagamento,
                 whatsapp_gateway: Optional[IWhatsappGateway] = None):
        self.persistencia = persistencia
        self.pagamento_gateway = pagamento_gateway
        self.whatsapp_gateway = whatsapp_gateway

    @staticmethod
    def _exigir_etapa(ctx: ContextoCheckout, *etapas: EtapaCheckout):
        if ctx.etapa not in etapas:
            raise EtapaInvalidaError()

    @staticmethod
    def _avancar(ctx: ContextoCheckout, evento: EventoCheckout = EventoCheckout.CONTINUAR) -> ContextoCheckout:
        ctx.etapa = transicionar(ctx.etapa, evento, ctx)
        return ctx

    def iniciar(self, perfil: PerfilLoja, carrinho: MotorCarrinho) -> ContextoCheckout:
        """Abre o checkout (etapa Detalhes) com um snapshot do carrinho."""
        if carrinho.vazio:
            raise CarrinhoVazioError("Não é possível iniciar o checkout com o carrinho vazio.")
        return ContextoCheckout(loja=perfil, itens=list(carrinho.itens))

    def informar_detalhes(self, ctx: ContextoCheckout, nome: str, telefone: str,
                          cidade: str, estado: str) -> ContextoCheckout:
        self._exigir_etapa(ctx, EtapaCheckout.DETALHES)
        ctx.cliente.nome = (nome or '').strip()
        ctx.cliente.telefone = (telefone or '').strip()
        ctx.cliente.cidade = (cidade or '').strip()
        ctx.cliente.estado = (estado or '').strip()
        return self._avancar(ctx)

    def escolher_entrega(self, ctx: ContextoCheckout, metodo: str) -> ContextoCheckout:
        """Define a forma de entrega entre as disponíveis para o cliente (não avança)."""
        self._exigir_etapa(ctx, EtapaCheckout.ENTREGA)
        try:
            metodo_entrega = MetodoEntrega(metodo)
        except ValueError:
            raise DadosInvalidosError(f"Forma de entrega desconhecida: {metodo}.")

        if metodo_entrega not in metodos_entrega_disponiveis(ctx):
            raise DadosInvalidosError("Forma de entrega indisponível para sua cidade.")

        ctx.metodo_entrega = metodo_entrega
        if metodo_entrega != MetodoEntrega.TRANSPORTADORA:
            ctx.opcoes_frete = []
            ctx.frete_selecionado = None
            ctx.erro_frete = ''
        return ctx

    def cotar_frete(self, ctx: ContextoCheckout, cep: str) -> List[CotacaoFrete]:
        """Uma nova cotação sempre descarta a opção de frete selecionada antes."""
        self._exigir_etapa(ctx, EtapaCheckout.ENTREGA)
        ctx.opcoes_frete = []
        ctx.frete_selecionado = None
        ctx.erro_frete = ''
        ctx.cliente.cep = formatar_cep(cep)

        try:
            opcoes = self.persistencia.calcular_frete(cep)
        except (CepInvalidoError, CepNaoEncontradoError) as e:
            ctx.erro_frete = e.message
            raise

        ctx.metodo_entrega = MetodoEntrega.TRANSPORTADORA
        ctx.opcoes_frete = opcoes
        return opcoes

    def selecionar_frete(self, ctx: ContextoCheckout, servico: str) -> ContextoCheckout:
        self._exigir_etapa(ctx, EtapaCheckout.ENTREGA)
        escolhida = next((opcao for opcao in ctx.opcoes_frete if opcao.servico == servico), None)
        if escolhida is None:
            raise DadosInvalidosError("Opção de frete indisponível. Cote o frete novamente.")
        ctx.metodo_entrega = MetodoEntrega.TRANSPORTADORA
        ctx.frete_selecionado = escolhida
        return ctx

    def continuar(self, ctx: ContextoCheckout) -> ContextoCheckout:
        return self._avancar(ctx)

    def voltar(self, ctx: ContextoCheckout) -> ContextoCheckout:
        return self._avancar(ctx, EventoCheckout.VOLTAR)

    def informar_endereco(self, ctx: ContextoCheckout, endereco: str) -> ContextoCheckout:
        self._exigir_etapa(ctx, EtapaCheckout.ENDERECO)
        ctx.endereco = (endereco or '').strip()
        return self._avancar(ctx)

    def aplicar_cupom(self, ctx: ContextoCheckout, sessao: SessaoLoja, codigo: str) -> Cupom:
        """Busca exata pelo código em maiúsculas. Código inválido remove o cupom aplicado."""
        self._exigir_etapa(ctx, EtapaCheckout.PAGAMENTO)
        codigo_normalizado = (codigo or '').strip().upper()
        cupom = next(
            (c for c in self.persistencia.obter_cupons(sessao) if c.codigo == codigo_normalizado),
            None
        )
        if cupom is None:
            ctx.cupom_aplicado = None
            raise CupomInvalidoError()
        ctx.cupom_aplicado = cupom
        return cupom

    def remover_cupom(self, ctx: ContextoCheckout) -> ContextoCheckout:
        ctx.cupom_aplicado = None
        return ctx

    def finalizar(self, ctx: ContextoCheckout, sessao: SessaoLoja, carrinho: MotorCarrinho) -> Pedido:
        """
        Grava o pedido (pendente), baixa o estoque, esvazia o carrinho e avança
        para Gateway (pagamento automático) ou Sucesso.
        """
        self._exigir_etapa(ctx, EtapaCheckout.PAGAMENTO)
        if carrinho.vazio:
            raise CarrinhoVazioError()

        ctx.itens = list(carrinho.itens)
        totais = ctx.totais
        frete = ctx.frete_selecionado

        pedido = Pedido(
            nome_cliente=ctx.cliente.nome,
            telefone_cliente=ctx.cliente.telefone,
            resumo_itens=', '.join(item.descricao for item in ctx.itens),
            total=totais.total,
            metodo_entrega=ctx.metodo_entrega,
            cidade_cliente=ctx.cliente.cidade,
            estado_cliente=ctx.cliente.estado,
            cep_cliente=ctx.cliente.cep,
            servico_frete=frete.servico if frete else None,
            custo_frete=frete.preco if frete else None,
            endereco=ctx.endereco or None,
            status=StatusPedido.PENDENTE,
        )

        pedido = self.persistencia.criar_pedido(sessao, pedido)
        self.persistencia.baixar_estoque(sessao, pedido.id, ctx.itens)
        carrinho.limpar()
        logger.info("Pedido %s criado na loja %s (total %s).", pedido.id, sessao.loja_id, pedido.total)

        ctx.pedido = pedido
        return self._avancar(ctx).pedido

    def aprovar_pagamento(self, ctx: ContextoCheckout, sessao: SessaoLoja, metodo: str) -> Pedido:
        """Aprovação simulada: marca o pedido como pago e conclui o checkout."""
        self._exigir_etapa(ctx, EtapaCheckout.GATEWAY)
        try:
            metodo_pagamento = MetodoPagamento(metodo)
        except ValueError:
            raise DadosInvalidosError(f"Método de pagamento desconhecido: {metodo}.")

        self.pagamento_gateway.aprovar(ctx.pedido, metodo_pagamento.value)
        pedidos = self.persistencia.atualizar_status_pedido(
            sessao, ctx.pedido.id,
            {'status': StatusPedido.PAGO.value, 'metodo_pagamento': metodo_pagamento.value}
        )
        atualizado = next((p for p in pedidos if p.id == ctx.pedido.id), None)
        ctx.pedido = atualizado or replace(
            ctx.pedido, status=StatusPedido.PAGO, metodo_pagamento=metodo_pagamento.value
        )
        ctx.metodo_pagamento = metodo_pagamento
        return self._avancar(ctx).pedido

    def fechar(self, ctx: Optional[ContextoCheckout], sessao: SessaoLoja) -> Optional[CarrinhoAbandonado]:
        """
        Fechamento do checkout pelo cliente. Com nome e telefone já informados
        e sem ter chegado ao Sucesso, registra um carrinho abandonado.
        Falhas na gravação são apenas registradas em log.
        """
        if ctx is None or ctx.etapa == EtapaCheckout.SUCESSO:
            return None
        if not (ctx.cliente.nome and ctx.cliente.telefone):
            return None

        abandonado = CarrinhoAbandonado(
            nome_cliente=ctx.cliente.nome,
            telefone_cliente=ctx.cliente.telefone,
            itens=list(ctx.itens),
            total=ctx.totais.subtotal,
        )
        try:
            self.persistencia.salvar_carrinho_abandonado(sessao, abandonado)
        except Exception:
            logger.warning("Falha ao registrar carrinho abandonado na loja %s.", sessao.loja_id, exc_info=True)
            return None
        logger.info("Carrinho abandonado registrado na loja %s (%s).", sessao.loja_id, abandonado.telefone_cliente)
        return abandonado

    # --- Pagamento manual e contato ---

    def payload_pix(self, ctx: ContextoCheckout) -> str:
        perfil = ctx.loja
        return gerar_payload_pix(
            chave=perfil.chave_pix or CHAVE_PIX_PADRAO,
            nome_recebedor=perfil.nome,
            cidade=perfil.cidade_loja or CIDADE_PIX_PADRAO,
            valor=ctx.totais.total,
        )

    @staticmethod
    def descricao_entrega(ctx: ContextoCheckout) -> str:
        if ctx.metodo_entrega == MetodoEntrega.ENTREGA_LOCAL:
            return 'Entrega Local (Motoboy)'
        if ctx.metodo_entrega == MetodoEntrega.TRANSPORTADORA:
            servico = ctx.frete_selecionado.servico if ctx.frete_selecionado else (
                ctx.pedido.servico_frete if ctx.pedido else ''
            )
            return f'Envio via {servico}'
        return 'Retirada na Loja'

    def mensagem_whatsapp(self, ctx: ContextoCheckout) -> str:
        pedido = ctx.pedido
        pago = pedido.status == StatusPedido.PAGO
        resumo = '\n'.join(item.descricao for item in ctx.itens) or pedido.resumo_itens

        if pago:
            forma = 'Pix' if ctx.metodo_pagamento == MetodoPagamento.PIX else 'Cartão'
            mensagem = f"Olá *{ctx.loja.nome}*, pagamento APROVADO! ✅ \n\n"
            mensagem += f"O pedido #{pedido.codigo_curto} já foi pago via {forma}.\n\n"
        else:
            mensagem = f"Olá *{ctx.loja.nome}*, gostaria de confirmar meu pedido #{pedido.codigo_curto}.\n\n"

        mensagem += f"👤 *Cliente:* {pedido.nome_cliente} ({pedido.cidade_cliente}/{pedido.estado_cliente})\n"
        mensagem += f"📋 *Itens:* \n{resumo}\n"
        mensagem += f"💰 *Total:* R$ {Decimal(pedido.total):.2f}\n"
        mensagem += f"🚚 *Entrega:* {self.descricao_entrega(ctx)}\n"
        if pedido.endereco:
            mensagem += f"📍 *Endereço:* {pedido.endereco}\n"
        return mensagem

    def link_whatsapp(self, ctx: ContextoCheckout) -> str:
        """Link para o lojista confirmar o pedido. Disponível apenas no Sucesso."""
        self._exigir_etapa(ctx, EtapaCheckout.SUCESSO)
        if self.whatsapp_gateway is None:
            raise EtapaInvalidaError("Contato via WhatsApp indisponível.")
        return self.whatsapp_gateway.montar_link(ctx.loja.telefone, self.mensagem_whatsapp(ctx))


# ====================================================================
# 3. CASOS DE USO DO PAINEL DO LOJISTA
# ====================================================================

class GerenciarPedidosPainelUseCase:
    """Pedidos e carrinhos abandonados vistos pelo lojista."""
    def __init__(self, persistencia: IPersistenciaLoja):
        self.persistencia = persistencia

    def listar(self, sessao: SessaoLoja) -> List[Pedido]:
        return self.persistencia.listar_pedidos(sessao)

    def listar_carrinhos_abandonados(self, sessao: SessaoLoja) -> List[CarrinhoAbandonado]:
        return self.persistencia.obter_carrinhos_abandonados(sessao)

    def atualizar_status(self, sessao: SessaoLoja, pedido_id: str, novo_status: str,
                         codigo_rastreio: Optional[str] = None) -> Pedido:
        """Atualiza o status de um pedido manualmente e registra a ação no log."""
        try:
            status = StatusPedido(novo_status)
        except ValueError:
            raise StatusInvalidoError(f"O status '{novo_status}' não é um status de pedido válido.")

        if not any(p.id == pedido_id for p in self.persistencia.listar_pedidos(sessao)):
            raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.")

        alteracoes: Dict[str, Any] = {'status': status.value}
        if codigo_rastreio is not None:
            alteracoes['codigo_rastreio'] = codigo_rastreio

        pedidos = self.persistencia.atualizar_status_pedido(sessao, pedido_id, alteracoes)
        self.persistencia.registrar_atividade(
            sessao, sessao.ator, 'Atualização de Pedido', f"Pedido #{pedido_id[-4:]} → {status.value}"
        )
        return next(p for p in pedidos if p.id == pedido_id)


class GerenciarCatalogoUseCase:
    """Leitura e gravação em bloco de links, produtos, categorias e cupons."""
    def __init__(self, persistencia: IPersistenciaLoja):
        self.persistencia = persistencia

    def obter(self, sessao: SessaoLoja) -> Catalogo:
        return Catalogo(
            links=self.persistencia.obter_links(sessao),
            produtos=self.persistencia.obter_produtos(sessao),
            categorias=self.persistencia.obter_categorias(sessao),
            cupons=self.persistencia.obter_cupons(sessao),
        )

    def validar(self, perfil: PerfilLoja, catalogo: Catalogo):
        recursos = recursos_do_plano(perfil.plano)
        if len(catalogo.produtos) > recursos.limite_produtos:
            raise LimitePlanoExcedidoError(recursos.limite_produtos)
        if catalogo.cupons and not recursos.cupons:
            raise RecursoForaDoPlanoError('cupons de desconto')

        codigos = [cupom.codigo for cupom in catalogo.cupons]
        if len(codigos) != len(set(codigos)):
            raise DadosInvalidosError("Já existe um cupom com este código.")

        categorias = {categoria.id for categoria in catalogo.categorias}
        for produto in catalogo.produtos:
            if produto.preco < 0 or produto.estoque < 0:
                raise DadosInvalidosError(f"Preço e estoque de '{produto.titulo}' não podem ser negativos.")
            if produto.categoria_id and produto.categoria_id not in categorias:
                raise DadosInvalidosError(f"Categoria inexistente no produto '{produto.titulo}'.")

    def salvar(self, sessao: SessaoLoja, catalogo: Catalogo) -> Catalogo:
        perfil = self.persistencia.obter_perfil(sessao)
        if perfil is None:
            raise LojaNaoEncontradaError()
        self.validar(perfil, catalogo)

        self.persistencia.salvar_links(sessao, catalogo.links)
        self.persistencia.salvar_produtos(sessao, catalogo.produtos)
        self.persistencia.salvar_categorias(sessao, catalogo.categorias)
        self.persistencia.salvar_cupons(sessao, catalogo.cupons)
        logger.info("Catálogo da loja %s salvo (%d produtos).", sessao.loja_id, len(catalogo.produtos))
        return catalogo


class GerenciarPerfilUseCase:
    """Perfil e log de atividades da loja."""

    CAMPOS_EDITAVEIS = {
        'nome', 'email', 'bio', 'avatar_url', 'plano', 'tema_id', 'cor_primaria', 'telefone',
        'chave_pix', 'cep_loja', 'cidade_loja', 'estado_loja', 'pagamento_automatico',
    }

    def __init__(self, persistencia: IPersistenciaLoja):
        self.persistencia = persistencia

    def obter(self, sessao: SessaoLoja) -> PerfilLoja:
        perfil = self.persistencia.obter_perfil(sessao)
        if perfil is None:
            raise LojaNaoEncontradaError()
        return perfil

    def atualizar(self, sessao: SessaoLoja, alteracoes: Dict[str, Any]) -> PerfilLoja:
        desconhecidos = set(alteracoes) - self.CAMPOS_EDITAVEIS
        if desconhecidos:
            raise DadosInvalidosError(f"Campos não editáveis: {', '.join(sorted(desconhecidos))}.")

        alteracoes = dict(alteracoes)
        atual = self.obter(sessao)
        recursos = recursos_do_plano(alteracoes.get('plano', atual.plano))
        if not recursos.pagamento_automatico:
            if alteracoes.get('pagamento_automatico'):
                raise RecursoForaDoPlanoError('pagamento automático')
            if atual.pagamento_automatico:
                # Troca para um plano sem o recurso desliga a automação.
                alteracoes['pagamento_automatico'] = False

        perfil = self.persistencia.atualizar_perfil(sessao, alteracoes)
        self.persistencia.registrar_atividade(
            sessao, sessao.ator, 'Atualização de Configurações', ', '.join(sorted(alteracoes))
        )
        return perfil

    def listar_atividades(self, sessao: SessaoLoja) -> List[RegistroAtividade]:
        return self.obter(sessao).atividades
