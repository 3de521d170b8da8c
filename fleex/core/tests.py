# fleex/core/tests.py

import unittest
from unittest.mock import Mock
from decimal import Decimal

from fleex.core.carrinho import MotorCarrinho, calcular_totais
from fleex.core.checkout import (
    ContextoCheckout, EtapaCheckout, EventoCheckout, transicionar, metodos_entrega_disponiveis
)
from fleex.core.entities import (
    SessaoLoja, PerfilLoja, PlanoTipo, Produto, Variante, ItemCarrinho, Cupom, CotacaoFrete,
    MetodoEntrega, StatusPedido, Pedido, Catalogo
)
from fleex.core.exceptions import (
    EstoqueInsuficienteError, SelecaoObrigatoriaError, CarrinhoVazioError, CupomInvalidoError,
    DadosInvalidosError, EtapaInvalidaError, CepInvalidoError, CepNaoEncontradoError,
    ItemNaoEncontradoError, StatusInvalidoError, LimitePlanoExcedidoError, RecursoForaDoPlanoError
)
from fleex.core.frete import cotar_frete, CotadorFrete, formatar_cep
from fleex.core.pix import gerar_payload_pix, crc16_ccitt, normalizar_texto
from fleex.core.sincronizacao import SincronizadorPainel, AutoSalvamento
from fleex.core.use_cases import (
    FluxoCheckoutUseCase, GerenciarPedidosPainelUseCase, GerenciarCatalogoUseCase, VitrinePublicaUseCase,
    GerenciarPerfilUseCase
)


class CacheMemoria:
    """Cache de carrinho em memória (mesmo contrato do cache de sessão)."""
    def __init__(self):
        self.dados = {}

    def carregar(self, loja_id):
        return list(self.dados.get(loja_id, []))

    def salvar(self, loja_id, itens):
        self.dados[loja_id] = list(itens)

    def limpar(self, loja_id):
        self.dados.pop(loja_id, None)


class PersistenciaMemoria:
    """Persistência da loja em memória para os testes do core."""
    def __init__(self, perfil, produtos=None, cupons=None):
        self.perfil = perfil
        self.links = []
        self.produtos = list(produtos or [])
        self.categorias = []
        self.cupons = list(cupons or [])
        self.pedidos = []
        self.carrinhos = []
        self.baixas = set()
        self.atividades = []

    def obter_perfil(self, sessao):
        return self.perfil

    def atualizar_perfil(self, sessao, alteracoes):
        for campo, valor in alteracoes.items():
            setattr(self.perfil, campo, valor)
        return self.perfil

    def obter_links(self, sessao):
        return list(self.links)

    def salvar_links(self, sessao, links):
        self.links = list(links)

    def obter_produtos(self, sessao):
        return list(self.produtos)

    def salvar_produtos(self, sessao, produtos):
        self.produtos = list(produtos)

    def obter_categorias(self, sessao):
        return list(self.categorias)

    def salvar_categorias(self, sessao, categorias):
        self.categorias = list(categorias)

    def obter_cupons(self, sessao):
        return list(self.cupons)

    def salvar_cupons(self, sessao, cupons):
        self.cupons = list(cupons)

    def listar_pedidos(self, sessao):
        return list(self.pedidos)

    def criar_pedido(self, sessao, pedido):
        self.pedidos.insert(0, pedido)
        return pedido

    def atualizar_status_pedido(self, sessao, pedido_id, alteracoes):
        for pedido in self.pedidos:
            if pedido.id == pedido_id:
                for campo, valor in alteracoes.items():
                    if campo == 'status':
                        valor = StatusPedido(valor)
                    setattr(pedido, campo, valor)
        return list(self.pedidos)

    def baixar_estoque(self, sessao, pedido_id, itens):
        if pedido_id in self.baixas:
            return
        self.baixas.add(pedido_id)
        for item in itens:
            for produto in self.produtos:
                if produto.id == item.produto.id:
                    produto.estoque = max(0, produto.estoque - item.quantidade)

    def obter_carrinhos_abandonados(self, sessao):
        return list(self.carrinhos)

    def salvar_carrinho_abandonado(self, sessao, carrinho):
        self.carrinhos.insert(0, carrinho)

    def calcular_frete(self, cep):
        return cotar_frete(cep)

    def registrar_atividade(self, sessao, autor, acao, detalhes=None):
        self.atividades.append((autor, acao, detalhes))


def _perfil(**kwargs):
    dados = dict(id='loja-1', nome='Loja Teste', slug='loja-teste', telefone='5541999990000')
    dados.update(kwargs)
    return PerfilLoja(**dados)


# ====================================================================
# PIX
# ====================================================================

class TestPayloadPix(unittest.TestCase):

    def test_crc_vetor_de_referencia(self):
        """CRC-16/CCITT-FALSE de '123456789' é 29B1."""
        self.assertEqual(crc16_ccitt('123456789'), '29B1')

    def test_crc_final_confere_com_o_restante_do_payload(self):
        payload = gerar_payload_pix('test@pix.com', 'Loja Teste', 'Sao Paulo', Decimal('25.50'))

        self.assertTrue(payload.startswith('000201'))
        self.assertIn('0112test@pix.com', payload)
        self.assertIn('540525.50', payload)
        self.assertIn('5910Loja Teste', payload)
        self.assertIn('6009Sao Paulo', payload)
        self.assertEqual(payload[-8:-4], '6304')
        self.assertRegex(payload[-4:], r'^[0-9A-F]{4}$')
        self.assertEqual(crc16_ccitt(payload[:-4]), payload[-4:])

    def test_sem_valor_nao_emite_campo_54(self):
        payload = gerar_payload_pix('chave@pix.com', 'Loja', 'Cidade', Decimal('0'))
        self.assertNotIn('5404', payload)
        self.assertNotIn('54', payload.split('5303986')[1][:2])

    def test_textos_sem_acento_e_limitados(self):
        self.assertEqual(normalizar_texto('São João da Boa Vista do Sul'), 'Sao Joao da Boa Vista do ')
        payload = gerar_payload_pix('k', 'Açaí & Cia', 'São Paulo')
        self.assertIn('5910Acai & Cia', payload)
        self.assertIn('6009Sao Paulo', payload)


# ====================================================================
# FRETE
# ====================================================================

class TestCotacaoFrete(unittest.TestCase):

    def test_cep_com_final_zero(self):
        opcoes = cotar_frete('01310-930')

        self.assertEqual([o.preco for o in opcoes], [Decimal('18.00'), Decimal('28.80'), Decimal('16.20')])
        self.assertEqual([o.prazo_dias for o in opcoes], [5, 1, 7])
        self.assertEqual(opcoes[0].servico, 'PAC (Correios)')

    def test_cep_com_final_sete(self):
        opcoes = cotar_frete('80000007')
        self.assertEqual([o.preco for o in opcoes], [Decimal('25.00'), Decimal('40.00'), Decimal('22.50')])
        self.assertEqual([o.prazo_dias for o in opcoes], [6, 2, 7])

    def test_cep_zerado_nao_encontrado(self):
        with self.assertRaises(CepNaoEncontradoError):
            cotar_frete('00000000')

    def test_cep_curto_invalido(self):
        with self.assertRaises(CepInvalidoError):
            cotar_frete('123')

    def test_cotador_aplica_latencia_injetada(self):
        dormir = Mock()
        CotadorFrete(latencia=1.0, dormir=dormir).cotar('01310930')
        dormir.assert_called_once_with(1.0)

    def test_mascara_do_cep(self):
        self.assertEqual(formatar_cep('01310930'), '01310-930')


# ====================================================================
# CARRINHO
# ====================================================================

class TestMotorCarrinho(unittest.TestCase):

    def setUp(self):
        self.cache = CacheMemoria()
        self.produto = Produto(titulo='Camiseta', preco=Decimal('50.00'), estoque=3, id='p1')
        self.motor = MotorCarrinho('loja-1', self.cache)

    def test_estoque_s_mais_um_adicoes(self):
        """Com estoque S, S adições funcionam e a S+1ª levanta EstoqueInsuficienteError."""
        for _ in range(3):
            self.motor.adicionar(self.produto)

        with self.assertRaises(EstoqueInsuficienteError):
            self.motor.adicionar(self.produto)

        self.assertEqual(len(self.motor.itens), 1)
        self.assertEqual(self.motor.itens[0].quantidade, 3)

    def test_produto_sem_estoque_nao_altera_carrinho(self):
        esgotado = Produto(titulo='Boné', preco=Decimal('30'), estoque=0)
        self.assertIsNone(self.motor.adicionar(esgotado))
        self.assertTrue(self.motor.vazio)

    def test_variante_obrigatoria(self):
        produto = Produto(titulo='Tênis', preco=Decimal('200'), estoque=5,
                          variantes=[Variante('38', id='v38'), Variante('40', id='v40')])
        with self.assertRaises(SelecaoObrigatoriaError):
            self.motor.adicionar(produto)

        self.motor.adicionar(produto, produto.variantes[0])
        self.motor.adicionar(produto, produto.variantes[1])
        self.assertEqual(len(self.motor.itens), 2)

    def test_quantidade_respeita_estoque_atual(self):
        self.motor.adicionar(self.produto)
        self.produto.estoque = 1
        motor = MotorCarrinho('loja-1', self.cache, itens=self.motor.itens,
                              buscar_produto=lambda pid: self.produto)

        self.assertFalse(motor.atualizar_quantidade(0, 1))
        self.assertFalse(motor.atualizar_quantidade(0, -1))
        self.assertEqual(motor.itens[0].quantidade, 1)

    def test_remover_indice_invalido(self):
        with self.assertRaises(ItemNaoEncontradoError):
            self.motor.remover(0)

    def test_cache_recebe_snapshot_e_limpa_quando_vazio(self):
        self.motor.adicionar(self.produto)
        self.assertEqual(len(self.cache.carregar('loja-1')), 1)

        self.motor.remover(0)
        self.assertEqual(self.cache.carregar('loja-1'), [])

    def test_oferta_de_restauracao(self):
        self.motor.adicionar(self.produto)

        reaberto = MotorCarrinho.abrir('loja-1', self.cache)
        self.assertTrue(reaberto.vazio)
        self.assertEqual(len(reaberto.oferta_restauracao), 1)

        reaberto.restaurar()
        self.assertEqual(reaberto.itens[0].produto.id, 'p1')
        self.assertIsNone(reaberto.oferta_restauracao)

    def test_acao_do_cliente_descarta_oferta(self):
        self.motor.adicionar(self.produto)
        reaberto = MotorCarrinho.abrir('loja-1', self.cache)

        outro = Produto(titulo='Meia', preco=Decimal('10'), estoque=5, id='p2')
        reaberto.adicionar(outro)

        self.assertIsNone(reaberto.oferta_restauracao)
        self.assertEqual([i.produto.id for i in self.cache.carregar('loja-1')], ['p2'])

    def test_totais_com_cupom_e_frete(self):
        itens = [ItemCarrinho(self.produto, 2)]
        totais = calcular_totais(itens, Cupom('off10', Decimal('10')),
                                 CotacaoFrete('PAC (Correios)', Decimal('18.00'), 5))
        self.assertEqual(totais.subtotal, Decimal('100.00'))
        self.assertEqual(totais.desconto, Decimal('10.00'))
        self.assertEqual(totais.total, Decimal('108.00'))

    def test_subtotal_monotonico_com_cupom_e_frete_fixos(self):
        """Adicionar nunca reduz o subtotal; remover nunca o aumenta."""
        cupom = Cupom('off10', Decimal('10'))
        frete = CotacaoFrete('PAC (Correios)', Decimal('18.00'), 5)
        meia = Produto(titulo='Meia', preco=Decimal('9.90'), estoque=2, id='p2')
        brinde = Produto(titulo='Adesivo', preco=Decimal('0'), estoque=1, id='p3')
        bone = Produto(titulo='Boné', preco=Decimal('35.00'), estoque=1, id='p4',
                       variantes=[Variante('Azul', id='va'), Variante('Preto', id='vp')])

        adicoes = [
            (self.produto, None), (meia, None), (brinde, None), (self.produto, None),
            (bone, bone.variantes[0]), (meia, None),
        ]
        anterior = self.motor.calcular_totais(cupom, frete).subtotal
        for produto, variante in adicoes:
            self.motor.adicionar(produto, variante)
            atual = self.motor.calcular_totais(cupom, frete).subtotal
            self.assertGreaterEqual(atual, anterior)
            anterior = atual

        self.assertEqual(len(self.motor.itens), 4)
        for indice in (2, 0, 1, 0):
            self.motor.remover(indice)
            atual = self.motor.calcular_totais(cupom, frete).subtotal
            self.assertLessEqual(atual, anterior)
            anterior = atual

        self.assertTrue(self.motor.vazio)
        self.assertEqual(anterior, Decimal('0'))


# ====================================================================
# MÁQUINA DE ESTADOS DO CHECKOUT
# ====================================================================

class TestTransicoesCheckout(unittest.TestCase):

    def _ctx(self, **perfil):
        ctx = ContextoCheckout(loja=_perfil(**perfil))
        ctx.cliente.nome = 'Ana'
        ctx.cliente.telefone = '41999999999'
        ctx.cliente.cidade = 'Curitiba'
        ctx.cliente.estado = 'PR'
        return ctx

    def test_detalhes_incompletos_bloqueiam(self):
        ctx = self._ctx()
        ctx.cliente.estado = '  '
        with self.assertRaises(DadosInvalidosError):
            transicionar(EtapaCheckout.DETALHES, EventoCheckout.CONTINUAR, ctx)

    def test_retirada_pula_endereco_na_ida_e_na_volta(self):
        ctx = self._ctx()
        ctx.metodo_entrega = MetodoEntrega.RETIRADA

        self.assertEqual(transicionar(EtapaCheckout.ENTREGA, EventoCheckout.CONTINUAR, ctx), EtapaCheckout.PAGAMENTO)
        self.assertEqual(transicionar(EtapaCheckout.PAGAMENTO, EventoCheckout.VOLTAR, ctx), EtapaCheckout.ENTREGA)

    def test_entrega_local_passa_pelo_endereco(self):
        ctx = self._ctx()
        ctx.metodo_entrega = MetodoEntrega.ENTREGA_LOCAL

        self.assertEqual(transicionar(EtapaCheckout.ENTREGA, EventoCheckout.CONTINUAR, ctx), EtapaCheckout.ENDERECO)
        with self.assertRaises(DadosInvalidosError):
            transicionar(EtapaCheckout.ENDERECO, EventoCheckout.CONTINUAR, ctx)

    def test_cliente_de_outra_cidade_no_plano_business_so_tem_transportadora(self):
        ctx = self._ctx(plano=PlanoTipo.BUSINESS, cidade_loja='Curitiba')
        ctx.cliente.cidade = 'Recife'

        self.assertEqual(metodos_entrega_disponiveis(ctx), [MetodoEntrega.TRANSPORTADORA])
        with self.assertRaises(DadosInvalidosError) as erro:
            transicionar(EtapaCheckout.ENTREGA, EventoCheckout.CONTINUAR, ctx)
        self.assertEqual(erro.exception.message, "Selecione uma opção de frete.")

    def test_mesma_cidade_ignora_caixa_e_espacos(self):
        ctx = self._ctx(plano=PlanoTipo.BUSINESS, cidade_loja='Curitiba')
        ctx.cliente.cidade = '  curitiba '
        self.assertEqual(metodos_entrega_disponiveis(ctx), [MetodoEntrega.RETIRADA, MetodoEntrega.ENTREGA_LOCAL])

    def test_pagamento_automatico_vai_para_gateway(self):
        ctx = self._ctx(pagamento_automatico=True)
        with self.assertRaises(EtapaInvalidaError):
            transicionar(EtapaCheckout.PAGAMENTO, EventoCheckout.CONTINUAR, ctx)

        ctx.pedido = Pedido('Ana', '4199', '1x X', Decimal('10'), MetodoEntrega.RETIRADA)
        self.assertEqual(transicionar(EtapaCheckout.PAGAMENTO, EventoCheckout.CONTINUAR, ctx), EtapaCheckout.GATEWAY)
        with self.assertRaises(EtapaInvalidaError):
            transicionar(EtapaCheckout.GATEWAY, EventoCheckout.CONTINUAR, ctx)

    def test_sem_volta_depois_do_pedido(self):
        ctx = self._ctx()
        for etapa in (EtapaCheckout.DETALHES, EtapaCheckout.GATEWAY, EtapaCheckout.SUCESSO):
            with self.assertRaises(EtapaInvalidaError):
                transicionar(etapa, EventoCheckout.VOLTAR, ctx)


# ====================================================================
# CASO DE USO DO CHECKOUT
# ====================================================================

class TestFluxoCheckout(unittest.TestCase):

    def setUp(self):
        self.sessao = SessaoLoja('loja-1')
        self.produto = Produto(titulo='Camiseta', preco=Decimal('50.00'), estoque=5, id='p1',
                               variantes=[Variante('M', id='vm')])
        self.persistencia = PersistenciaMemoria(
            _perfil(), produtos=[self.produto], cupons=[Cupom('PROMO10', Decimal('10'))]
        )
        self.pagamento = Mock()
        self.whatsapp = Mock()
        self.whatsapp.montar_link.side_effect = lambda tel, msg: f"https://wa.me/{tel}"
        self.use_case = FluxoCheckoutUseCase(self.persistencia, self.pagamento, self.whatsapp)
        self.carrinho = MotorCarrinho('loja-1', CacheMemoria())
        self.carrinho.adicionar(self.produto, self.produto.variantes[0])

    def _ate_pagamento(self, perfil=None):
        ctx = self.use_case.iniciar(perfil or self.persistencia.perfil, self.carrinho)
        self.use_case.informar_detalhes(ctx, 'Ana', '41999999999', 'Curitiba', 'PR')
        self.use_case.escolher_entrega(ctx, 'pickup')
        self.use_case.continuar(ctx)
        return ctx

    def test_carrinho_vazio_nao_inicia(self):
        with self.assertRaises(CarrinhoVazioError):
            self.use_case.iniciar(self.persistencia.perfil, MotorCarrinho('loja-1'))

    def test_fluxo_manual_completo(self):
        ctx = self._ate_pagamento()
        self.assertEqual(ctx.etapa, EtapaCheckout.PAGAMENTO)

        pedido = self.use_case.finalizar(ctx, self.sessao, self.carrinho)

        self.assertEqual(ctx.etapa, EtapaCheckout.SUCESSO)
        self.assertEqual(pedido.status, StatusPedido.PENDENTE)
        self.assertEqual(pedido.resumo_itens, '1x Camiseta (M)')
        self.assertEqual(self.produto.estoque, 4)
        self.assertTrue(self.carrinho.vazio)
        self.assertEqual(self.use_case.link_whatsapp(ctx), 'https://wa.me/5541999990000')

    def test_pagamento_automatico_passa_pelo_gateway(self):
        self.persistencia.perfil.pagamento_automatico = True
        ctx = self._ate_pagamento()
        self.use_case.finalizar(ctx, self.sessao, self.carrinho)
        self.assertEqual(ctx.etapa, EtapaCheckout.GATEWAY)

        pedido = self.use_case.aprovar_pagamento(ctx, self.sessao, 'card')

        self.pagamento.aprovar.assert_called_once()
        self.assertEqual(pedido.status, StatusPedido.PAGO)
        self.assertEqual(pedido.metodo_pagamento, 'card')
        self.assertEqual(ctx.etapa, EtapaCheckout.SUCESSO)
        self.assertIn('pagamento APROVADO', self.use_case.mensagem_whatsapp(ctx))

    def test_cupom_invalido_remove_o_aplicado(self):
        ctx = self._ate_pagamento()
        self.use_case.aplicar_cupom(ctx, self.sessao, ' promo10 ')
        self.assertEqual(ctx.totais.desconto, Decimal('5.00'))

        with self.assertRaises(CupomInvalidoError):
            self.use_case.aplicar_cupom(ctx, self.sessao, 'NAOEXISTE')
        self.assertIsNone(ctx.cupom_aplicado)

    def test_business_fora_da_cidade_exige_frete_selecionado(self):
        perfil = _perfil(plano=PlanoTipo.BUSINESS, cidade_loja='Curitiba')
        ctx = self.use_case.iniciar(perfil, self.carrinho)
        self.use_case.informar_detalhes(ctx, 'Ana', '81999999999', 'Recife', 'PE')

        with self.assertRaises(DadosInvalidosError):
            self.use_case.escolher_entrega(ctx, 'pickup')
        with self.assertRaises(DadosInvalidosError):
            self.use_case.continuar(ctx)

        self.use_case.cotar_frete(ctx, '50000-001')
        with self.assertRaises(DadosInvalidosError):
            self.use_case.continuar(ctx)

        self.use_case.selecionar_frete(ctx, 'SEDEX (Correios)')
        self.use_case.continuar(ctx)
        self.assertEqual(ctx.etapa, EtapaCheckout.ENDERECO)

    def test_nova_cotacao_descarta_selecao(self):
        perfil = _perfil(plano=PlanoTipo.BUSINESS, cidade_loja='Curitiba')
        ctx = self.use_case.iniciar(perfil, self.carrinho)
        self.use_case.informar_detalhes(ctx, 'Ana', '81999999999', 'Recife', 'PE')
        self.use_case.cotar_frete(ctx, '50000001')
        self.use_case.selecionar_frete(ctx, 'PAC (Correios)')

        with self.assertRaises(CepInvalidoError):
            self.use_case.cotar_frete(ctx, '123')
        self.assertIsNone(ctx.frete_selecionado)
        self.assertTrue(ctx.erro_frete)

    def test_carrinho_abandonado_antes_e_depois_do_sucesso(self):
        """Fechar antes do Sucesso gera um registro; depois do Sucesso, nenhum."""
        ctx = self._ate_pagamento()
        self.use_case.fechar(ctx, self.sessao)
        self.assertEqual(len(self.persistencia.carrinhos), 1)

        self.use_case.finalizar(ctx, self.sessao, self.carrinho)
        self.use_case.fechar(ctx, self.sessao)
        self.assertEqual(len(self.persistencia.carrinhos), 1)

    def test_fechar_sem_contato_nao_registra(self):
        ctx = self.use_case.iniciar(self.persistencia.perfil, self.carrinho)
        self.assertIsNone(self.use_case.fechar(ctx, self.sessao))
        self.assertEqual(self.persistencia.carrinhos, [])

    def test_falha_ao_salvar_abandonado_nao_propaga(self):
        ctx = self._ate_pagamento()
        self.persistencia.salvar_carrinho_abandonado = Mock(side_effect=RuntimeError('offline'))
        self.assertIsNone(self.use_case.fechar(ctx, self.sessao))

    def test_payload_pix_usa_chave_padrao(self):
        ctx = self._ate_pagamento()
        payload = self.use_case.payload_pix(ctx)
        self.assertIn('test@pix.com', payload)
        self.assertIn('540550.00', payload)


# ====================================================================
# PAINEL
# ====================================================================

class TestPainel(unittest.TestCase):

    def setUp(self):
        self.sessao = SessaoLoja('loja-1', ator='Dono')
        self.persistencia = PersistenciaMemoria(_perfil())

    def _pedido(self):
        return Pedido('Ana', '4199', '1x X', Decimal('10'), MetodoEntrega.RETIRADA)

    def test_atualizacao_de_status_idempotente(self):
        pedido = self._pedido()
        self.persistencia.criar_pedido(self.sessao, pedido)
        use_case = GerenciarPedidosPainelUseCase(self.persistencia)

        use_case.atualizar_status(self.sessao, pedido.id, 'shipped')
        primeira = [(p.id, p.status) for p in self.persistencia.pedidos]
        use_case.atualizar_status(self.sessao, pedido.id, 'shipped')

        self.assertEqual([(p.id, p.status) for p in self.persistencia.pedidos], primeira)
        self.assertEqual(self.persistencia.atividades[-1][0], 'Dono')

    def test_status_desconhecido(self):
        with self.assertRaises(StatusInvalidoError):
            GerenciarPedidosPainelUseCase(self.persistencia).atualizar_status(self.sessao, 'x', 'lost')

    def test_limite_de_produtos_do_plano(self):
        produtos = [Produto(titulo=f'P{i}', preco=Decimal('1')) for i in range(11)]
        with self.assertRaises(LimitePlanoExcedidoError):
            GerenciarCatalogoUseCase(self.persistencia).salvar(self.sessao, Catalogo(produtos=produtos))

    def test_cupons_exigem_plano_com_o_recurso(self):
        catalogo = Catalogo(cupons=[Cupom('PROMO', Decimal('10'))])
        use_case = GerenciarCatalogoUseCase(self.persistencia)

        with self.assertRaises(RecursoForaDoPlanoError):
            use_case.salvar(self.sessao, catalogo)
        self.assertEqual(self.persistencia.cupons, [])

        self.persistencia.perfil.plano = PlanoTipo.BUSINESS
        use_case.salvar(self.sessao, catalogo)
        self.assertEqual(self.persistencia.cupons[0].codigo, 'PROMO')

    def test_pagamento_automatico_depende_do_plano(self):
        """
        ARRANGE: loja no plano Free.
        ACT: liga o pagamento automático, sobe para o Pro e depois volta ao Free.
        ASSERT: recusado no Free, aceito no Pro e desligado ao voltar ao Free.
        """
        use_case = GerenciarPerfilUseCase(self.persistencia)

        with self.assertRaises(RecursoForaDoPlanoError):
            use_case.atualizar(self.sessao, {'pagamento_automatico': True})
        self.assertFalse(self.persistencia.perfil.pagamento_automatico)

        perfil = use_case.atualizar(self.sessao, {'plano': 'PRO', 'pagamento_automatico': True})
        self.assertTrue(perfil.pagamento_automatico)

        perfil = use_case.atualizar(self.sessao, {'plano': 'FREE'})
        self.assertFalse(perfil.pagamento_automatico)

    def test_vitrine_filtra_inativos_e_busca(self):
        self.persistencia.produtos = [
            Produto(titulo='Anel', preco=Decimal('1'), id='a'),
            Produto(titulo='Colar', preco=Decimal('1'), ativo=False, id='b'),
            Produto(titulo='Brinco', preco=Decimal('1'), descricao='anel duplo', id='c'),
        ]
        vitrine = VitrinePublicaUseCase(self.persistencia).executar(self.sessao, busca='ANEL')
        self.assertEqual([p.id for p in vitrine.produtos], ['a', 'c'])

    def test_sincronizador_notifica_apenas_novos_pedidos(self):
        notificador = Mock()
        sincronizador = SincronizadorPainel(self.persistencia, self.sessao, notificador)
        sincronizador.carregar_inicial()

        pedido = self.persistencia.criar_pedido(self.sessao, self._pedido())
        resultado = sincronizador.tick()
        self.assertEqual(resultado.novo_pedido, pedido)
        notificador.notificar_novo_pedido.assert_called_once_with(pedido)
        notificador.tocar_alerta.assert_called_once()

        pedido.status = StatusPedido.PAGO
        resultado = sincronizador.tick()
        self.assertIsNone(resultado.novo_pedido)
        self.assertTrue(resultado.alterado)
        notificador.notificar_novo_pedido.assert_called_once()

    def test_auto_salvamento_grava_apenas_o_ultimo_pacote(self):
        timers = []

        def criar_timer(atraso, funcao):
            timer = Mock()
            timers.append((timer, funcao))
            return timer

        salvar = Mock()
        auto = AutoSalvamento(salvar, atraso=2.0, criar_timer=criar_timer)
        primeiro, segundo = Catalogo(), Catalogo(links=[])
        auto.agendar(self.sessao, primeiro)
        auto.agendar(self.sessao, segundo)

        timers[0][0].cancel.assert_called_once()
        self.assertTrue(timers[1][1]())
        salvar.assert_called_once_with(self.sessao, segundo)
        self.assertEqual(auto.status, AutoSalvamento.SALVO)
        self.assertFalse(auto.descarregar())

    def test_temporizador_antigo_nao_grava_o_pacote_novo(self):
        """Um disparo atrasado do primeiro temporizador não antecipa o salvamento do segundo pacote."""
        timers = []

        def criar_timer(atraso, funcao):
            timer = Mock()
            timers.append((timer, funcao))
            return timer

        salvar = Mock()
        auto = AutoSalvamento(salvar, atraso=2.0, criar_timer=criar_timer)
        auto.agendar(self.sessao, Catalogo())
        segundo = Catalogo(links=[])
        auto.agendar(self.sessao, segundo)

        self.assertFalse(timers[0][1]())
        salvar.assert_not_called()
        timers[1][0].cancel.assert_not_called()
        self.assertEqual(auto.status, AutoSalvamento.PENDENTE)

        self.assertTrue(timers[1][1]())
        salvar.assert_called_once_with(self.sessao, segundo)


if __name__ == '__main__':
    unittest.main()
