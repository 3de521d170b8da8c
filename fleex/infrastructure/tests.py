import copy
import io
import time
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import requests
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings

from fleex.core.entities import (
    SessaoLoja, PerfilLoja, PlanoTipo, Produto, ItemCarrinho, Pedido, MetodoEntrega, StatusPedido,
    CarrinhoAbandonado
)
from fleex.core.exceptions import (
    LojaNaoEncontradaError, PedidoNaoEncontradoError, CepNaoEncontradoError, RemotoIndisponivelError
)
from fleex.core.frete import CotadorFrete
from fleex.infrastructure.gateways import WhatsAppLinkGateway, QRCodeGateway, NotificadorTerminal
from fleex.infrastructure.mappers import PedidoMapper
from fleex.infrastructure.models import Loja, RegistroLocal
from fleex.infrastructure.repositories import (
    ArmazenamentoLocalDjango, ArmazenamentoFirebase, ArmazenamentoResiliente, PersistenciaLojaDjango,
    LojaRepositoryDjango
)


def _remoto_falho(configurado=True, erro=None, atraso=None):
    remoto = Mock(spec=ArmazenamentoFirebase)
    remoto.configurado = configurado

    def ler(sessao, colecao):
        if atraso:
            time.sleep(atraso)
            return [{'id': 'remoto'}]
        raise erro

    remoto.ler.side_effect = ler
    remoto.gravar.side_effect = erro
    return remoto


class RemotoIntermitente:
    """Remoto em memória que pode ser desligado e religado."""

    configurado = True

    def __init__(self):
        self.online = True
        self.dados = {}

    def _verificar(self):
        if not self.online:
            raise RemotoIndisponivelError("offline")

    def ler(self, sessao, colecao):
        self._verificar()
        return copy.deepcopy(self.dados.get((sessao.loja_id, colecao)))

    def gravar(self, sessao, colecao, valor):
        self._verificar()
        self.dados[(sessao.loja_id, colecao)] = copy.deepcopy(valor)

    def verificar_conexao(self):
        self._verificar()
        return True


class ArmazenamentoResilienteTest(TestCase):

    def setUp(self):
        self.sessao = SessaoLoja('loja-1')
        self.local = ArmazenamentoLocalDjango()
        # Cópia local já sincronizada com o remoto
        RegistroLocal.objects.create(loja_id='loja-1', colecao='links', dados=[{'id': 'local'}])

    def test_falha_remota_usa_copia_local(self):
        remoto = _remoto_falho(erro=RemotoIndisponivelError("offline"))
        armazenamento = ArmazenamentoResiliente(self.local, remoto, timeout=1)

        with self.assertLogs('fleex.infrastructure.repositories', level='WARNING'):
            valor = armazenamento.ler(self.sessao, 'links')

        self.assertEqual(valor, [{'id': 'local'}])

    def test_timeout_remoto_usa_copia_local(self):
        remoto = _remoto_falho(atraso=0.5)
        armazenamento = ArmazenamentoResiliente(self.local, remoto, timeout=0.05)

        inicio = time.monotonic()
        valor = armazenamento.ler(self.sessao, 'links')

        self.assertEqual(valor, [{'id': 'local'}])
        self.assertLess(time.monotonic() - inicio, 0.4)

    def test_leitura_remota_e_espelhada_no_local(self):
        remoto = Mock(spec=ArmazenamentoFirebase)
        remoto.configurado = True
        remoto.ler.return_value = [{'id': 'remoto'}]
        armazenamento = ArmazenamentoResiliente(self.local, remoto, timeout=1)

        self.assertEqual(armazenamento.ler(self.sessao, 'links'), [{'id': 'remoto'}])
        self.assertEqual(self.local.ler(self.sessao, 'links'), [{'id': 'remoto'}])

    def test_gravacao_local_mesmo_com_remoto_falhando(self):
        remoto = _remoto_falho(erro=RemotoIndisponivelError("offline"))
        armazenamento = ArmazenamentoResiliente(self.local, remoto, timeout=1)

        armazenamento.gravar(self.sessao, 'links', [{'id': 'novo'}])

        registro = RegistroLocal.objects.get(loja_id='loja-1', colecao='links')
        self.assertEqual(registro.dados, [{'id': 'novo'}])
        self.assertTrue(registro.pendente)

    def test_gravacao_pendente_prevalece_e_e_reenviada(self):
        """
        ARRANGE: gravação feita com o remoto fora do ar; o remoto guarda um valor antigo.
        ACT: o remoto volta e a coleção é lida.
        ASSERT: vale a cópia local, que é enviada ao remoto e deixa de estar pendente.
        """
        remoto = RemotoIntermitente()
        remoto.gravar(self.sessao, 'links', [{'id': 'antigo'}])
        armazenamento = ArmazenamentoResiliente(self.local, remoto, timeout=1)

        remoto.online = False
        with self.assertLogs('fleex.infrastructure.repositories', level='WARNING'):
            armazenamento.gravar(self.sessao, 'links', [{'id': 'offline'}])
        remoto.online = True

        self.assertEqual(armazenamento.ler(self.sessao, 'links'), [{'id': 'offline'}])
        self.assertEqual(remoto.ler(self.sessao, 'links'), [{'id': 'offline'}])
        self.assertFalse(RegistroLocal.objects.get(loja_id='loja-1', colecao='links').pendente)

    def test_confirmacao_de_versao_antiga_mantem_pendencia(self):
        versao = self.local.gravar(self.sessao, 'links', [{'id': 'v1'}])
        self.local.gravar(self.sessao, 'links', [{'id': 'v2'}])

        self.local.confirmar_sincronizacao(self.sessao, 'links', versao)

        self.assertEqual(self.local.versao_pendente(self.sessao, 'links'), versao + 1)

    def test_remoto_nao_configurado_nao_faz_requisicao(self):
        http = Mock()
        remoto = ArmazenamentoFirebase('', http=http)
        armazenamento = ArmazenamentoResiliente(self.local, remoto)

        self.assertEqual(armazenamento.ler(self.sessao, 'links'), [{'id': 'local'}])
        self.assertFalse(armazenamento.verificar_conexao())
        http.request.assert_not_called()


class RemotoIntermitenteTest(TestCase):
    """Pedidos e baixas de estoque gravados com o remoto fora do ar sobrevivem à volta dele."""

    def setUp(self):
        self.sessao = SessaoLoja('loja-1', ator='Dono')
        self.remoto = RemotoIntermitente()
        armazenamento = ArmazenamentoResiliente(ArmazenamentoLocalDjango(), self.remoto, timeout=1)
        self.persistencia = PersistenciaLojaDjango(armazenamento, cotador=CotadorFrete(latencia=0))
        self.produto = Produto(titulo='Camiseta', preco=Decimal('50.00'), estoque=5, id='p1')
        self.persistencia.salvar_produtos(self.sessao, [self.produto])

    def _pedido(self, pedido_id):
        return Pedido('Ana', '4199', '1x Camiseta', Decimal('50.00'), MetodoEntrega.RETIRADA, id=pedido_id)

    def test_pedido_gravado_offline_nao_se_perde(self):
        self.persistencia.criar_pedido(self.sessao, self._pedido('A'))

        self.remoto.online = False
        with self.assertLogs('fleex.infrastructure.repositories', level='WARNING'):
            self.persistencia.criar_pedido(self.sessao, self._pedido('B'))

        self.remoto.online = True
        listados = [p.id for p in self.persistencia.listar_pedidos(self.sessao)]
        self.persistencia.criar_pedido(self.sessao, self._pedido('C'))

        self.assertCountEqual(listados, ['A', 'B'])
        ids = [p.id for p in self.persistencia.listar_pedidos(self.sessao)]
        self.assertCountEqual(ids, ['A', 'B', 'C'])
        remotos = [d['id'] for d in self.remoto.dados[('loja-1', 'pedidos')]]
        self.assertCountEqual(remotos, ['A', 'B', 'C'])

    def test_baixa_de_estoque_offline_nao_e_desfeita(self):
        self.remoto.online = False
        with self.assertLogs('fleex.infrastructure.repositories', level='WARNING'):
            self.persistencia.baixar_estoque(self.sessao, 'pedido-1', [ItemCarrinho(self.produto, 2)])

        self.remoto.online = True
        self.assertEqual(self.persistencia.obter_produtos(self.sessao)[0].estoque, 3)

        self.persistencia.baixar_estoque(self.sessao, 'pedido-1', [ItemCarrinho(self.produto, 2)])
        self.assertEqual(self.persistencia.obter_produtos(self.sessao)[0].estoque, 3)
        self.assertEqual(self.remoto.dados[('loja-1', 'produtos')][0]['estoque'], 3)


class ArmazenamentoFirebaseTest(TestCase):

    def test_url_e_token(self):
        http = Mock()
        http.request.return_value.json.return_value = {'a': 1}
        remoto = ArmazenamentoFirebase('https://exemplo.firebaseio.com/', token='segredo', timeout=2.5, http=http)

        self.assertEqual(remoto.ler(SessaoLoja('loja-9'), 'pedidos'), {'a': 1})
        http.request.assert_called_once_with(
            'GET', 'https://exemplo.firebaseio.com/lojas/loja-9/pedidos.json',
            timeout=2.5, params={'auth': 'segredo'}
        )

    def test_erro_http_vira_remoto_indisponivel(self):
        http = Mock()
        http.request.side_effect = requests.exceptions.ConnectionError('sem rede')
        remoto = ArmazenamentoFirebase('https://exemplo.firebaseio.com', http=http)

        with self.assertRaises(RemotoIndisponivelError):
            remoto.gravar(SessaoLoja('loja-9'), 'pedidos', [])


@override_settings(FLEEX_REMOTO_URL='')
class PersistenciaLojaTest(TestCase):

    def setUp(self):
        self.sessao = SessaoLoja('loja-1', ator='Dono')
        armazenamento = ArmazenamentoResiliente(ArmazenamentoLocalDjango(), ArmazenamentoFirebase(''))
        self.persistencia = PersistenciaLojaDjango(armazenamento, cotador=CotadorFrete(latencia=0))
        self.persistencia.criar_perfil(self.sessao, PerfilLoja(id='loja-1', nome='Loja', slug='loja'))
        self.produto = Produto(titulo='Camiseta', preco=Decimal('50.00'), estoque=3, id='p1')
        self.persistencia.salvar_produtos(self.sessao, [self.produto])

    def _pedido(self, **kwargs):
        return Pedido('Ana', '4199', '1x Camiseta', Decimal('50.00'), MetodoEntrega.RETIRADA, **kwargs)

    def test_baixa_de_estoque_uma_vez_por_pedido(self):
        itens = [ItemCarrinho(self.produto, 2)]

        self.persistencia.baixar_estoque(self.sessao, 'pedido-1', itens)
        self.persistencia.baixar_estoque(self.sessao, 'pedido-1', itens)

        produto = self.persistencia.obter_produtos(self.sessao)[0]
        self.assertEqual(produto.estoque, 1)
        self.assertEqual(produto.vendas, 2)

    def test_baixa_de_estoque_tem_piso_zero(self):
        with self.assertLogs('fleex.infrastructure.repositories', level='WARNING'):
            self.persistencia.baixar_estoque(self.sessao, 'pedido-2', [ItemCarrinho(self.produto, 5)])
        self.assertEqual(self.persistencia.obter_produtos(self.sessao)[0].estoque, 0)

    def test_atualizacao_de_status_idempotente(self):
        pedido = self.persistencia.criar_pedido(self.sessao, self._pedido())
        alteracoes = {'status': StatusPedido.PAGO.value, 'metodo_pagamento': 'pix'}

        primeira = self.persistencia.atualizar_status_pedido(self.sessao, pedido.id, alteracoes)
        segunda = self.persistencia.atualizar_status_pedido(self.sessao, pedido.id, alteracoes)

        self.assertEqual(primeira, segunda)
        self.assertEqual(segunda[0].status, StatusPedido.PAGO)

    def test_status_de_pedido_inexistente(self):
        with self.assertRaises(PedidoNaoEncontradoError):
            self.persistencia.atualizar_status_pedido(self.sessao, 'nao-existe', {'status': 'paid'})

    def test_pedidos_do_mais_recente_para_o_mais_antigo(self):
        antigo = self.persistencia.criar_pedido(self.sessao, self._pedido(data=datetime(2024, 1, 1, tzinfo=timezone.utc)))
        recente = self.persistencia.criar_pedido(self.sessao, self._pedido(data=datetime(2024, 1, 2, tzinfo=timezone.utc)))
        self.assertEqual([p.id for p in self.persistencia.listar_pedidos(self.sessao)], [recente.id, antigo.id])

    def test_log_de_atividades_guarda_os_50_mais_recentes(self):
        for i in range(55):
            self.persistencia.registrar_atividade(self.sessao, 'Dono', f'Ação {i}')

        atividades = self.persistencia.obter_perfil(self.sessao).atividades
        self.assertEqual(len(atividades), 50)
        self.assertEqual(atividades[0].acao, 'Ação 54')

    def test_carrinho_abandonado_gravado(self):
        carrinho = CarrinhoAbandonado('Ana', '4199', [ItemCarrinho(self.produto, 1)], Decimal('50.00'))
        self.persistencia.salvar_carrinho_abandonado(self.sessao, carrinho)

        salvos = self.persistencia.obter_carrinhos_abandonados(self.sessao)
        self.assertEqual(len(salvos), 1)
        self.assertEqual(salvos[0].itens[0].produto.titulo, 'Camiseta')

    def test_frete_pela_persistencia(self):
        with self.assertRaises(CepNaoEncontradoError):
            self.persistencia.calcular_frete('00000-000')

    def test_perfil_atualizado_preserva_os_demais_campos(self):
        perfil = self.persistencia.atualizar_perfil(self.sessao, {'plano': 'BUSINESS', 'cidade_loja': 'Curitiba'})
        self.assertEqual(perfil.plano, PlanoTipo.BUSINESS)
        self.assertEqual(perfil.nome, 'Loja')


class PedidoMapperTest(TestCase):

    def test_documento_json_do_pedido(self):
        pedido = Pedido('Ana', '4199', '1x X', Decimal('68.00'), MetodoEntrega.TRANSPORTADORA,
                        servico_frete='PAC (Correios)', custo_frete=Decimal('18.00'))
        dados = PedidoMapper.to_dict(pedido)

        self.assertEqual(dados['total'], '68.00')
        self.assertEqual(dados['metodo_entrega'], 'shipping')
        self.assertEqual(PedidoMapper.from_dict(dados), pedido)


class GatewaysTest(TestCase):

    def test_link_whatsapp_codifica_a_mensagem(self):
        link = WhatsAppLinkGateway('https://wa.me/').montar_link('+55 (41) 99999-0000', 'Olá *Loja*\nTotal: R$ 10')
        self.assertEqual(link, 'https://wa.me/5541999990000?text=Ol%C3%A1%20%2ALoja%2A%0ATotal%3A%20R%24%2010')

    def test_url_do_qrcode(self):
        url = QRCodeGateway('https://api.qrserver.com/v1/create-qr-code/').url_imagem('000201')
        self.assertEqual(url, 'https://api.qrserver.com/v1/create-qr-code/?size=300x300&data=000201')

    def test_notificador_terminal(self):
        saida = io.StringIO()
        notificador = NotificadorTerminal(saida=saida)
        pedido = Pedido('Ana', '4199', '1x X', Decimal('10'), MetodoEntrega.RETIRADA, id='abc-1234')

        notificador.notificar_novo_pedido(pedido)
        notificador.tocar_alerta()

        self.assertIn('#1234', saida.getvalue())
        self.assertTrue(saida.getvalue().endswith('\a'))


@override_settings(FLEEX_REMOTO_URL='')
class LojaRepositoryTest(TestCase):

    def test_criar_loja_pelo_comando(self):
        saida = io.StringIO()
        call_command('criar_loja', 'Moda Sul', '--usuario', 'ana', '--senha', 'segredo123',
                     '--plano', 'BUSINESS', '--cidade', 'Curitiba', stdout=saida)

        loja = Loja.objects.get(slug='moda-sul')
        self.assertEqual(loja.dono.username, 'ana')

        repo = LojaRepositoryDjango()
        sessao = repo.sessao_por_slug('moda-sul')
        self.assertEqual(sessao.loja_id, loja.id)
        self.assertEqual(repo.sessao_do_dono(loja.dono).loja_id, loja.id)

        armazenamento = ArmazenamentoResiliente(ArmazenamentoLocalDjango(), ArmazenamentoFirebase(''))
        perfil = PersistenciaLojaDjango(armazenamento).obter_perfil(sessao)
        self.assertEqual(perfil.plano, PlanoTipo.BUSINESS)
        self.assertEqual(perfil.atividades[0].acao, 'Conta Criada')

    def test_slug_inexistente(self):
        with self.assertRaises(LojaNaoEncontradaError):
            LojaRepositoryDjango().sessao_por_slug('nao-existe')

    def test_dono_sem_loja(self):
        usuario = get_user_model().objects.create_user('sem-loja', password='x')
        with self.assertRaises(LojaNaoEncontradaError):
            LojaRepositoryDjango().sessao_do_dono(usuario)
