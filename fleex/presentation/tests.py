from decimal import Decimal

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from fleex.core import dependency_injection as di
from fleex.core.entities import (
    SessaoLoja, PlanoTipo, Produto, Variante, Link, Cupom, Pedido, MetodoEntrega
)
from fleex.infrastructure.instances import get_persistencia
from fleex.infrastructure.models import Loja, RegistroLocal


# ====================================================================
# Configuração comum: sem remoto e sem atrasos simulados
# ====================================================================

CONFIG_TESTES = dict(
    FLEEX_REMOTO_URL='',
    FLEEX_FRETE_LATENCIA=0,
    FLEEX_PAGAMENTO_LATENCIA=0,
    FLEEX_AUTOSAVE_ATRASO=60,
)


def criar_loja(slug, plano=PlanoTipo.FREE, usuario=None, **campos):
    """Cria dono, loja e perfil; devolve (dono, sessao)."""
    dono = get_user_model().objects.create_user(usuario or slug, password='senha-forte-123')
    perfil = di.loja_repo.criar(
        slug=slug, nome=slug.title(), dono=dono, persistencia=get_persistencia(), plano=plano, **campos
    )
    return dono, SessaoLoja(perfil.id)


@override_settings(**CONFIG_TESTES)
class VitrineCarrinhoAPITest(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.dono, self.sessao = criar_loja('moda', cidade_loja='Curitiba', estado_loja='PR')
        persistencia = get_persistencia()
        persistencia.salvar_produtos(self.sessao, [
            Produto('Camiseta', Decimal('50.00'), estoque=1, id='p1'),
            Produto('Boné', Decimal('30.00'), estoque=5, id='p2',
                    variantes=[Variante('Azul', id='azul'), Variante('Preto', id='preto')]),
            Produto('Fora de linha', Decimal('10.00'), estoque=5, ativo=False, id='p3'),
        ])
        persistencia.salvar_links(self.sessao, [
            Link('Instagram', 'https://instagram.com/moda'),
            Link('Antigo', 'https://exemplo.com', ativo=False),
        ])

    def _carrinho(self, **dados):
        return self.client.post('/api/lojas/moda/carrinho/', dados, format='json')

    def test_vitrine_mostra_apenas_itens_ativos(self):
        resposta = self.client.get('/api/lojas/moda/')

        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in resposta.data['produtos']], ['p1', 'p2'])
        self.assertEqual([link['titulo'] for link in resposta.data['links']], ['Instagram'])
        self.assertIn('api.qrserver.com', resposta.data['compartilhar']['qrcode_url'])
        self.assertIsNone(resposta.data['produto_destaque'])

    def test_link_direto_do_produto(self):
        resposta = self.client.get('/api/lojas/moda/', {'produto': 'p2'})

        destaque = resposta.data['produto_destaque']
        self.assertEqual(destaque['produto']['titulo'], 'Boné')
        self.assertTrue(destaque['url_compartilhamento'].endswith('/api/lojas/moda/?produto=p2'))

        resposta = self.client.get('/api/lojas/moda/', {'produto': 'p3'})
        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)

    def test_loja_inexistente(self):
        resposta = self.client.get('/api/lojas/nao-existe/')

        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resposta.data['tipo'], 'LojaNaoEncontradaError')

    def test_estoque_insuficiente_retorna_409(self):
        self.assertEqual(self._carrinho(acao='adicionar', produto_id='p1').status_code, status.HTTP_200_OK)

        resposta = self._carrinho(acao='adicionar', produto_id='p1')

        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resposta.data['tipo'], 'EstoqueInsuficienteError')
        self.assertEqual(self.client.get('/api/lojas/moda/carrinho/').data['quantidade_total'], 1)

    def test_produto_com_variacoes_exige_selecao(self):
        resposta = self._carrinho(acao='adicionar', produto_id='p2')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['erro'], 'Por favor, selecione uma opção.')

        self._carrinho(acao='adicionar', produto_id='p2', variante_id='azul')
        resposta = self._carrinho(acao='adicionar', produto_id='p2', variante_id='preto')

        self.assertEqual(len(resposta.data['itens']), 2)
        self.assertEqual(resposta.data['totais']['subtotal'], '60.00')

    def test_quantidade_e_remocao(self):
        self._carrinho(acao='adicionar', produto_id='p2', variante_id='azul')

        resposta = self._carrinho(acao='quantidade', indice=0, delta=1)
        self.assertTrue(resposta.data['alterado'])
        self.assertEqual(resposta.data['itens'][0]['quantidade'], 2)

        resposta = self._carrinho(acao='quantidade', indice=0, delta=-1)
        resposta = self._carrinho(acao='quantidade', indice=0, delta=-1)
        self.assertFalse(resposta.data['alterado'])
        self.assertEqual(resposta.data['itens'][0]['quantidade'], 1)

        resposta = self._carrinho(acao='remover', indice=0)
        self.assertEqual(resposta.data['itens'], [])

        resposta = self._carrinho(acao='remover', indice=0)
        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)

    def test_nova_visita_oferece_restaurar_carrinho(self):
        self._carrinho(acao='adicionar', produto_id='p1')

        vitrine = self.client.get('/api/lojas/moda/')
        self.assertEqual(vitrine.data['carrinho']['itens'], [])
        self.assertEqual(len(vitrine.data['carrinho']['oferta_restauracao']), 1)

        resposta = self._carrinho(acao='restaurar')
        self.assertEqual(resposta.data['itens'][0]['produto_id'], 'p1')
        self.assertIsNone(resposta.data['oferta_restauracao'])

    def test_descartar_oferta_limpa_carrinho_salvo(self):
        self._carrinho(acao='adicionar', produto_id='p1')
        self.client.get('/api/lojas/moda/')

        self._carrinho(acao='descartar')

        vitrine = self.client.get('/api/lojas/moda/')
        self.assertIsNone(vitrine.data['carrinho']['oferta_restauracao'])

    def test_carrinhos_de_lojas_diferentes_sao_separados(self):
        criar_loja('outra')
        self._carrinho(acao='adicionar', produto_id='p1')

        resposta = self.client.get('/api/lojas/outra/carrinho/')

        self.assertEqual(resposta.data['itens'], [])

    def test_frete_por_cep(self):
        resposta = self.client.get('/api/lojas/moda/frete/', {'cep': '80000-001'})
        self.assertEqual(len(resposta.data['opcoes']), 3)

        resposta = self.client.get('/api/lojas/moda/frete/', {'cep': '123'})
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'CepInvalidoError')

    def test_status_sem_remoto(self):
        resposta = self.client.get('/api/status/')

        self.assertEqual(resposta.data, {'online': False})


@override_settings(**CONFIG_TESTES)
class CheckoutAPITest(TestCase):

    def setUp(self):
        self.client = APIClient()

    def _preparar(self, slug, plano, **campos):
        dono, sessao = criar_loja(slug, plano=plano, cidade_loja='Curitiba', estado_loja='PR',
                                  telefone='(41) 99999-0000', **campos)
        persistencia = get_persistencia()
        persistencia.salvar_produtos(sessao, [Produto('Camiseta', Decimal('50.00'), estoque=3, id='p1')])
        persistencia.salvar_cupons(sessao, [Cupom('DESC10', Decimal('10'))])
        self.base = f'/api/lojas/{slug}/'
        self.client.post(self.base + 'carrinho/', {'acao': 'adicionar', 'produto_id': 'p1'}, format='json')
        return dono, sessao

    def _checkout(self, acao, **dados):
        return self.client.post(self.base + 'checkout/', dict(acao=acao, **dados), format='json')

    def test_retirada_local_sem_pagamento_automatico(self):
        """
        ARRANGE: loja Free em Curitiba, cliente local.
        ACT: percorre Detalhes → Entrega (retirada) → Pagamento → finaliza.
        ASSERT: pula o endereço e o gateway; pedido pendente gravado e estoque baixado.
        """
        dono, sessao = self._preparar('local', PlanoTipo.FREE)

        self.assertEqual(self._checkout('iniciar').status_code, status.HTTP_201_CREATED)
        resposta = self._checkout('detalhes', nome='Ana', telefone='41988887777', cidade='curitiba ', estado='PR')
        self.assertEqual(resposta.data['etapa'], 'delivery')
        self.assertEqual(resposta.data['metodos_disponiveis'], ['pickup', 'delivery'])

        resposta = self._checkout('entrega', metodo='pickup')
        self.assertEqual(resposta.data['etapa'], 'payment')

        resposta = self._checkout('cupom', codigo='naoexiste')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'CupomInvalidoError')

        resposta = self._checkout('cupom', codigo='desc10')
        self.assertEqual(resposta.data['cupom_aplicado'], 'DESC10')
        self.assertEqual(resposta.data['totais']['total'], '45.00')

        resposta = self._checkout('finalizar')
        self.assertEqual(resposta.data['etapa'], 'success')
        self.assertEqual(resposta.data['pedido']['status'], 'pending')
        self.assertEqual(resposta.data['pedido']['total'], '45.00')

        self.assertEqual(get_persistencia().obter_produtos(sessao)[0].estoque, 2)
        self.assertEqual(self.client.get(self.base + 'carrinho/').data['itens'], [])

        resposta = self.client.get(self.base + 'checkout/whatsapp/')
        self.assertTrue(resposta.data['url'].startswith('https://wa.me/41999990000?text='))
        self.assertIn('Retirada na Loja', resposta.data['mensagem'])

    def test_envio_por_transportadora_com_pagamento_automatico(self):
        self._preparar('business', PlanoTipo.BUSINESS, pagamento_automatico=True)

        self._checkout('iniciar')
        resposta = self._checkout('detalhes', nome='Bia', telefone='81977776666', cidade='Recife', estado='PE')
        self.assertEqual(resposta.data['metodos_disponiveis'], ['shipping'])

        resposta = self._checkout('entrega')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['erro'], 'Selecione uma opção de frete.')

        resposta = self._checkout('cotar_frete', cep='00000-000')
        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(self.base + 'checkout/').data['erro_frete'], 'CEP não encontrado.')

        resposta = self._checkout('cotar_frete', cep='50000001')
        self.assertEqual(len(resposta.data['opcoes_frete']), 3)
        self.assertEqual(resposta.data['erro_frete'], '')

        resposta = self._checkout('selecionar_frete', servico='PAC (Correios)')
        self.assertEqual(resposta.data['totais']['frete'], '19.00')

        self.assertEqual(self._checkout('entrega').data['etapa'], 'address')
        self.assertEqual(self._checkout('endereco', endereco='').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._checkout('endereco', endereco='Rua A, 10').data['etapa'], 'payment')

        pix = self.client.get(self.base + 'checkout/pix/')
        self.assertTrue(pix.data['payload'].startswith('000201'))
        self.assertEqual(pix.data['total'], '69.00')

        resposta = self._checkout('finalizar')
        self.assertEqual(resposta.data['etapa'], 'gateway')

        whatsapp = self.client.get(self.base + 'checkout/whatsapp/')
        self.assertEqual(whatsapp.status_code, status.HTTP_400_BAD_REQUEST)

        resposta = self._checkout('aprovar_pagamento', metodo_pagamento='card')
        self.assertEqual(resposta.data['etapa'], 'success')
        self.assertEqual(resposta.data['pedido']['status'], 'paid')
        self.assertEqual(resposta.data['pedido']['metodo_pagamento'], 'card')

        mensagem = self.client.get(self.base + 'checkout/whatsapp/').data['mensagem']
        self.assertIn('pagamento APROVADO', mensagem)
        self.assertIn('Envio via PAC (Correios)', mensagem)
        self.assertIn('Rua A, 10', mensagem)

    def test_voltar_respeita_etapas_puladas(self):
        self._preparar('voltar', PlanoTipo.FREE)
        self._checkout('iniciar')
        self._checkout('detalhes', nome='Ana', telefone='41988887777', cidade='Curitiba', estado='PR')
        self._checkout('entrega', metodo='pickup')

        self.assertEqual(self._checkout('voltar').data['etapa'], 'delivery')
        self.assertEqual(self._checkout('voltar').data['etapa'], 'details')
        self.assertEqual(self._checkout('voltar').status_code, status.HTTP_400_BAD_REQUEST)

    def test_fechar_registra_carrinho_abandonado(self):
        _, sessao = self._preparar('abandono', PlanoTipo.BUSINESS)
        self._checkout('iniciar')
        self._checkout('detalhes', nome='Caio', telefone='41911112222', cidade='Curitiba', estado='PR')

        resposta = self._checkout('fechar')

        self.assertTrue(resposta.data['carrinho_abandonado'])
        carrinhos = get_persistencia().obter_carrinhos_abandonados(sessao)
        self.assertEqual(carrinhos[0].nome_cliente, 'Caio')
        self.assertEqual(carrinhos[0].total, Decimal('50.00'))
        self.assertEqual(self.client.get(self.base + 'checkout/').data, {'etapa': None})

    def test_fechar_sem_contato_nao_registra(self):
        _, sessao = self._preparar('sem-contato', PlanoTipo.BUSINESS)
        self._checkout('iniciar')

        self.assertFalse(self._checkout('fechar').data['carrinho_abandonado'])
        self.assertEqual(get_persistencia().obter_carrinhos_abandonados(sessao), [])

    def test_checkout_com_carrinho_vazio(self):
        criar_loja('vazia')
        self.base = '/api/lojas/vazia/'

        resposta = self._checkout('iniciar')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'CarrinhoVazioError')

    def test_acao_sem_checkout_em_andamento(self):
        self._preparar('sem-checkout', PlanoTipo.FREE)

        resposta = self._checkout('voltar')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'EtapaInvalidaError')


@override_settings(**CONFIG_TESTES)
class PainelAPITest(TestCase):

    def setUp(self):
        self.dono, self.sessao = criar_loja('painel', plano=PlanoTipo.PROFESSIONAL)
        self.client = APIClient()
        self.client.force_authenticate(self.dono)

    def _novo_pedido(self, nome='Ana'):
        return get_persistencia().criar_pedido(
            self.sessao, Pedido(nome, '4199', '1x Camiseta', Decimal('50.00'), MetodoEntrega.RETIRADA)
        )

    def test_painel_exige_autenticacao(self):
        resposta = APIClient().get('/api/painel/perfil/')

        self.assertEqual(resposta.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_jwt(self):
        cliente = APIClient()
        token = cliente.post('/api/token/', {'username': 'painel', 'password': 'senha-forte-123'}, format='json')
        self.assertEqual(token.status_code, status.HTTP_200_OK)

        cliente.credentials(HTTP_AUTHORIZATION=f"Bearer {token.data['access']}")
        resposta = cliente.get('/api/painel/perfil/')

        self.assertEqual(resposta.data['slug'], 'painel')

    def test_usuario_sem_loja(self):
        cliente = APIClient()
        cliente.force_authenticate(get_user_model().objects.create_user('visitante', password='x'))

        self.assertEqual(cliente.get('/api/painel/perfil/').status_code, status.HTTP_404_NOT_FOUND)

    def test_atualizar_perfil_registra_atividade(self):
        resposta = self.client.patch('/api/painel/perfil/', {'chave_pix': 'loja@pix.com'}, format='json')
        self.assertEqual(resposta.data['chave_pix'], 'loja@pix.com')

        atividades = self.client.get('/api/painel/atividades/').data
        self.assertTrue(atividades['recurso_disponivel'])
        self.assertEqual(atividades['atividades'][0]['acao'], 'Atualização de Configurações')
        self.assertEqual(atividades['atividades'][-1]['acao'], 'Conta Criada')

    def test_salvar_catalogo_imediatamente(self):
        catalogo = {
            'links': [{'titulo': 'Site', 'url': 'https://site.com'}],
            'categorias': [{'id': 'cat', 'nome': 'Roupas'}],
            'produtos': [{'titulo': 'Saia', 'preco': '80.00', 'estoque': 2, 'categoria_id': 'cat'}],
            'cupons': [{'codigo': 'promo', 'percentual_desconto': '15'}],
        }

        resposta = self.client.put('/api/painel/catalogo/?imediato=1', catalogo, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        salvo = self.client.get('/api/painel/catalogo/').data
        self.assertEqual(salvo['produtos'][0]['titulo'], 'Saia')
        self.assertEqual(salvo['cupons'][0]['codigo'], 'PROMO')
        self.assertTrue(salvo['links'][0]['id'])

    def test_catalogo_respeita_limite_do_plano(self):
        _, sessao = criar_loja('gratis', usuario='dono-gratis')
        cliente = APIClient()
        cliente.force_authenticate(get_user_model().objects.get(username='dono-gratis'))
        produtos = [{'titulo': f'P{i}', 'preco': '1.00'} for i in range(11)]

        resposta = cliente.put('/api/painel/catalogo/?imediato=1', {'produtos': produtos}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'LimitePlanoExcedidoError')
        self.assertEqual(get_persistencia().obter_produtos(sessao), [])

    def test_recursos_do_plano_no_perfil(self):
        resposta = self.client.get('/api/painel/perfil/')

        recursos = resposta.data['recursos_plano']
        self.assertEqual(recursos['nome'], 'Profissional')
        self.assertEqual(recursos['taxa_venda_percentual'], 0)
        self.assertTrue(recursos['equipe'])
        self.assertTrue(recursos['cupons'])

    def test_plano_free_bloqueia_cupons_e_pagamento_automatico(self):
        _, sessao = criar_loja('gratis', usuario='dono-gratis')
        cliente = APIClient()
        cliente.force_authenticate(get_user_model().objects.get(username='dono-gratis'))

        perfil = cliente.get('/api/painel/perfil/').data
        self.assertEqual(perfil['recursos_plano']['taxa_venda_percentual'], 10)
        self.assertFalse(perfil['recursos_plano']['cupons'])

        resposta = cliente.patch('/api/painel/perfil/', {'pagamento_automatico': True}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'RecursoForaDoPlanoError')

        resposta = cliente.put(
            '/api/painel/catalogo/?imediato=1',
            {'cupons': [{'codigo': 'promo', 'percentual_desconto': '15'}]}, format='json'
        )
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['tipo'], 'RecursoForaDoPlanoError')
        self.assertEqual(get_persistencia().obter_cupons(sessao), [])

    def test_catalogo_agrupado_pelo_auto_salvamento(self):
        resposta = self.client.put(
            '/api/painel/catalogo/', {'produtos': [{'titulo': 'Saia', 'preco': '80.00'}]}, format='json'
        )
        self.assertEqual(resposta.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(resposta.data['status'], 'pendente')
        self.assertEqual(get_persistencia().obter_produtos(self.sessao), [])

        auto_salvamento = di.get_auto_salvamento(self.sessao)
        self.assertTrue(auto_salvamento.descarregar())
        self.assertEqual(get_persistencia().obter_produtos(self.sessao)[0].titulo, 'Saia')

    def test_atualizar_status_do_pedido(self):
        pedido = self._novo_pedido()

        resposta = self.client.patch(
            f'/api/painel/pedidos/{pedido.id}/', {'status': 'shipped', 'codigo_rastreio': 'BR123'}, format='json'
        )

        self.assertEqual(resposta.data['status'], 'shipped')
        self.assertEqual(resposta.data['codigo_rastreio'], 'BR123')
        self.assertEqual(self.client.get('/api/painel/pedidos/').data[0]['status'], 'shipped')

    def test_status_invalido_e_pedido_inexistente(self):
        pedido = self._novo_pedido()

        resposta = self.client.patch(f'/api/painel/pedidos/{pedido.id}/', {'status': 'perdido'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)

        resposta = self.client.patch('/api/painel/pedidos/nao-existe/', {'status': 'paid'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)

    def test_sincronizacao_avisa_novo_pedido(self):
        self._novo_pedido('Ana')
        inicial = self.client.get('/api/painel/sincronizar/')
        self.assertFalse(inicial.data['alterado'])
        self.assertEqual(len(inicial.data['pedidos']), 1)

        novo = self._novo_pedido('Bia')
        resposta = self.client.get('/api/painel/sincronizar/')

        self.assertTrue(resposta.data['alterado'])
        self.assertEqual(resposta.data['novo_pedido']['id'], novo.id)

        resposta = self.client.get('/api/painel/sincronizar/')
        self.assertFalse(resposta.data['alterado'])
        self.assertIsNone(resposta.data['novo_pedido'])

    def test_carrinhos_abandonados(self):
        resposta = self.client.get('/api/painel/carrinhos-abandonados/')

        self.assertTrue(resposta.data['recurso_disponivel'])
        self.assertEqual(resposta.data['carrinhos'], [])


class AdminTest(TestCase):

    def test_modelos_registrados_no_admin(self):
        self.assertTrue(admin.site.is_registered(Loja))
        self.assertTrue(admin.site.is_registered(RegistroLocal))
