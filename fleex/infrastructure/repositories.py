"""
Camada de Infraestrutura: Implementação do armazenamento e da persistência da loja.

Esta camada traduz as operações abstratas definidas nas Portas do Core
em chamadas concretas ao framework (Django ORM, Firebase via HTTP).

Fluxo:
- Leituras disputam o remoto contra um timeout fixo; se ele falhar ou demorar,
  vale a cópia local. Leituras remotas bem-sucedidas são espelhadas no local.
- Gravações vão primeiro para o local e depois, em melhor esforço, para o remoto.
- Enquanto uma gravação local não chega ao remoto, a coleção fica pendente:
  a cópia local prevalece e é reenviada na próxima leitura.
"""
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar

import requests
from django.apps import apps
from django.db import transaction

# Importações da Camada CORE (ENTIDADES e PORTAS)
from fleex.core.entities import (
    SessaoLoja, PerfilLoja, Link, Produto, Categoria, Cupom, Pedido, CarrinhoAbandonado,
    ItemCarrinho, CotacaoFrete, RegistroAtividade
)
from fleex.core.exceptions import (
    RemotoIndisponivelError, LojaNaoEncontradaError, PedidoNaoEncontradoError, ItemNaoEncontradoError
)
from fleex.core.frete import CotadorFrete
from fleex.core.ports import IArmazenamento, IPersistenciaLoja

from .mappers import (
    BaseMapper, PerfilLojaMapper, LinkMapper, ProdutoMapper, CategoriaMapper, CupomMapper,
    PedidoMapper, CarrinhoAbandonadoMapper, RegistroAtividadeMapper
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

LIMITE_ATIVIDADES = 50


# Helper para Lazy Loading
def get_model(app_label, model_name):
    """Busca o modelo Django de forma segura (Lazy Loading)."""
    return apps.get_model(app_label, model_name)


# ====================================================================
# 1. ARMAZENAMENTOS
# ====================================================================

class ArmazenamentoLocalDjango(IArmazenamento):
    """
    Cópia local durável: um registro JSON por (loja, coleção) no banco do Django.

    Toda gravação local deixa a coleção `pendente` com uma nova `versao` até o
    remoto confirmar o recebimento daquela versão.
    """

    @property
    def RegistroModel(self):
        return get_model('infrastructure', 'RegistroLocal')

    def _bloquear(self, sessao: SessaoLoja, colecao: str):
        registro, _ = self.RegistroModel.objects.select_for_update().get_or_create(
            loja_id=sessao.loja_id, colecao=colecao
        )
        return registro

    def ler(self, sessao: SessaoLoja, colecao: str) -> Any:
        registro = self.RegistroModel.objects.filter(loja_id=sessao.loja_id, colecao=colecao).first()
        return registro.dados if registro else None

    def gravar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> int:
        """Grava e devolve a versão gravada."""
        return self.alterar_versionado(sessao, colecao, lambda _: valor)[1]

    @transaction.atomic
    def alterar_versionado(self, sessao: SessaoLoja, colecao: str,
                           funcao: Callable[[Any], Any]) -> Tuple[Any, int]:
        """Leitura-alteração-gravação com o registro bloqueado até o fim da transação."""
        registro = self._bloquear(sessao, colecao)
        registro.dados = funcao(registro.dados)
        registro.versao += 1
        registro.pendente = True
        registro.save()
        return registro.dados, registro.versao

    def alterar(self, sessao: SessaoLoja, colecao: str, funcao: Callable[[Any], Any]) -> Any:
        return self.alterar_versionado(sessao, colecao, funcao)[0]

    def versao_pendente(self, sessao: SessaoLoja, colecao: str) -> Optional[int]:
        registro = self.RegistroModel.objects.filter(
            loja_id=sessao.loja_id, colecao=colecao, pendente=True
        ).first()
        return registro.versao if registro else None

    def confirmar_sincronizacao(self, sessao: SessaoLoja, colecao: str, versao: int) -> None:
        # Uma gravação posterior à versão enviada mantém a coleção pendente.
        self.RegistroModel.objects.filter(
            loja_id=sessao.loja_id, colecao=colecao, versao=versao
        ).update(pendente=False)

    @transaction.atomic
    def espelhar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> Any:
        """Copia o valor remoto para o local, salvo gravação local pendente. Devolve o valor vigente."""
        registro = self._bloquear(sessao, colecao)
        if registro.pendente:
            return registro.dados
        registro.dados = valor
        registro.save()
        return valor


class ArmazenamentoFirebase(IArmazenamento):
    """
    Firebase Realtime Database pela API REST:
    `{base}/lojas/{loja_id}/{colecao}.json?auth={token}`.
    Qualquer falha de rede ou HTTP vira RemotoIndisponivelError.
    """

    def __init__(self, base_url: str, token: str = '', timeout: float = 2.5,
                 http: Optional[requests.Session] = None):
        self.base_url = (base_url or '').rstrip('/')
        self.token = token
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def configurado(self) -> bool:
        return bool(self.base_url)

    def _url(self, caminho: str) -> str:
        return f"{self.base_url}/{caminho}.json"

    def _params(self, **extras) -> Dict[str, str]:
        params = dict(extras)
        if self.token:
            params['auth'] = self.token
        return params

    def _requisitar(self, metodo: str, caminho: str, **kwargs) -> Any:
        if not self.configurado:
            raise RemotoIndisponivelError("Armazenamento remoto não configurado.")
        try:
            response = self.http.request(metodo, self._url(caminho), timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RemotoIndisponivelError(f"Falha no armazenamento remoto: {e}") from e

    def ler(self, sessao: SessaoLoja, colecao: str) -> Any:
        return self._requisitar('GET', f"lojas/{sessao.loja_id}/{colecao}", params=self._params())

    def gravar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> None:
        self._requisitar('PUT', f"lojas/{sessao.loja_id}/{colecao}", params=self._params(), json=valor)

    def verificar_conexao(self) -> bool:
        self._requisitar('GET', 'lojas', params=self._params(shallow='true'))
        return True


class ArmazenamentoResiliente(IArmazenamento):
    """Compõe o remoto e o local com timeout único e fallback para o local."""

    _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix='fleex-remoto')

    def __init__(self, local: ArmazenamentoLocalDjango, remoto: ArmazenamentoFirebase, timeout: float = 2.5):
        self.local = local
        self.remoto = remoto
        self.timeout = timeout

    def _com_timeout(self, funcao: Callable, *args) -> Any:
        if not self.remoto.configurado:
            raise RemotoIndisponivelError("Armazenamento remoto não configurado.")
        futuro = self._executor.submit(funcao, *args)
        try:
            return futuro.result(timeout=self.timeout)
        except FuturesTimeoutError:
            futuro.cancel()
            raise RemotoIndisponivelError(f"Tempo limite de {self.timeout}s excedido.")

    def ler(self, sessao: SessaoLoja, colecao: str) -> Any:
        versao = self.local.versao_pendente(sessao, colecao)
        if versao is not None:
            valor = self.local.ler(sessao, colecao)
            self.publicar(sessao, colecao, valor, versao)
            return valor

        try:
            valor = self._com_timeout(self.remoto.ler, sessao, colecao)
        except RemotoIndisponivelError as e:
            if self.remoto.configurado:
                logger.warning("Leitura remota de %s/%s falhou (%s); usando a cópia local.",
                               sessao.loja_id, colecao, e.message)
            return self.local.ler(sessao, colecao)

        if valor is None:
            # Nada no remoto ainda: vale o que foi gravado localmente.
            return self.local.ler(sessao, colecao)
        return self.local.espelhar(sessao, colecao, valor)

    def sincronizar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> bool:
        """Envio em melhor esforço ao remoto; falhas ficam apenas no log."""
        try:
            self._com_timeout(self.remoto.gravar, sessao, colecao, valor)
        except RemotoIndisponivelError as e:
            if self.remoto.configurado:
                logger.warning("Sincronização remota de %s/%s falhou: %s", sessao.loja_id, colecao, e.message)
            return False
        return True

    def publicar(self, sessao: SessaoLoja, colecao: str, valor: Any, versao: int) -> bool:
        """Envia uma versão local ao remoto e, se ele aceitar, tira a pendência dela."""
        if not self.sincronizar(sessao, colecao, valor):
            return False
        self.local.confirmar_sincronizacao(sessao, colecao, versao)
        return True

    def gravar(self, sessao: SessaoLoja, colecao: str, valor: Any) -> None:
        versao = self.local.gravar(sessao, colecao, valor)
        self.publicar(sessao, colecao, valor, versao)

    def alterar(self, sessao: SessaoLoja, colecao: str, funcao: Callable[[Any], Any]) -> Any:
        self.ler(sessao, colecao)
        valor, versao = self.local.alterar_versionado(sessao, colecao, funcao)
        self.publicar(sessao, colecao, valor, versao)
        return valor

    def verificar_conexao(self) -> bool:
        try:
            return bool(self._com_timeout(self.remoto.verificar_conexao))
        except RemotoIndisponivelError:
            return False


# ====================================================================
# 2. REPOSITÓRIO GENÉRICO DE COLEÇÕES
# ====================================================================

class RepositorioColecao(Generic[T]):
    """Uma coleção de entidades (lista JSON) de uma loja, sobre o armazenamento resiliente."""

    def __init__(self, armazenamento: ArmazenamentoResiliente, colecao: str, mapper: Type[BaseMapper]):
        self.armazenamento = armazenamento
        self.colecao = colecao
        self.mapper = mapper

    @staticmethod
    def _como_lista(dados: Any) -> List[Dict[str, Any]]:
        # O Realtime Database devolve listas esparsas como objetos.
        if not dados:
            return []
        if isinstance(dados, dict):
            dados = list(dados.values())
        return [item for item in dados if item]

    def listar(self, sessao: SessaoLoja) -> List[T]:
        return [self.mapper.from_dict(d) for d in self._como_lista(self.armazenamento.ler(sessao, self.colecao))]

    def substituir(self, sessao: SessaoLoja, itens: List[T]) -> None:
        self.armazenamento.gravar(sessao, self.colecao, [self.mapper.to_dict(item) for item in itens])

    def anexar(self, sessao: SessaoLoja, item: T) -> T:
        novo = self.mapper.to_dict(item)
        self.armazenamento.alterar(sessao, self.colecao, lambda dados: self._como_lista(dados) + [novo])
        return item

    def atualizar(self, sessao: SessaoLoja, item_id: str, alteracoes: Dict[str, Any]) -> List[T]:
        """Mescla `alteracoes` no item e devolve a coleção inteira atualizada."""
        encontrado = []

        def mesclar(dados):
            itens = self._como_lista(dados)
            for item in itens:
                if item.get('id') == item_id:
                    item.update(alteracoes)
                    encontrado.append(item_id)
            return itens

        dados = self.armazenamento.alterar(sessao, self.colecao, mesclar)
        if not encontrado:
            raise ItemNaoEncontradoError(f"Registro {item_id} não encontrado em {self.colecao}.")
        return [self.mapper.from_dict(d) for d in self._como_lista(dados)]


# ====================================================================
# 3. PERSISTÊNCIA DA LOJA (Implementação de IPersistenciaLoja)
# ====================================================================

class PersistenciaLojaDjango(IPersistenciaLoja):
    """Persistência da loja sobre as coleções do armazenamento resiliente."""

    COLECAO_PERFIL = 'perfil'
    COLECAO_BAIXAS = 'baixas_estoque'

    def __init__(self, armazenamento: ArmazenamentoResiliente, cotador: Optional[CotadorFrete] = None):
        self.armazenamento = armazenamento
        self.cotador = cotador or CotadorFrete()
        self.links = RepositorioColecao(armazenamento, 'links', LinkMapper)
        self.produtos = RepositorioColecao(armazenamento, 'produtos', ProdutoMapper)
        self.categorias = RepositorioColecao(armazenamento, 'categorias', CategoriaMapper)
        self.cupons = RepositorioColecao(armazenamento, 'cupons', CupomMapper)
        self.pedidos = RepositorioColecao(armazenamento, 'pedidos', PedidoMapper)
        self.carrinhos_abandonados = RepositorioColecao(armazenamento, 'carrinhos_abandonados',
                                                        CarrinhoAbandonadoMapper)

    # --- Perfil ---

    def obter_perfil(self, sessao: SessaoLoja) -> Optional[PerfilLoja]:
        dados = self.armazenamento.ler(sessao, self.COLECAO_PERFIL)
        return PerfilLojaMapper.from_dict(dados) if dados else None

    def criar_perfil(self, sessao: SessaoLoja, perfil: PerfilLoja) -> PerfilLoja:
        self.armazenamento.gravar(sessao, self.COLECAO_PERFIL, PerfilLojaMapper.to_dict(perfil))
        return perfil

    def atualizar_perfil(self, sessao: SessaoLoja, alteracoes: Dict[str, Any]) -> PerfilLoja:
        atual = self.obter_perfil(sessao)
        if atual is None:
            raise LojaNaoEncontradaError()
        dados = PerfilLojaMapper.to_dict(atual)
        dados.update(alteracoes)
        perfil = PerfilLojaMapper.from_dict(dados)
        self.armazenamento.gravar(sessao, self.COLECAO_PERFIL, PerfilLojaMapper.to_dict(perfil))
        return perfil

    def registrar_atividade(self, sessao: SessaoLoja, autor: str, acao: str,
                            detalhes: Optional[str] = None) -> RegistroAtividade:
        registro = RegistroAtividade(autor=autor, acao=acao, detalhes=detalhes)
        novo = RegistroAtividadeMapper.to_dict(registro)

        def anexar_no_log(dados):
            if not dados:
                raise LojaNaoEncontradaError()
            dados['atividades'] = ([novo] + list(dados.get('atividades') or []))[:LIMITE_ATIVIDADES]
            return dados

        self.armazenamento.alterar(sessao, self.COLECAO_PERFIL, anexar_no_log)
        return registro

    # --- Catálogo ---

    def obter_links(self, sessao: SessaoLoja) -> List[Link]:
        return self.links.listar(sessao)

    def salvar_links(self, sessao: SessaoLoja, links: List[Link]) -> None:
        self.links.substituir(sessao, links)

    def obter_produtos(self, sessao: SessaoLoja) -> List[Produto]:
        return self.produtos.listar(sessao)

    def salvar_produtos(self, sessao: SessaoLoja, produtos: List[Produto]) -> None:
        self.produtos.substituir(sessao, produtos)

    def obter_categorias(self, sessao: SessaoLoja) -> List[Categoria]:
        return self.categorias.listar(sessao)

    def salvar_categorias(self, sessao: SessaoLoja, categorias: List[Categoria]) -> None:
        self.categorias.substituir(sessao, categorias)

    def obter_cupons(self, sessao: SessaoLoja) -> List[Cupom]:
        return self.cupons.listar(sessao)

    def salvar_cupons(self, sessao: SessaoLoja, cupons: List[Cupom]) -> None:
        self.cupons.substituir(sessao, cupons)

    # --- Pedidos ---

    def listar_pedidos(self, sessao: SessaoLoja) -> List[Pedido]:
        return sorted(self.pedidos.listar(sessao), key=lambda p: p.data, reverse=True)

    def criar_pedido(self, sessao: SessaoLoja, pedido: Pedido) -> Pedido:
        self.pedidos.anexar(sessao, pedido)
        logger.info("Pedido %s gravado na loja %s.", pedido.id, sessao.loja_id)
        return pedido

    def atualizar_status_pedido(self, sessao: SessaoLoja, pedido_id: str, alteracoes: Dict[str, Any]) -> List[Pedido]:
        try:
            pedidos = self.pedidos.atualizar(sessao, pedido_id, alteracoes)
        except ItemNaoEncontradoError:
            raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.")
        logger.info("Pedido %s da loja %s atualizado: %s.", pedido_id, sessao.loja_id, alteracoes)
        return sorted(pedidos, key=lambda p: p.data, reverse=True)

    def baixar_estoque(self, sessao: SessaoLoja, pedido_id: str, itens: List[ItemCarrinho]) -> None:
        """
        Reduz o estoque (com piso zero) numa única transação. O id do pedido
        entra no registro de baixas; um segundo pedido de baixa com o mesmo id
        não faz nada.
        """
        quantidades = Counter()
        for item in itens:
            quantidades[item.produto.id] += item.quantidade

        local = self.armazenamento.local
        aplicada = []

        def registrar_baixa(dados):
            ledger = list(dados or [])
            if pedido_id not in ledger:
                ledger.append(pedido_id)
                aplicada.append(pedido_id)
            return ledger

        def baixar(dados):
            produtos = RepositorioColecao._como_lista(dados)
            for produto in produtos:
                quantidade = quantidades.get(produto.get('id'))
                if not quantidade:
                    continue
                estoque = int(produto.get('estoque') or 0)
                if quantidade > estoque:
                    logger.warning("Baixa do produto %s (pedido %s) excede o estoque %s; estoque zerado.",
                                   produto['id'], pedido_id, estoque)
                produto['estoque'] = max(0, estoque - quantidade)
                produto['vendas'] = int(produto.get('vendas') or 0) + quantidade
            return produtos

        self.armazenamento.ler(sessao, 'produtos')
        self.armazenamento.ler(sessao, self.COLECAO_BAIXAS)
        with transaction.atomic():
            ledger, versao_ledger = local.alterar_versionado(sessao, self.COLECAO_BAIXAS, registrar_baixa)
            if not aplicada:
                logger.info("Baixa de estoque do pedido %s já aplicada; ignorada.", pedido_id)
                return
            produtos, versao_produtos = local.alterar_versionado(sessao, 'produtos', baixar)

        logger.info("Estoque baixado para o pedido %s na loja %s.", pedido_id, sessao.loja_id)
        self.armazenamento.publicar(sessao, 'produtos', produtos, versao_produtos)
        self.armazenamento.publicar(sessao, self.COLECAO_BAIXAS, ledger, versao_ledger)

    # --- Carrinhos abandonados ---

    def obter_carrinhos_abandonados(self, sessao: SessaoLoja) -> List[CarrinhoAbandonado]:
        return sorted(self.carrinhos_abandonados.listar(sessao), key=lambda c: c.data, reverse=True)

    def salvar_carrinho_abandonado(self, sessao: SessaoLoja, carrinho: CarrinhoAbandonado) -> None:
        self.carrinhos_abandonados.anexar(sessao, carrinho)

    # --- Frete ---

    def calcular_frete(self, cep: str) -> List[CotacaoFrete]:
        return self.cotador.cotar(cep)


# ====================================================================
# 4. CADASTRO DE LOJAS (Django ORM)
# ====================================================================

class LojaRepositoryDjango:
    """Resolve slug público e dono para o tenant (`SessaoLoja`)."""

    @property
    def LojaModel(self):
        return get_model('infrastructure', 'Loja')

    def sessao_por_slug(self, slug: str, ator: str = 'Cliente') -> SessaoLoja:
        try:
            loja = self.LojaModel.objects.get(slug=slug)
        except self.LojaModel.DoesNotExist:
            raise LojaNaoEncontradaError(f"Loja '{slug}' não encontrada.")
        return SessaoLoja(loja_id=loja.id, ator=ator)

    def sessao_do_dono(self, usuario) -> SessaoLoja:
        loja = self.LojaModel.objects.filter(dono=usuario).order_by('criado_em').first()
        if loja is None:
            raise LojaNaoEncontradaError("Nenhuma loja vinculada a este usuário.")
        ator = usuario.get_full_name() or usuario.get_username()
        return SessaoLoja(loja_id=loja.id, ator=ator)

    @transaction.atomic
    def criar(self, slug: str, nome: str, dono=None, persistencia: Optional[PersistenciaLojaDjango] = None,
              **campos_perfil) -> PerfilLoja:
        """Cadastra a loja e grava o perfil inicial com o registro 'Conta Criada'."""
        loja = self.LojaModel.objects.create(slug=slug, dono=dono)
        sessao = SessaoLoja(loja_id=loja.id)
        perfil = PerfilLoja(
            id=loja.id,
            nome=nome,
            slug=slug,
            bio=campos_perfil.pop('bio', f"Bem vindo à loja de {nome}"),
            atividades=[RegistroAtividade(autor='Sistema', acao='Conta Criada')],
            **campos_perfil,
        )
        if persistencia is not None:
            persistencia.criar_perfil(sessao, perfil)
        return perfil
