from django.core.management.base import BaseCommand, CommandError

from fleex.core import dependency_injection as di
from fleex.core.exceptions import LojaNaoEncontradaError
from fleex.infrastructure.instances import get_notificador


class Command(BaseCommand):
    help = 'Acompanha os pedidos de uma loja, avisando (com alerta sonoro) a cada novo pedido'

    def add_arguments(self, parser):
        parser.add_argument('slug', help='Slug da loja')
        parser.add_argument('--intervalo', type=float, default=None,
                            help='Segundos entre as consultas (padrão: FLEEX_SYNC_INTERVALO)')
        parser.add_argument('--ciclos', type=int, default=None, help='Encerra após N consultas')

    def handle(self, *args, **options):
        try:
            sessao = di.loja_repo.sessao_por_slug(options['slug'], ator='Painel')
        except LojaNaoEncontradaError as e:
            raise CommandError(e.message)

        sincronizador = di.get_sincronizador_painel(sessao, notificador=get_notificador(saida=self.stdout))
        if options['intervalo']:
            sincronizador.intervalo = options['intervalo']

        inicial = sincronizador.carregar_inicial()
        self.stdout.write(
            f'Acompanhando "{options["slug"]}": {len(inicial.pedidos)} pedidos, '
            f'{len(inicial.carrinhos)} carrinhos abandonados. Ctrl+C para sair.'
        )

        try:
            sincronizador.executar(max_ciclos=options['ciclos'])
        except KeyboardInterrupt:
            sincronizador.parar()
        self.stdout.write(self.style.SUCCESS('Acompanhamento encerrado.'))
