from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.utils.text import slugify

from fleex.core.entities import PlanoTipo
from fleex.infrastructure.instances import get_persistencia
from fleex.infrastructure.repositories import LojaRepositoryDjango


class Command(BaseCommand):
    help = 'Cria um lojista (usuário), a loja e o perfil inicial'

    def add_arguments(self, parser):
        parser.add_argument('nome', help='Nome da loja')
        parser.add_argument('--slug', help='Endereço público (padrão: nome em slug)')
        parser.add_argument('--usuario', required=True, help='Login do lojista')
        parser.add_argument('--email', default='')
        parser.add_argument('--senha', required=True)
        parser.add_argument('--plano', default=PlanoTipo.FREE.value,
                            choices=[plano.value for plano in PlanoTipo])
        parser.add_argument('--cidade', default='', help='Cidade da loja (define clientes locais)')
        parser.add_argument('--estado', default='')
        parser.add_argument('--telefone', default='', help='WhatsApp do lojista')

    def handle(self, *args, **options):
        User = get_user_model()
        slug = options['slug'] or slugify(options['nome'])
        repo = LojaRepositoryDjango()

        if repo.LojaModel.objects.filter(slug=slug).exists():
            raise CommandError(f'Já existe uma loja com o slug "{slug}".')

        dono, criado = User.objects.get_or_create(username=options['usuario'], defaults={'email': options['email']})
        if criado:
            dono.set_password(options['senha'])
            dono.save()
            self.stdout.write(self.style.SUCCESS(f'Criado usuário "{dono.username}"'))

        perfil = repo.criar(
            slug=slug,
            nome=options['nome'],
            dono=dono,
            persistencia=get_persistencia(),
            email=options['email'],
            plano=PlanoTipo(options['plano']),
            cidade_loja=options['cidade'],
            estado_loja=options['estado'],
            telefone=options['telefone'],
        )
        self.stdout.write(self.style.SUCCESS(f'Criada loja "{perfil.nome}" em /api/lojas/{perfil.slug}/ (id {perfil.id})'))
