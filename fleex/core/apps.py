# fleex/core/apps.py

from django.apps import AppConfig

class CoreConfig(AppConfig):
    # O nome completo do path da aplicação
    name = 'fleex.core'
    label = 'core'
    verbose_name = 'Núcleo da Loja (Core)'

    # Sem modelos nesta camada: as tabelas ficam na Infrastructure.
    default_auto_field = 'django.db.models.BigAutoField'
