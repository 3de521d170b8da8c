# Define os modelos do banco de dados da camada de infraestrutura:
# o cadastro das lojas (tenants) e o armazenamento local de documentos.

import uuid

from django.db import models
from django.conf import settings


def gerar_id() -> str:
    return str(uuid.uuid4())


# ====================================================================
# LOJA (TENANT)
# ====================================================================

class Loja(models.Model):
    """
    Registro de uma loja. O perfil completo fica no armazenamento de documentos
    (coleção `perfil`); aqui ficam apenas o slug público e o dono.
    """
    id = models.CharField(primary_key=True, max_length=36, default=gerar_id, editable=False)
    slug = models.SlugField('Slug público', max_length=80, unique=True)
    dono = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lojas',
    )
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Loja'
        verbose_name_plural = 'Lojas'
        ordering = ['slug']

    def __str__(self):
        return self.slug


# ====================================================================
# ARMAZENAMENTO LOCAL (cache durável do armazenamento remoto)
# ====================================================================

class RegistroLocal(models.Model):
    """Uma coleção JSON de uma loja (ex: produtos, pedidos, perfil)."""
    loja_id = models.CharField(max_length=36, db_index=True)
    colecao = models.CharField(max_length=64)
    dados = models.JSONField(null=True, blank=True)
    # Gravação local ainda não confirmada no remoto; `versao` cresce a cada gravação local.
    pendente = models.BooleanField(default=False)
    versao = models.PositiveIntegerField(default=0)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Registro Local'
        verbose_name_plural = 'Registros Locais'
        constraints = [
            models.UniqueConstraint(fields=['loja_id', 'colecao'], name='registro_local_unico_por_colecao'),
        ]

    def __str__(self):
        return f"{self.loja_id}/{self.colecao}"
