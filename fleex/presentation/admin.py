# Configuração da interface administrativa do Django para os modelos do Fleex.

from django.contrib import admin

from fleex.infrastructure.models import Loja, RegistroLocal


# ====================================================================
# 1. ADMIN PARA LOJAS (TENANTS)
# ====================================================================

@admin.register(Loja)
class LojaAdmin(admin.ModelAdmin):
    list_display = ('slug', 'dono', 'id', 'criado_em')
    search_fields = ('slug', 'id', 'dono__username', 'dono__email')
    ordering = ('slug',)
    readonly_fields = ('id', 'criado_em')


# ====================================================================
# 2. ADMIN PARA A CÓPIA LOCAL DO ARMAZENAMENTO
# ====================================================================

@admin.register(RegistroLocal)
class RegistroLocalAdmin(admin.ModelAdmin):
    """Somente leitura: os documentos são gravados pela persistência da loja."""
    list_display = ('loja_id', 'colecao', 'pendente', 'versao', 'atualizado_em')
    list_filter = ('colecao', 'pendente')
    search_fields = ('loja_id',)
    readonly_fields = ('loja_id', 'colecao', 'dados', 'pendente', 'versao', 'atualizado_em')

    def has_add_permission(self, request):
        """Impedir a criação de registros pela interface do Admin."""
        return False
