"""
Rotas da API REST da loja (cliente anônimo) e do painel do lojista.
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views


urlpatterns = [
    # ====================================================================
    # 1. ROTAS DA LOJA PÚBLICA (VITRINE, CARRINHO E CHECKOUT)
    # ====================================================================
    path('api/lojas/<slug:slug>/', views.VitrineAPIView.as_view(), name='vitrine'),
    path('api/lojas/<slug:slug>/carrinho/', views.CarrinhoAPIView.as_view(), name='carrinho-api'),
    path('api/lojas/<slug:slug>/frete/', views.FreteAPIView.as_view(), name='frete-api'),
    path('api/lojas/<slug:slug>/checkout/', views.CheckoutAPIView.as_view(), name='checkout-api'),
    path('api/lojas/<slug:slug>/checkout/pix/', views.PixAPIView.as_view(), name='checkout-pix'),
    path('api/lojas/<slug:slug>/checkout/whatsapp/', views.WhatsappAPIView.as_view(), name='checkout-whatsapp'),
    path('api/status/', views.StatusAPIView.as_view(), name='status-api'),

    # ====================================================================
    # 2. ROTAS DO PAINEL DO LOJISTA
    # ====================================================================
    path('api/painel/perfil/', views.PerfilPainelAPIView.as_view(), name='painel-perfil'),
    path('api/painel/catalogo/', views.CatalogoPainelAPIView.as_view(), name='painel-catalogo'),
    path('api/painel/pedidos/', views.PedidosPainelAPIView.as_view(), name='painel-pedidos'),
    path('api/painel/pedidos/<str:pedido_id>/', views.PedidoPainelAPIView.as_view(), name='painel-pedido'),
    path('api/painel/carrinhos-abandonados/', views.CarrinhosAbandonadosAPIView.as_view(),
         name='painel-carrinhos-abandonados'),
    path('api/painel/atividades/', views.AtividadesAPIView.as_view(), name='painel-atividades'),
    path('api/painel/sincronizar/', views.SincronizarPainelAPIView.as_view(), name='painel-sincronizar'),

    # ====================================================================
    # 3. AUTENTICAÇÃO JWT DO LOJISTA
    # ====================================================================
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]
