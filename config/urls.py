"""
URL configuration for the Storefront platform
"""

from django.conf import settings
from django.conf.urls.static import static
from django.urls import include, path

# ===============================================================================
# MAIN URL PATTERNS
# ===============================================================================

urlpatterns = [
    # Checkout, order history and staff status management
    path("api/orders/", include("apps.orders.urls")),
    # Promocode preview before checkout
    path("api/promocodes/", include("apps.promotions.urls")),
    # Payment provider callbacks (signature authenticated, no session)
    path("api/webhooks/", include("apps.integrations.urls")),
]

# ===============================================================================
# DEVELOPMENT URLS (static files)
# ===============================================================================

if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
