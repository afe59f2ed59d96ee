from django.urls import path

from . import views

app_name = 'integrations'

urlpatterns = [
    path('yookassa/', views.YooKassaWebhookView.as_view(), name='yookassa_webhook'),
]
