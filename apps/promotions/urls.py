from django.urls import path

from . import views

app_name = 'promotions'

urlpatterns = [
    path('validate/', views.validate_promocode, name='validate'),
]
