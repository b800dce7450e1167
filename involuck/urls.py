"""
URL configuration for the involuck project.
"""
from django.contrib import admin
from django.urls import path, include

api_v1_patterns = [
    path('', include('core.urls')),
    path('auth/', include('accounts.urls')),
    path('', include('clients.urls')),
    path('', include('invoicing.urls')),
]

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include(api_v1_patterns)),
]
