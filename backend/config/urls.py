"""
URL configuration for the storefront backend.

Every app mounts its API under /api/v1/; the Django admin is the admin console.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Dharika Fashion Admin Panel"
admin.site.site_title = "Dharika Fashion Admin Portal"
admin.site.index_title = "Welcome to Dharika Fashion Admin Console"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.persistence.urls')),
    path('api/v1/', include('backend.cart.urls')),
    path('api/v1/', include('backend.coupons.urls')),
    path('api/v1/', include('backend.orders.urls')),
    path('api/v1/', include('backend.designs.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
