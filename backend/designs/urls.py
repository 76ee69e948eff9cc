from django.urls import path
from .views import custom_design_list_create, custom_design_status_update

urlpatterns = [
    path('custom-designs/', custom_design_list_create, name='custom-design-list-create'),
    path('custom-designs/<uuid:pk>/status/', custom_design_status_update, name='custom-design-status-update'),
]
