from django.urls import path
from .views import state_detail, state_list_clear, form_autosave, last_route, sort_filter_state

urlpatterns = [
    path('state/', state_list_clear, name='state-list-clear'),
    path('state/routes/last/', last_route, name='state-last-route'),
    path('state/sort-filter/<slug:category_slug>/', sort_filter_state, name='state-sort-filter'),
    path('state/<str:key>/', state_detail, name='state-detail'),
    path('forms/<str:form_id>/autosave/', form_autosave, name='form-autosave'),
]
