from django.contrib import admin
from .models import PersistedState


@admin.register(PersistedState)
class PersistedStateAdmin(admin.ModelAdmin):
    list_display = ['owner_key', 'key', 'updated_at']
    list_filter = ['key']
    search_fields = ['owner_key', 'key']
    ordering = ['-updated_at']
    readonly_fields = ['updated_at']
