from django.contrib import admin
from .models import CustomDesignRequest


@admin.register(CustomDesignRequest)
class CustomDesignRequestAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'design_type', 'occasion', 'budget', 'deadline', 'status', 'created_at']
    list_filter = ['status', 'design_type', 'occasion']
    search_fields = ['full_name', 'email', 'contact_phone', 'description']
    ordering = ['-created_at']
    readonly_fields = ['id', 'user', 'created_at', 'updated_at']
