import uuid
from django.db import models
from backend.core.models import User


class CustomDesignRequest(models.Model):
    """A made-to-order outfit request submitted from the custom design page"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('reviewing', 'Under Review'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='custom_designs')
    full_name = models.CharField(max_length=200)
    email = models.EmailField()
    contact_phone = models.CharField(max_length=20, blank=True)
    design_type = models.CharField(max_length=100, blank=True)
    occasion = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    budget = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    deadline = models.DateField(null=True, blank=True)
    delivery_days = models.PositiveIntegerField(null=True, blank=True)
    preferred_colors = models.CharField(max_length=255, blank=True)
    size_requirements = models.TextField(blank=True)
    special_instructions = models.TextField(blank=True)
    reference_images = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.full_name} - {self.design_type or 'custom design'}"

    class Meta:
        db_table = 'custom_designs'
        ordering = ['-created_at']
