from rest_framework import serializers
from .models import CustomDesignRequest


class CustomDesignRequestSerializer(serializers.ModelSerializer):
    reference_images = serializers.ListField(child=serializers.CharField(), required=False)

    class Meta:
        model = CustomDesignRequest
        fields = ['id', 'user', 'full_name', 'email', 'contact_phone', 'design_type', 'occasion',
                  'description', 'budget', 'deadline', 'delivery_days', 'preferred_colors',
                  'size_requirements', 'special_instructions', 'reference_images', 'status',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'user', 'status', 'created_at', 'updated_at']

    def validate_budget(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Budget cannot be negative')
        return value


class CustomDesignStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CustomDesignRequest.STATUS_CHOICES)
