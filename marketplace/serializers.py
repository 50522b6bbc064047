from rest_framework import serializers
from .models import Listing


class ListingSerializer(serializers.ModelSerializer):
    seller_name = serializers.CharField(source='seller.username', read_only=True)
    is_favorite = serializers.SerializerMethodField()

    class Meta:
        model = Listing
        fields = [
            'id', 'residence', 'seller', 'seller_name', 'title', 'description', 'category',
            'condition', 'price', 'images', 'status', 'is_favorite', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'seller', 'status', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def get_is_favorite(self, obj):
        request = self.context.get('request')
        if not (request and request.user.is_authenticated):
            return False
        return obj.favorited_by.filter(user=request.user).exists()

    def validate_images(self, value):
        if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
            raise serializers.ValidationError("Images must be a list of URLs.")
        return value
