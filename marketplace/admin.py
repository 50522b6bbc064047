from django.contrib import admin
from .models import Listing, Favorite


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ['title', 'residence', 'seller', 'price', 'status', 'created_at']
    list_filter = ['status', 'condition', 'residence']
    search_fields = ['title', 'description', 'seller__username']


admin.site.register(Favorite)
