from django.contrib import admin
from .models import Post, PostComment


class PostCommentInline(admin.TabularInline):
    model = PostComment
    extra = 0


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'residence', 'author', 'category', 'is_official', 'is_pinned', 'created_at']
    list_filter = ['category', 'is_official', 'is_pinned', 'residence']
    search_fields = ['title', 'content', 'author__username']
    inlines = [PostCommentInline]
