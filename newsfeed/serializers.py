from rest_framework import serializers
from .models import Post, PostComment


class PostCommentSerializer(serializers.ModelSerializer):
    author_name = serializers.CharField(source='author.username', read_only=True)

    class Meta:
        model = PostComment
        fields = ['id', 'post', 'author', 'author_name', 'content', 'created_at']
        read_only_fields = ['id', 'post', 'author', 'created_at']


class PostSerializer(serializers.ModelSerializer):
    author_name = serializers.CharField(source='author.username', read_only=True)
    likes_count = serializers.SerializerMethodField()
    comments_count = serializers.SerializerMethodField()
    liked = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id', 'residence', 'author', 'author_name', 'title', 'content', 'category',
            'is_official', 'is_pinned', 'likes_count', 'comments_count', 'liked',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'author', 'is_official', 'is_pinned', 'created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            from residences.access import get_accessible_residences
            self.fields['residence'].queryset = get_accessible_residences(request.user)

    def get_likes_count(self, obj):
        return obj.likes.count()

    def get_comments_count(self, obj):
        return obj.comments.count()

    def get_liked(self, obj):
        request = self.context.get('request')
        if not (request and request.user.is_authenticated):
            return False
        return obj.likes.filter(user=request.user).exists()

    def validate_residence(self, value):
        if self.instance and value != self.instance.residence:
            raise serializers.ValidationError("A post cannot move to another residence.")
        return value
