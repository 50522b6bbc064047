from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.exceptions import PermissionDeniedError
from api.filters import ResidenceQueryFilterBackend
from residences.access import filter_by_accessible_residences, can_manage_residence
from .models import Post
from .serializers import PostSerializer, PostCommentSerializer
from .services import PostService


class PostViewSet(viewsets.ModelViewSet):
    """
    Residence newsfeed, pinned posts first.

    Filters: ?residence=, ?category=, ?official=true
    """
    serializer_class = PostSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            Post.objects.select_related('author', 'residence'), self.request.user
        )
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category=params['category'].upper())
        if params.get('official') == 'true':
            queryset = queryset.filter(is_official=True)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        post = PostService().publish(
            request.user, data.pop('residence'), data.pop('title'), data.pop('content'), **data
        )
        return Response(PostSerializer(post, context={'request': request}).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        if serializer.instance.author_id != self.request.user.id:
            raise PermissionDeniedError("You can only edit your own posts")
        serializer.save()

    def perform_destroy(self, instance):
        if instance.author_id != self.request.user.id and not can_manage_residence(
                self.request.user, instance.residence_id):
            raise PermissionDeniedError("You can only delete your own posts")
        instance.delete()

    @action(detail=True, methods=['post'])
    def like(self, request, pk=None):
        """Toggle the user's like"""
        post = self.get_object()
        liked = PostService().toggle_like(post, request.user)
        return Response(
            {'liked': liked, 'likes_count': post.likes.count()},
            status=status.HTTP_201_CREATED if liked else status.HTTP_200_OK
        )

    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, pk=None):
        """GET lists the comments, POST { "content": "..." } adds one"""
        post = self.get_object()
        if request.method == 'GET':
            return Response(PostCommentSerializer(post.comments.select_related('author'), many=True).data)
        comment = PostService().add_comment(post, request.user, request.data.get('content'))
        return Response(PostCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def pin(self, request, pk=None):
        """Toggle the pin (residence staff only)"""
        post = PostService().toggle_pin(self.get_object(), request.user)
        return Response(PostSerializer(post, context={'request': request}).data)
