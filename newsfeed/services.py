"""
Newsfeed service - publishing, likes, comments and pinning.
"""
from django.db import transaction
from core.exceptions import ValidationError, PermissionDeniedError
from core.services import BaseService
from residences.access import can_access_residence, can_manage_residence
from .models import Post, PostLike, PostComment


class PostService(BaseService):

    def publish(self, user, residence, title: str, content: str, **fields) -> Post:
        """Posts by residence staff are flagged official"""
        if not can_access_residence(user, residence):
            raise PermissionDeniedError("You don't have access to this residence")
        post = Post.objects.create(
            residence=residence,
            author=user,
            title=title,
            content=content,
            is_official=can_manage_residence(user, residence),
            **fields
        )
        self.log_info("Post published", post_id=post.id, residence_id=residence.id, official=post.is_official)
        return post

    def toggle_like(self, post: Post, user) -> bool:
        """Returns True when the user now likes the post"""
        like, created = PostLike.objects.get_or_create(post=post, user=user)
        if not created:
            like.delete()
        return created

    def add_comment(self, post: Post, user, content: str) -> PostComment:
        content = (content or '').strip()
        if not content:
            raise ValidationError("Comment cannot be empty", code="EMPTY_COMMENT")
        return PostComment.objects.create(post=post, author=user, content=content)

    @transaction.atomic
    def toggle_pin(self, post: Post, user) -> Post:
        post = Post.objects.select_for_update().get(pk=post.pk)
        if not can_manage_residence(user, post.residence_id):
            raise PermissionDeniedError("Only staff of the residence can pin posts")
        post.is_pinned = not post.is_pinned
        post.save(update_fields=['is_pinned', 'updated_at'])
        self.log_info("Post pin toggled", post_id=post.id, pinned=post.is_pinned)
        return post
