"""
Tests for the residence newsfeed
"""
from django.test import TestCase
from rest_framework import status

from core.constants import PostCategory
from core.exceptions import PermissionDeniedError, ValidationError
from core.test_utils import TestDataFactory, AuthenticatedAPIClient
from newsfeed.models import Post
from newsfeed.services import PostService


class NewsfeedTestMixin:

    def setUp(self):
        agency = TestDataFactory.create_agency()
        self.residence = TestDataFactory.create_residence(agency)
        self.owner = TestDataFactory.create_owner(agency)
        self.alice = TestDataFactory.create_user()
        self.bob = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(self.alice, TestDataFactory.create_lot(self.residence))
        TestDataFactory.create_occupancy(self.bob, TestDataFactory.create_lot(self.residence))
        self.outsider = TestDataFactory.create_user()
        TestDataFactory.create_occupancy(
            self.outsider, TestDataFactory.create_lot(TestDataFactory.create_residence(agency))
        )


class PostServiceTests(NewsfeedTestMixin, TestCase):

    def test_staff_posts_are_official(self):
        staff_post = PostService().publish(self.owner, self.residence, 'Lift works', 'Monday to Wednesday',
                                           category=PostCategory.WORKS)
        resident_post = PostService().publish(self.alice, self.residence, 'Lost keys', 'Near the mailboxes')
        self.assertTrue(staff_post.is_official)
        self.assertFalse(resident_post.is_official)
        self.assertEqual(resident_post.category, PostCategory.DAILY_LIFE)

    def test_publish_requires_access(self):
        with self.assertRaises(PermissionDeniedError):
            PostService().publish(self.outsider, self.residence, 'Hello', 'Hi')

    def test_toggle_like(self):
        post = PostService().publish(self.alice, self.residence, 'Lost keys', 'Near the mailboxes')
        self.assertTrue(PostService().toggle_like(post, self.bob))
        self.assertTrue(PostService().toggle_like(post, self.alice))
        self.assertEqual(post.likes.count(), 2)
        self.assertFalse(PostService().toggle_like(post, self.bob))
        self.assertEqual(post.likes.count(), 1)

    def test_blank_comment_rejected(self):
        post = PostService().publish(self.alice, self.residence, 'Lost keys', 'Near the mailboxes')
        with self.assertRaises(ValidationError) as ctx:
            PostService().add_comment(post, self.bob, '   ')
        self.assertEqual(ctx.exception.code, 'EMPTY_COMMENT')

        comment = PostService().add_comment(post, self.bob, ' Found them ')
        self.assertEqual(comment.content, 'Found them')

    def test_only_staff_pin_and_pinned_first(self):
        pinned = PostService().publish(self.owner, self.residence, 'Water cut', 'Tuesday morning')
        PostService().publish(self.alice, self.residence, 'Lost keys', 'Near the mailboxes')

        with self.assertRaises(PermissionDeniedError):
            PostService().toggle_pin(pinned, self.alice)

        pinned = PostService().toggle_pin(pinned, self.owner)
        self.assertTrue(pinned.is_pinned)
        self.assertEqual(Post.objects.filter(residence=self.residence).first(), pinned)

        self.assertFalse(PostService().toggle_pin(pinned, self.owner).is_pinned)


class PostAPITests(NewsfeedTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient().authenticate_user(self.alice)

    def _post(self, author=None, title='Lost keys', **extra):
        return PostService().publish(author or self.alice, self.residence, title, 'Details', **extra)

    def test_create_post(self):
        response = self.client.post('/api/posts/', {
            'residence': self.residence.id,
            'title': 'Plant swap',
            'content': 'Saturday in the courtyard',
            'is_official': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['author'], self.alice.id)
        self.assertFalse(response.data['is_official'])

        outsider = AuthenticatedAPIClient().authenticate_user(self.outsider)
        response = outsider.post('/api/posts/', {
            'residence': self.residence.id, 'title': 'Hi', 'content': 'Hello'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_feed_of_own_residences_with_filters(self):
        self._post()
        self._post(author=self.owner, title='Assembly on June 3rd', category=PostCategory.ASSEMBLY)

        self.assertEqual(self.client.get('/api/posts/').data['count'], 2)
        self.assertEqual(self.client.get('/api/posts/?official=true').data['count'], 1)
        self.assertEqual(self.client.get('/api/posts/?category=assembly').data['count'], 1)

        outsider = AuthenticatedAPIClient().authenticate_user(self.outsider)
        self.assertEqual(outsider.get('/api/posts/').data['count'], 0)

    def test_only_author_edits_and_staff_may_delete(self):
        post = self._post()
        bob = AuthenticatedAPIClient().authenticate_user(self.bob)
        response = bob.patch(f'/api/posts/{post.id}/', {'title': 'Mine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(bob.delete(f'/api/posts/{post.id}/').status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.patch(f'/api/posts/{post.id}/', {'title': 'Keys found'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        self.assertEqual(staff.delete(f'/api/posts/{post.id}/').status_code, status.HTTP_204_NO_CONTENT)

    def test_like_and_comment(self):
        post = self._post()
        bob = AuthenticatedAPIClient().authenticate_user(self.bob)

        response = bob.post(f'/api/posts/{post.id}/like/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['likes_count'], 1)

        response = bob.post(f'/api/posts/{post.id}/comments/', {'content': 'On the bench'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = bob.post(f'/api/posts/{post.id}/comments/', {'content': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/posts/{post.id}/comments/')
        self.assertEqual([c['content'] for c in response.data], ['On the bench'])

        response = bob.get(f'/api/posts/{post.id}/')
        self.assertTrue(response.data['liked'])
        self.assertEqual(response.data['comments_count'], 1)

        response = bob.post(f'/api/posts/{post.id}/like/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['liked'])

    def test_pin(self):
        post = self._post()
        self.assertEqual(self.client.post(f'/api/posts/{post.id}/pin/').status_code, status.HTTP_403_FORBIDDEN)

        staff = AuthenticatedAPIClient().authenticate_user(self.owner)
        response = staff.post(f'/api/posts/{post.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_pinned'])
