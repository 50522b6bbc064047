from django.db.models import Q
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from core.constants import ListingStatus
from core.exceptions import PermissionDeniedError
from api.filters import ResidenceQueryFilterBackend
from residences.access import filter_by_accessible_residences
from .models import Listing
from .serializers import ListingSerializer
from .services import ListingService


class ListingViewSet(viewsets.ModelViewSet):
    """
    Residents' marketplace.

    List shows ACTIVE listings of the user's residences.
    Filters: ?residence=, ?category=, ?search=, ?min_price=, ?max_price=
    """
    serializer_class = ListingSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [ResidenceQueryFilterBackend]

    def get_queryset(self):
        queryset = filter_by_accessible_residences(
            Listing.objects.select_related('seller', 'residence'), self.request.user
        )
        if self.action != 'list':
            return queryset

        params = self.request.query_params
        queryset = queryset.filter(status=ListingStatus.ACTIVE)
        if params.get('category'):
            queryset = queryset.filter(category__iexact=params['category'])
        if params.get('search'):
            term = params['search']
            queryset = queryset.filter(Q(title__icontains=term) | Q(description__icontains=term))
        if params.get('min_price'):
            queryset = queryset.filter(price__gte=params['min_price'])
        if params.get('max_price'):
            queryset = queryset.filter(price__lte=params['max_price'])
        return queryset

    def perform_create(self, serializer):
        serializer.save(seller=self.request.user)

    def _require_seller(self, listing):
        if listing.seller_id != self.request.user.id:
            raise PermissionDeniedError("You can only modify your own listings")

    def perform_update(self, serializer):
        self._require_seller(serializer.instance)
        serializer.save()

    def perform_destroy(self, instance):
        self._require_seller(instance)
        instance.delete()

    def _change_status(self, request, new_status):
        listing = ListingService().change_status(self.get_object(), new_status, request.user)
        return Response(ListingSerializer(listing, context={'request': request}).data)

    @action(detail=True, methods=['post'], url_path='mark-sold')
    def mark_sold(self, request, pk=None):
        return self._change_status(request, ListingStatus.SOLD)

    @action(detail=True, methods=['post'])
    def reserve(self, request, pk=None):
        return self._change_status(request, ListingStatus.RESERVED)

    @action(detail=True, methods=['post'])
    def archive(self, request, pk=None):
        return self._change_status(request, ListingStatus.ARCHIVED)

    @action(detail=True, methods=['post'])
    def favorite(self, request, pk=None):
        """Toggle the listing in the user's favorites"""
        is_favorite = ListingService().toggle_favorite(self.get_object(), request.user)
        return Response(
            {'is_favorite': is_favorite},
            status=status.HTTP_201_CREATED if is_favorite else status.HTTP_200_OK
        )

    @action(detail=False, methods=['get'])
    def favorites(self, request):
        listings = self.get_queryset().filter(favorited_by__user=request.user)
        return Response(ListingSerializer(listings, many=True, context={'request': request}).data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        """Listings of the current user, every status"""
        listings = Listing.objects.filter(seller=request.user).select_related('residence')
        return Response(ListingSerializer(listings, many=True, context={'request': request}).data)
