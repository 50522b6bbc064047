"""
Marketplace service - listing status changes and favorites.
"""
from django.db import transaction
from core.constants import ListingStatus
from core.exceptions import InvalidTransitionError, PermissionDeniedError
from core.services import BaseService
from .models import Listing, Favorite

ALLOWED = {
    ListingStatus.ACTIVE: {ListingStatus.RESERVED, ListingStatus.SOLD, ListingStatus.ARCHIVED},
    ListingStatus.RESERVED: {ListingStatus.ACTIVE, ListingStatus.SOLD, ListingStatus.ARCHIVED},
    ListingStatus.SOLD: {ListingStatus.ARCHIVED},
    ListingStatus.ARCHIVED: set(),
}


class ListingService(BaseService):

    @transaction.atomic
    def change_status(self, listing: Listing, new_status: str, user) -> Listing:
        """Only the seller may change the status of a listing"""
        listing = Listing.objects.select_for_update().get(pk=listing.pk)
        if listing.seller_id != user.id:
            raise PermissionDeniedError("Only the seller can change this listing")
        if new_status not in ALLOWED[listing.status]:
            raise InvalidTransitionError(
                f"Cannot change listing from {listing.status} to {new_status}",
                details={'from': listing.status, 'to': new_status}
            )
        listing.status = new_status
        listing.save()
        self.log_info("Listing status changed", listing_id=listing.id, status=new_status)
        return listing

    def toggle_favorite(self, listing: Listing, user) -> bool:
        """Returns True when the listing is now a favorite"""
        favorite, created = Favorite.objects.get_or_create(user=user, listing=listing)
        if not created:
            favorite.delete()
        return created
