"""API views for listings."""

from __future__ import annotations

from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .models import FlatListing
from .serializers import FlatListingSerializer
from . import services


class FlatHandoverViewSet(viewsets.GenericViewSet):
    """Broker-side actions on flats assigned to them."""

    queryset = FlatListing.objects.all()
    serializer_class = FlatListingSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r"\d+"

    @action(detail=True, methods=["post"], url_path="confirm-handover")
    def confirm_handover(self, request, pk=None):  # type: ignore
        flat = services.confirm_handover(listing_id=int(pk), broker=request.user)
        return Response(
            {
                "detail": "Handover confirmed. Listing marked as booked.",
                "listing": self.get_serializer(flat).data,
            }
        )
