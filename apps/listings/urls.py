"""URL routing for listings."""

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import FlatHandoverViewSet

router = DefaultRouter()
router.register(r"flats", FlatHandoverViewSet, basename="flat")

urlpatterns = [path("", include(router.urls))]
