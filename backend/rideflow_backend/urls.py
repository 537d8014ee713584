from django.urls import path, include
from rest_framework.routers import DefaultRouter
from api.views import RideViewSet, DriverLocationView, RiderLocationView, AvailableDriversView

router = DefaultRouter(trailing_slash=False)
router.register(r'rides', RideViewSet, basename='ride')

urlpatterns = [
    path('api/v1/', include(router.urls)),
    path('api/v1/drivers/location', DriverLocationView.as_view(), name='driver-location'),
    path('api/v1/riders/location', RiderLocationView.as_view(), name='rider-location'),
    path('api/v1/riders/available-drivers', AvailableDriversView.as_view(), name='available-drivers'),
]
