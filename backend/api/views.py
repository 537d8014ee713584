import math

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from drivers.models import VehicleClass
from geo.place import Place
from rides.models import ActorRole, RideStatus
from . import services
from .serializers import (
    AvailableDriversQuerySerializer,
    BookRideSerializer,
    CancelRideSerializer,
    CompleteRideSerializer,
    FareEstimateSerializer,
    LocationUpdateSerializer,
    RateRideSerializer,
    RejectRideSerializer,
    RideHistoryQuerySerializer,
    TipSerializer,
)


class IsRider(permissions.BasePermission):
    message = "Only riders can perform this action"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == ActorRole.RIDER)


class IsDriver(permissions.BasePermission):
    message = "Only drivers can perform this action"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == ActorRole.DRIVER)


def _place(data) -> Place:
    return Place(lat=data["lat"], lng=data["lng"], address=data.get("address", ""))


def _location_kwargs(data):
    return {
        "latitude": data["latitude"],
        "longitude": data["longitude"],
        "heading": data.get("heading"),
        "speed": data.get("speed"),
        "accuracy": data.get("accuracy"),
        "reported_at": data.get("timestamp"),
    }


class DriverLocationView(APIView):
    permission_classes = [IsDriver]

    def post(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        position = services.get_engine().locations.update_driver_location(
            request.user.id, **_location_kwargs(serializer.validated_data)
        )
        return Response({"success": True, "location": position.to_dict()})


class RiderLocationView(APIView):
    permission_classes = [IsRider]

    def get(self, request):
        position = services.get_engine().locations.rider_location(request.user.id)
        return Response({"success": True, "location": position.to_dict()})

    def post(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        position = services.get_engine().locations.update_rider_location(
            request.user.id, **_location_kwargs(serializer.validated_data)
        )
        return Response({"success": True, "location": position.to_dict()})


class AvailableDriversView(APIView):
    """
    Nearby matchable drivers. `radius` and the returned distances are in metres.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        serializer = AvailableDriversQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        query = serializer.validated_data

        vehicle_class = VehicleClass.parse(query["vehicleType"]) if query.get("vehicleType") else None
        candidates = services.get_engine().matcher.nearby(
            query["latitude"], query["longitude"], query["radius"] / 1000.0, vehicle_class
        )
        return Response({
            "success": True,
            "drivers": [candidate.to_dict() for candidate in candidates],
            "count": len(candidates),
            "radius": query["radius"],
        })


class RideViewSet(viewsets.ViewSet):
    """
    Ride booking and lifecycle.
    - Rider: estimate / book / tip / rate / cancel / status / active / history
    - Driver: accept / reject / arrive / start / complete / rate / cancel / status / active / history
    """
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=False, methods=['post'], permission_classes=[IsRider])
    def estimate(self, request):
        serializer = FareEstimateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        estimate = services.get_engine().dispatcher.estimate_fare(
            request.user.id,
            _place(data["pickup"]),
            _place(data["dropoff"]),
            data["vehicleType"],
            data.get("duration"),
        )
        return Response({"success": True, "estimate": estimate.to_dict()})

    @action(detail=False, methods=['post'], permission_classes=[IsRider])
    def book(self, request):
        serializer = BookRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        ride = services.get_engine().dispatcher.book_ride(
            request.user.id,
            _place(data["pickup"]) if data.get("pickup") else None,
            _place(data["dropoff"]) if data.get("dropoff") else None,
            data.get("vehicleType"),
            estimate_id=data.get("estimateId"),
            payment_method=data["paymentMethod"],
            scheduled_for=data.get("scheduledTime"),
            special_instructions=data.get("specialInstructions") or None,
        )
        return Response({"success": True, "ride": ride.to_dict()}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put'], permission_classes=[IsDriver])
    def accept(self, request, pk=None):
        ride = services.get_engine().dispatcher.accept(pk, request.user.id)
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'], permission_classes=[IsDriver])
    def reject(self, request, pk=None):
        serializer = RejectRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ride = services.get_engine().dispatcher.reject(pk, request.user.id, serializer.validated_data.get("reason"))
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'], permission_classes=[IsDriver])
    def arrive(self, request, pk=None):
        ride = services.get_engine().lifecycle.arrive(pk, request.user.id)
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'], permission_classes=[IsDriver])
    def start(self, request, pk=None):
        ride = services.get_engine().lifecycle.start(pk, request.user.id)
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'], permission_classes=[IsDriver])
    def complete(self, request, pk=None):
        serializer = CompleteRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ride = services.get_engine().lifecycle.complete(
            pk, request.user.id, data.get("actualDistance"), data.get("actualDuration")
        )
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'])
    def cancel(self, request, pk=None):
        serializer = CancelRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ride = services.get_engine().dispatcher.cancel(
            pk, request.user.actor, serializer.validated_data.get("cancellationReason")
        )
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'], permission_classes=[IsRider])
    def tip(self, request, pk=None):
        serializer = TipSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ride = services.get_engine().lifecycle.add_tip(pk, request.user.id, serializer.validated_data["tipAmount"])
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['put'])
    def rate(self, request, pk=None):
        serializer = RateRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ride = services.get_engine().lifecycle.rate(pk, request.user.actor, data["rating"], data.get("comment") or None)
        return Response({"success": True, "ride": ride.to_dict()})

    @action(detail=True, methods=['get'], url_path='status')
    def ride_status(self, request, pk=None):
        ride = services.get_engine().dispatcher.ride_status(pk, request.user.actor)
        return Response({"success": True, "ride": ride})

    @action(detail=False, methods=['get'])
    def active(self, request):
        ride = services.get_engine().dispatcher.active_ride(request.user.actor)
        return Response({"success": True, "ride": ride})

    @action(detail=False, methods=['get'])
    def history(self, request):
        serializer = RideHistoryQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        query = serializer.validated_data

        statuses = [RideStatus(query["status"])] if query.get("status") else None
        limit = query["limit"]
        rides, total = services.get_engine().dispatcher.ride_history(
            request.user.actor, statuses, limit=limit, offset=(query["page"] - 1) * limit
        )
        return Response({
            "success": True,
            "rides": [ride.to_dict() for ride in rides],
            "pagination": {
                "page": query["page"],
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        })
