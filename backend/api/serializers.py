from rest_framework import serializers

from drivers.models import VehicleClass
from rides.models import PaymentMethod

VEHICLE_CHOICES = [vehicle_class.value for vehicle_class in VehicleClass]
PAYMENT_CHOICES = [method.value for method in PaymentMethod]


class PlaceSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)


class LocationUpdateSerializer(serializers.Serializer):
    # range checks are the engine's (LocationUpdate.validate)
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    heading = serializers.FloatField(required=False)
    speed = serializers.FloatField(required=False)
    accuracy = serializers.FloatField(required=False)
    timestamp = serializers.DateTimeField(required=False)


class AvailableDriversQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    radius = serializers.IntegerField(required=False, default=5000, min_value=1, max_value=50000)  # metres
    vehicleType = serializers.ChoiceField(choices=VEHICLE_CHOICES, required=False)


class FareEstimateSerializer(serializers.Serializer):
    pickup = PlaceSerializer()
    dropoff = PlaceSerializer()
    vehicleType = serializers.ChoiceField(choices=VEHICLE_CHOICES, required=False, default=VehicleClass.SEDAN.value)
    duration = serializers.IntegerField(required=False, min_value=0)


class BookRideSerializer(serializers.Serializer):
    estimateId = serializers.CharField(required=False)
    pickup = PlaceSerializer(required=False)
    dropoff = PlaceSerializer(required=False)
    vehicleType = serializers.ChoiceField(choices=VEHICLE_CHOICES, required=False)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_CHOICES, required=False, default=PaymentMethod.WALLET.value)
    scheduledTime = serializers.DateTimeField(required=False)
    specialInstructions = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        if not attrs.get("estimateId"):
            missing = [name for name in ("pickup", "dropoff", "vehicleType") if not attrs.get(name)]
            if missing:
                raise serializers.ValidationError(
                    f"Either estimateId or {', '.join(missing)} must be provided"
                )
        return attrs


class RejectRideSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class CompleteRideSerializer(serializers.Serializer):
    actualDistance = serializers.FloatField(required=False, min_value=0)  # km
    actualDuration = serializers.IntegerField(required=False, min_value=0)  # minutes


class CancelRideSerializer(serializers.Serializer):
    # mandatory, but enforced by the lifecycle so every caller gets the same error
    cancellationReason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class TipSerializer(serializers.Serializer):
    tipAmount = serializers.FloatField()


class RateRideSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, max_length=500)


class RideHistoryQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1, min_value=1)
    limit = serializers.IntegerField(required=False, default=10, min_value=1, max_value=50)
    status = serializers.ChoiceField(choices=["completed", "cancelled"], required=False)
