from django.apps import AppConfig
from django.conf import settings


class ApiConfig(AppConfig):
    name = "api"
    verbose_name = "Ride matching API"

    def ready(self):
        if getattr(settings, "RIDEFLOW_START_SWEEPERS", False):
            from . import services
            services.start_sweepers()
