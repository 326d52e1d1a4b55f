from django.apps import AppConfig


class DjangoFacilityDMConfig(AppConfig):
    name = "django_facility_dm"
    verbose_name = "Facility Direct Messages"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from . import realtime

        realtime.connect_signals()
