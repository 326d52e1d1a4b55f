"""Facility model: the care facility a consumer writes to."""

from django.conf import settings
from django.db import models

from .base import TimeStampedModel


class Facility(TimeStampedModel):
    """A disability-care facility managed by a single operator account.

    Only the fields messaging depends on are kept here. The operator is the
    account that reads and answers the facility's conversations.
    """

    name = models.CharField(max_length=255)
    district = models.CharField(
        max_length=100,
        blank=True,
        help_text="Tokyo ward or city (e.g., 'Setagaya')",
    )
    address = models.CharField(max_length=500, blank=True)
    operator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="operated_facilities",
        help_text="Facility operator account that answers messages",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Facility"
        verbose_name_plural = "Facilities"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["operator"], name="fdm_facility_operator_idx"),
            models.Index(fields=["district", "is_active"], name="fdm_facility_district_idx"),
        ]

    def __str__(self):
        return self.name
