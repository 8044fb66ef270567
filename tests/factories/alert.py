"""Factories for generating test Alert and RangerPosition instances."""

from datetime import UTC, datetime

import factory
from faker import Faker

from rhinoguard.models.alert import (
    Alert,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertType,
    Location,
    RangerPosition,
)

fake = Faker()


class AlertFactory(factory.Factory):
    """Factory for Alert model.

    Usage:
        # A sent alert created now
        alert = AlertFactory()

        # A resolved alert
        alert = AlertFactory(resolved=True)

        # An alert for a given detection at a given time
        alert = AlertFactory(detection_id="det-1", created_at=some_datetime)
    """

    class Meta:
        model = Alert

    id = factory.Sequence(lambda n: f"RG-{100000 + n}")
    detection_id = factory.LazyFunction(lambda: f"cam-{fake.uuid4()}")
    source = AlertSource.CAMERA_TRAP
    type = AlertType.HUMAN_DETECTED
    severity = AlertSeverity.HIGH
    status = AlertStatus.SENT
    location = factory.LazyFunction(
        lambda: Location(
            latitude=fake.pyfloat(min_value=-25.5, max_value=-22.4),
            longitude=fake.pyfloat(min_value=30.9, max_value=32.0),
            zone_label=f"Sector {fake.random_uppercase_letter()}",
        )
    )
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyAttribute(lambda o: o.created_at)
    created_by = factory.LazyFunction(fake.name)
    notes = ""
    delivery_channel_status = factory.LazyFunction(lambda: ["sms"])

    class Params:
        acknowledged = factory.Trait(
            status=AlertStatus.ACKNOWLEDGED,
            acknowledged_at=factory.LazyAttribute(lambda o: o.updated_at),
        )
        resolved = factory.Trait(
            status=AlertStatus.RESOLVED,
            resolved_at=factory.LazyAttribute(lambda o: o.updated_at),
        )


class RangerPositionFactory(factory.Factory):
    """Factory for RangerPosition model."""

    class Meta:
        model = RangerPosition

    id = factory.Sequence(lambda n: f"ranger-{n}")
    name = factory.LazyFunction(fake.first_name)
    latitude = factory.LazyFunction(lambda: fake.pyfloat(min_value=-25.5, max_value=-22.4))
    longitude = factory.LazyFunction(lambda: fake.pyfloat(min_value=30.9, max_value=32.0))
    last_update = factory.LazyFunction(lambda: datetime.now(UTC))
