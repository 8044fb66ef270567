"""Factory for generating test Detection instances."""

from datetime import UTC

import factory
from faker import Faker

from rhinoguard.models.detection import Detection

fake = Faker()


class DetectionFactory(factory.Factory):
    """Factory for Detection model.

    Usage:
        # A confident human sighting from a camera trap
        detection = DetectionFactory()

        # A low-confidence rhino that should not offer an alert
        detection = DetectionFactory(rhino=True)

        # A drone sighting of a vehicle
        detection = DetectionFactory(class_name="vehicle", source="drone_02")
    """

    class Meta:
        model = Detection

    id = factory.Sequence(lambda n: f"det-{n:04d}")
    class_name = "human"
    confidence = 0.9
    # Kruger National Park bounding box
    gps_lat = factory.LazyFunction(lambda: fake.pyfloat(min_value=-25.5, max_value=-22.4))
    gps_lng = factory.LazyFunction(lambda: fake.pyfloat(min_value=30.9, max_value=32.0))
    timestamp = factory.LazyFunction(lambda: fake.date_time_this_month(tzinfo=UTC))
    source = "camera_trap_north"
    is_threat_likely = True
    zone = factory.LazyFunction(lambda: f"Sector {fake.random_uppercase_letter()}")

    class Params:
        rhino = factory.Trait(
            class_name="rhino",
            confidence=0.5,
            is_threat_likely=False,
        )
