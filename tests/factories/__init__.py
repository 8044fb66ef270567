"""Test data factories using factory_boy.

These factories generate realistic test data for RhinoGuard models.
"""

from tests.factories.alert import AlertFactory, RangerPositionFactory
from tests.factories.detection import DetectionFactory

__all__ = [
    "AlertFactory",
    "DetectionFactory",
    "RangerPositionFactory",
]
