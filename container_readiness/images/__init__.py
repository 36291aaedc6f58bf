from container_readiness.images.base import Image, descriptor
from container_readiness.images.generic import GenericImage
from container_readiness.images.kafka import Kafka

__all__ = ["GenericImage", "Image", "Kafka", "descriptor"]
