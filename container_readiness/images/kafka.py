from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from container_readiness.models import WaitFor, message_on_stdout

NAME = "confluentinc/cp-kafka"
DEFAULT_TAG = "6.1.1"

KAFKA_PORT = 9093
ZOOKEEPER_PORT = 2181

READY_MESSAGE = "Creating new log file"

# zookeeper runs in the same container, started before the broker
_STARTUP_SCRIPT = f"""
echo 'clientPort={ZOOKEEPER_PORT}' > zookeeper.properties;
echo 'dataDir=/var/lib/zookeeper/data' >> zookeeper.properties;
echo 'dataLogDir=/var/lib/zookeeper/log' >> zookeeper.properties;
zookeeper-server-start zookeeper.properties &
. /etc/confluent/docker/bash-config &&
/etc/confluent/docker/configure &&
/etc/confluent/docker/launch"""


def _default_env_vars() -> dict[str, str]:
    return {
        "KAFKA_ZOOKEEPER_CONNECT": f"localhost:{ZOOKEEPER_PORT}",
        "KAFKA_LISTENERS": f"PLAINTEXT://0.0.0.0:{KAFKA_PORT},BROKER://0.0.0.0:9092",
        "KAFKA_LISTENER_SECURITY_PROTOCOL_MAP": "BROKER:PLAINTEXT,PLAINTEXT:PLAINTEXT",
        "KAFKA_INTER_BROKER_LISTENER_NAME": "BROKER",
        "KAFKA_ADVERTISED_LISTENERS": (
            f"PLAINTEXT://localhost:{KAFKA_PORT},BROKER://localhost:9092"
        ),
        "KAFKA_BROKER_ID": "1",
        "KAFKA_OFFSETS_TOPIC_REPLICATION_FACTOR": "1",
    }


@dataclass(slots=True)
class Kafka:
    """Single-node Kafka broker with an embedded zookeeper."""

    image_tag: str = DEFAULT_TAG
    environment: dict[str, str] = field(default_factory=_default_env_vars)

    def name(self) -> str:
        return NAME

    def tag(self) -> str:
        return self.image_tag

    def ready_conditions(self) -> list[WaitFor]:
        return [message_on_stdout(READY_MESSAGE)]

    def env_vars(self) -> Iterator[tuple[str, str]]:
        return iter(self.environment.items())

    def args(self) -> list[str]:
        return ["/bin/bash", "-c", _STARTUP_SCRIPT]

    def with_tag(self, tag: str) -> Kafka:
        return replace(self, image_tag=tag, environment=dict(self.environment))
