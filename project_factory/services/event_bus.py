"""Lifecycle event publishing (Kafka, or the log when no broker is configured)."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from confluent_kafka import Producer

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.core.flow_logging import truncated

logger = logging.getLogger(__name__)


class EventBusPublisher(Protocol):
    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class KafkaConfig:
    bootstrap_servers: str
    client_id: str = "project-factory"
    publish_timeout_seconds: float = 10.0


def _producer_conf(config: KafkaConfig) -> dict[str, Any]:
    return {
        "bootstrap.servers": config.bootstrap_servers,
        "client.id": config.client_id,
        "enable.idempotence": True,
    }


def _encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, default=str, separators=(",", ":")).encode("utf-8")


class KafkaEventBusPublisher:
    def __init__(self, config: KafkaConfig, *, producer: Producer | None = None) -> None:
        if not config.bootstrap_servers.strip():
            raise RuntimeError("KAFKA_BOOTSTRAP_SERVERS_MISSING")
        self.config = config
        self._producer = producer or Producer(_producer_conf(config))

    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        payload_bytes = _encode(payload)
        delivery: dict[str, Any] = {}

        def _on_delivery(err, msg) -> None:
            delivery["error"] = err
            delivery["message"] = msg

        self._producer.produce(
            topic=topic,
            key=(key or "").encode("utf-8"),
            value=payload_bytes,
            on_delivery=_on_delivery,
        )
        deadline = time.monotonic() + max(0.1, self.config.publish_timeout_seconds)
        while "message" not in delivery:
            self._producer.poll(0.1)
            if time.monotonic() >= deadline:
                logger.error("event_publish_timeout topic=%s key=%s", topic, key)
                raise_error("COMMON", 500, "KAFKA_ERROR", f"Timed out publishing to {topic}")
        if delivery.get("error") is not None:
            logger.error("event_publish_failed topic=%s key=%s error=%s", topic, key, delivery["error"])
            raise_error("COMMON", 500, "KAFKA_ERROR", f"{topic}: {delivery['error']}")
        msg = delivery["message"]
        logger.info(
            "event_published topic=%s partition=%s offset=%s bytes=%s",
            topic,
            msg.partition(),
            msg.offset(),
            len(payload_bytes),
        )


class LogEventBusPublisher:
    """Writes events to the log; used when KAFKA_BOOTSTRAP_SERVERS is empty."""

    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        logger.info("event_logged topic=%s key=%s payload=%s", topic, key, truncated(payload))


def build_event_bus() -> EventBusPublisher:
    if not settings.KAFKA_BOOTSTRAP_SERVERS:
        logger.warning("event_bus_kafka_disabled reason=no_bootstrap_servers")
        return LogEventBusPublisher()
    return KafkaEventBusPublisher(
        KafkaConfig(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=settings.KAFKA_CLIENT_ID,
            publish_timeout_seconds=settings.KAFKA_PUBLISH_TIMEOUT_SECONDS,
        )
    )
