"""
Telemetry sink: every check run publishes one JSON record, either the ProbeResult of the
attempt which got a response or a FailureRecord, to a Kafka topic keyed by monitor id.
"""
import json
import logging

from kafka import KafkaConsumer, KafkaProducer
from kafka.admin import KafkaAdminClient, NewTopic

SEND_TIMEOUT_SECS = 10


class KafkaTelemetrySink(object):
    def __init__(self, config, producer=None):
        self.logger = logging.getLogger(__name__ + ".KafkaTelemetrySink")
        self.topic = config.telemetry_topic
        self.bootstrap_servers = config.kafka_bootstrap_servers
        self.kafka_certfile = config.kafka_certfile
        self.kafka_keyfile = config.kafka_keyfile
        self.kafka_cafile = config.kafka_cafile
        self.producer = producer

    def common_kafka_args(self):
        args = dict(bootstrap_servers=self.bootstrap_servers, client_id="webprobe-checker")
        if self.kafka_certfile:
            args.update(
                security_protocol="SSL",
                ssl_certfile=self.kafka_certfile,
                ssl_keyfile=self.kafka_keyfile,
                ssl_cafile=self.kafka_cafile,
            )
        return args

    def ensure_topic(self):
        """
        Create the telemetry topic if it's missing
        """
        consumer = KafkaConsumer(group_id="webprobe-checker", **self.common_kafka_args())
        try:
            existing_topics = consumer.topics()
        finally:
            consumer.close()

        if self.topic not in existing_topics:
            admin_client = KafkaAdminClient(**self.common_kafka_args())
            try:
                self.logger.info("Creating topic: %s", self.topic)
                admin_client.create_topics(
                    [NewTopic(name=self.topic, num_partitions=1, replication_factor=1)],
                    timeout_ms=30_000,
                )
            finally:
                admin_client.close()

    def start(self):
        if self.producer is None:
            self.producer = KafkaProducer(
                value_serializer=lambda m: json.dumps(m.asdict()).encode("utf-8"),
                retries=3,
                **self.common_kafka_args(),
            )

    def send(self, monitor_id, record):
        """
        Publish a ProbeResult or FailureRecord and wait for the broker to acknowledge it.
        Errors are raised to the caller.
        """
        self.logger.debug("Sending telemetry for %s to Kafka: %s", monitor_id, record)
        future = self.producer.send(self.topic, key=monitor_id.encode("utf-8"), value=record)
        record_metadata = future.get(timeout=SEND_TIMEOUT_SECS)
        self.logger.debug("Successfully sent telemetry to Kafka topic: %s", record_metadata)

    def close(self):
        if self.producer is not None:
            self.producer.flush()
            self.producer.close()
            self.producer = None
