import asyncio
import json
import logging
import ssl

from aiomqtt import Client

from parkit import config

logger = logging.getLogger(__name__)

GATE_ENTRY = "entry"
GATE_EXIT = "exit"

# Pending publishes; the event loop only keeps weak references to tasks.
background_tasks = set()


def gate_topic(lot_code: str, gate: str):
    return f"{config.MQTT_TOPIC_PREFIX}/{lot_code}/{gate}"


def build_tls_context():
    tls_context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    tls_context.load_verify_locations(cafile=config.MQTT_CA_CERT)
    tls_context.load_cert_chain(certfile=config.MQTT_CLIENT_CERT, keyfile=config.MQTT_CLIENT_KEY)
    return tls_context


async def publish_mqtt(topic: str, message: str):
    try:
        tls_context = None

        if config.MQTT_TLS_ENABLED:
            logger.info("TLS is enabled. Setting up SSL context.")
            tls_context = build_tls_context()

        port = config.MQTT_TLS_PORT if config.MQTT_TLS_ENABLED else config.MQTT_PORT
        logger.info(f"Connecting to MQTT broker at {config.MQTT_HOST}:{port}")

        async with Client(
            hostname=config.MQTT_HOST,
            port=port,
            username=config.MQTT_USERNAME,
            password=config.MQTT_PASSWORD,
            tls_context=tls_context
        ) as client:
            await client.publish(topic, message.encode())
            logger.info(f"Published '{message}' to '{topic}'")
    except Exception as e:
        logger.error(f"MQTT publish to '{topic}' failed: {e}")


def open_gate(lot_code: str, gate: str, plate_number: str, session_id: int):
    """Schedule an "open" signal for a lot's gate; no-op when MQTT is not configured."""
    if not config.MQTT_HOST:
        return None
    message = json.dumps({"action": "open", "plate_number": plate_number, "session_id": session_id})
    task = asyncio.create_task(publish_mqtt(gate_topic(lot_code, gate), message))
    background_tasks.add(task)
    task.add_done_callback(background_tasks.discard)
    return task
