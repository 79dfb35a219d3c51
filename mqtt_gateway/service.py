"""Gateway service - subscribes to source topics and writes decoded points to targets."""

import asyncio
import logging
import signal
from dataclasses import asdict
from typing import Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from mqtt_gateway.config import Config
from mqtt_gateway.dispatcher import Dispatcher
from mqtt_gateway.router import Router
from mqtt_gateway.targets.factory import create_adapter

logger = logging.getLogger(__name__)


class GatewayService:
    """Service that feeds MQTT messages through the router into the dispatcher.

    paho runs its network loop in its own thread; every message is handed
    to the asyncio loop, where it is decoded and queued for the targets.
    """

    def __init__(self, config: Config, router: Optional[Router] = None):
        self.config = config
        self.router = router or Router(config.sources)
        self.dispatcher: Optional[Dispatcher] = None
        self.client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None

    def _on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties):
        """Callback when connected to MQTT broker."""
        if reason_code == 0:
            logger.info(f"Connected to MQTT broker at {self.config.mqtt.broker}:{self.config.mqtt.port}")
            # Subscribe to every source prefix, also after reconnects
            for topic in self.router.subscriptions():
                client.subscribe(topic, qos=self.config.mqtt.qos)
                logger.info(f"Subscribed to: {topic}")
        else:
            logger.error(f"Failed to connect to MQTT broker, reason: {reason_code}")

    def _on_disconnect(self, client: mqtt.Client, userdata, disconnect_flags, reason_code, properties):
        """Callback when disconnected from MQTT broker."""
        if reason_code != 0:
            logger.warning(f"Unexpected disconnection from MQTT broker (reason={reason_code}), reconnecting")
        else:
            logger.info("Disconnected from MQTT broker")

    def _on_message(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage):
        """Callback when a message is received (paho network thread)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self.handle_message, msg.topic, msg.payload)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping message from {msg.topic}")

    def handle_message(self, topic: str, payload: bytes) -> int:
        """Decode a message and queue its points for every target of its source.

        Args:
            topic: The MQTT topic (e.g., "solar/114190641177/0/powerdc")
            payload: The message payload

        Returns:
            Number of point writes queued.
        """
        routed = self.router.route(topic, payload)
        if routed is None or self.dispatcher is None:
            return 0

        queued = 0
        for point in routed.points:
            logger.debug(f"{routed.source.name}: {point}")
            queued += self.dispatcher.dispatch(routed.source.name, point)
        return queued

    def build_dispatcher(self) -> Dispatcher:
        """Create the dispatcher with one adapter per configured target."""
        adapters = {
            source.name: [create_adapter(target) for target in source.targets]
            for source in self.config.sources
        }
        for source in self.config.sources:
            labels = ", ".join(target.label for target in source.targets) or "no targets"
            logger.info(f"Source {source.name} ({source.type.value}) on {source.subscription} -> {labels}")
        return Dispatcher.from_adapters(adapters, self.config.dispatch)

    def _create_client(self) -> mqtt.Client:
        # Create MQTT client (paho-mqtt v2 API)
        client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config.mqtt.client_id,
        )
        if self.config.mqtt.username:
            client.username_pw_set(self.config.mqtt.username, self.config.mqtt.password)
        client.reconnect_delay_set(min_delay=1, max_delay=60)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    def log_stats(self) -> None:
        """Log router and per-target counters."""
        logger.info(f"Messages: {asdict(self.router.stats)}, devices: {len(self.router.states)}")
        if self.dispatcher is not None:
            for name, stats in self.dispatcher.stats().items():
                logger.info(f"Target {name}: {stats}")

    async def _report_stats(self) -> None:
        while True:
            await asyncio.sleep(self.config.stats_interval)
            self.log_stats()

    def stop(self) -> None:
        """Request shutdown; safe to call from signal handlers."""
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        def signal_handler(signum):
            signame = signal.Signals(signum).name
            logger.info(f"Received {signame}, shutting down...")
            self.stop()

        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                self._loop.add_signal_handler(signum, signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Cannot install handler for {signal.Signals(signum).name}")

    async def run(self) -> None:
        """Run the gateway until stopped."""
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()

        self.dispatcher = self.build_dispatcher()
        self.dispatcher.start()

        self.client = self._create_client()
        logger.info(f"Connecting to MQTT broker at {self.config.mqtt.broker}:{self.config.mqtt.port}")
        # The network loop keeps retrying until the broker is reachable
        self.client.connect_async(
            self.config.mqtt.broker,
            self.config.mqtt.port,
            keepalive=self.config.mqtt.keepalive,
        )
        self.client.loop_start()

        stats_task = None
        if self.config.stats_interval > 0:
            stats_task = asyncio.create_task(self._report_stats())

        try:
            await self._stop_event.wait()
        finally:
            if stats_task is not None:
                stats_task.cancel()
            self.client.disconnect()
            self.client.loop_stop()
            await self.dispatcher.shutdown()
            self.log_stats()
            logger.info("Gateway service stopped")


def run(config: Config) -> None:
    """Run the gateway service (blocking)."""
    service = GatewayService(config)
    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
