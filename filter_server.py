"""
SensorFilt WebSocket Server

Host process around the filtering pipeline. It:
1. Accepts raw IMU samples (acceleration, angular rate) from a websocket client
2. Runs the Butterworth filter + derivative pipeline on every cycle
3. Broadcasts filtered data (accel, jerk, angular rate, angular acceleration)
   to every connected client

The variant decides which channels run and how cycles are scheduled:
- accel / gyro: one cycle per new primary sample (400 Hz)
- combined: self-paced fixed-period loop (800 Hz)

Usage:
    SFILT_VARIANT=combined python filter_server.py
"""

import asyncio
import json
import os
from typing import Any, Dict, Optional

import websockets

from sensorfilt import (
    FilteringConfig,
    InvalidSpec,
    ResultRecord,
    build_cycle,
    get_variant,
    make_driver,
)

# =============================================================================
# Configuration
# =============================================================================

HOST = os.getenv("SFILT_HOST", "0.0.0.0")
PORT = int(os.getenv("SFILT_PORT", "8766"))
VARIANT = os.getenv("SFILT_VARIANT", "combined").strip().lower()

# Records waiting to be broadcast; oldest are dropped when clients fall behind
PUBLISH_QUEUE_SIZE = 256


# =============================================================================
# Helpers
# =============================================================================

def json_safe(x):
    if x is None:
        return None
    if isinstance(x, (str, int, float, bool)):
        return x
    if isinstance(x, (list, tuple)):
        return [json_safe(v) for v in x]
    if isinstance(x, dict):
        return {str(k): json_safe(v) for k, v in x.items()}
    return str(x)


def is_command_message(msg: dict) -> bool:
    return msg.get("type") in ("cmd", "command")


def is_sample_message(msg: dict) -> bool:
    return msg.get("type") == "sample"


# =============================================================================
# Filter Host
# =============================================================================

class FilterHost:
    """Owns the cycle, its driver and the publish queue for one server."""

    def __init__(self, config: FilteringConfig, variant_name: str = "combined", max_cycles: Optional[int] = None):
        self.variant = get_variant(variant_name)
        self.config = config
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=PUBLISH_QUEUE_SIZE)
        self.dropped = 0
        self.cycle = build_cycle(config, self.variant, output=self.publish)
        self.driver = make_driver(self.variant, self.cycle, max_cycles=max_cycles)
        self.clients = set()

    def publish(self, record: ResultRecord) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(record)

    def status(self) -> Dict[str, Any]:
        st = self.cycle.status()
        st.update({
            "type": "status",
            "variant": self.variant.name,
            "sample_rate_hz": self.variant.sample_rate_hz,
            "driver": self.variant.driver,
            "dropped": self.dropped,
            "clients": len(self.clients),
        })
        return json_safe(st)

    def handle_message(self, msg: Any) -> Optional[Dict[str, Any]]:
        """
        Apply one client message.

        Returns:
            Reply to send back to that client, or None
        """
        if not isinstance(msg, dict):
            return None

        if is_sample_message(msg):
            channel = msg.get("channel")
            if not isinstance(channel, str):
                return None
            inp = self.cycle.inputs.get(channel)
            if inp is None:
                return None
            if inp.push(msg.get("xyz") or (), msg.get("t")):
                self.driver.on_sample(channel)
            return None

        if is_command_message(msg):
            action = msg.get("action")
            if action == "status":
                return self.status()
            if action == "reset":
                self.cycle.reset()
                return {"type": "ack", "action": "reset", "ok": True}
            return {"type": "ack", "action": action, "ok": False, "error": "unknown_action"}

        return None


host: Optional[FilterHost] = None


# =============================================================================
# WebSocket Broadcast
# =============================================================================

async def broadcast(msg: dict):
    if host is None or not host.clients:
        return
    data = json.dumps(msg)
    dead = []
    for ws in list(host.clients):
        try:
            await ws.send(data)
        except Exception:
            dead.append(ws)
    for ws in dead:
        host.clients.discard(ws)


async def publish_loop():
    while True:
        record = await host.queue.get()
        payload = record.to_dict()
        payload["type"] = "filtered"
        await broadcast(payload)


# =============================================================================
# Client Handler
# =============================================================================

async def handle_client(ws):
    host.clients.add(ws)
    print(f"[WS] Client connected ({len(host.clients)} total)")

    try:
        await ws.send(json.dumps(host.status()))

        async for raw in ws:
            try:
                msg = json.loads(raw)
            except Exception:
                continue

            reply = host.handle_message(msg)
            if reply is not None:
                await ws.send(json.dumps(reply))
    except websockets.exceptions.ConnectionClosed:
        pass
    finally:
        host.clients.discard(ws)
        print("[WS] Client disconnected")


# =============================================================================
# Main
# =============================================================================

async def main():
    global host

    try:
        config = FilteringConfig.from_env()
        host = FilterHost(config, VARIANT)
    except InvalidSpec as e:
        print(f"[Filter] Invalid configuration: {e}")
        raise SystemExit(1)

    print("SensorFilt Server")
    print(f"WebSocket: ws://{HOST}:{PORT}")
    print(f"Variant: {host.variant.name} ({', '.join(host.variant.channels)})")
    print(f"Sample rate: {host.variant.sample_rate_hz} Hz, driver: {host.variant.driver}")
    for name, orders in host.cycle.status()["orders"].items():
        print(f"[Filter] {name}: primary order {orders['primary']}, derived order {orders['derived']}")

    server = await websockets.serve(
        handle_client, HOST, PORT,
        ping_interval=20,
        ping_timeout=20
    )
    publisher = asyncio.create_task(publish_loop())
    try:
        await host.driver.run()
    finally:
        publisher.cancel()
        server.close()
        await server.wait_closed()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n[Filter] Stopped")


if __name__ == "__main__":
    run()
