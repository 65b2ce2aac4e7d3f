import asyncio
import json


class RecordingSocket:
    """Stands in for a WebSocket; buffers every frame the gateway sends."""

    def __init__(self):
        self.frames = []
        self.closed = False

    async def send_json(self, data):
        if self.closed:
            raise RuntimeError("socket closed")
        self.frames.append(data)

    async def expect(self, event_type, timeout=2.0):
        """Remove and return the first buffered frame of ``event_type``, waiting for it if needed."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            for index, frame in enumerate(self.frames):
                if frame["type"] == event_type:
                    return self.frames.pop(index)
            if loop.time() > deadline:
                raise AssertionError(f"no {event_type} frame received; got {self.frames}")
            await asyncio.sleep(0.01)

    async def settled(self, event_type, settle=0.2):
        """Buffered frames of ``event_type`` after giving the relay time to deliver."""
        await asyncio.sleep(settle)
        return [frame for frame in self.frames if frame["type"] == event_type]


async def send_frame(gateway, connection_id, **frame):
    await gateway.dispatch(connection_id, json.dumps(frame))


async def join(gateway, display_name, room):
    """Open a connection on ``gateway`` and join ``room``.

    Returns (connection_id, socket, joinSuccess frame).
    """
    socket = RecordingSocket()
    connection_id = gateway.connect(socket)
    await send_frame(gateway, connection_id, type="join", displayName=display_name, room=room)
    success = await socket.expect("joinSuccess")
    return connection_id, socket, success
