"""Bounded in-memory byte pipe for a single writer and a single reader.

Writes block while the buffer holds ``capacity`` bytes, so a slow reader
applies backpressure to the writer and memory stays bounded regardless of how
many bytes flow through.
"""

import asyncio
from collections.abc import AsyncIterator


class ClosedPipeError(Exception):
    def __init__(self) -> None:
        super().__init__("io: read/write on closed pipe")


class PipeAbortedError(Exception):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"pipe writer aborted: {cause}")
        self.cause = cause


class _PipeState:
    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("pipe capacity must be positive")
        self.capacity = capacity
        self.buffer = bytearray()
        self.readable = asyncio.Event()
        self.writable = asyncio.Event()
        self.writable.set()
        self.write_closed = False
        self.write_error: BaseException | None = None
        self.read_closed = False

    def wake_all(self) -> None:
        self.readable.set()
        self.writable.set()


class PipeWriter:
    def __init__(self, state: _PipeState) -> None:
        self._state = state

    @property
    def closed(self) -> bool:
        return self._state.write_closed

    async def write(self, data: bytes) -> int:
        state = self._state
        view = memoryview(data)
        written = 0
        while written < len(view):
            await state.writable.wait()
            if state.read_closed or state.write_closed:
                raise ClosedPipeError()
            room = state.capacity - len(state.buffer)
            chunk = view[written : written + room]
            state.buffer += chunk
            written += len(chunk)
            state.readable.set()
            if len(state.buffer) >= state.capacity:
                state.writable.clear()
        return written

    def close(self, exc: BaseException | None = None) -> None:
        state = self._state
        if state.write_closed:
            return
        state.write_closed = True
        state.write_error = exc
        state.wake_all()


class PipeReader:
    def __init__(self, state: _PipeState) -> None:
        self._state = state

    @property
    def closed(self) -> bool:
        return self._state.read_closed

    async def read(self, size: int = -1) -> bytes:
        state = self._state
        await state.readable.wait()
        if state.read_closed:
            raise ClosedPipeError()
        if state.buffer:
            if size < 0 or size >= len(state.buffer):
                chunk = bytes(state.buffer)
                state.buffer.clear()
            else:
                chunk = bytes(state.buffer[:size])
                del state.buffer[:size]
            if not state.buffer and not state.write_closed:
                state.readable.clear()
            state.writable.set()
            return chunk
        if state.write_error is not None:
            raise PipeAbortedError(state.write_error) from state.write_error
        return b""

    def close(self) -> None:
        state = self._state
        if state.read_closed:
            return
        state.read_closed = True
        state.buffer.clear()
        state.wake_all()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk


class Pipe:
    def __init__(self, capacity: int = 65536) -> None:
        state = _PipeState(capacity)
        self.reader = PipeReader(state)
        self.writer = PipeWriter(state)
