import httpx
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from streamroute.core.protocol import Command, pack_message, read_message


class ITransport(ABC):
    @abstractmethod
    async def request(self, command: Command, payload: Dict[str, Any]) -> Any:
        pass

    @abstractmethod
    async def close(self):
        pass


class HttpTransport(ITransport):
    def __init__(self, base_url: str, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout)

    async def request(self, command: Command, payload: Dict[str, Any]) -> Any:
        payload = dict(payload)
        stream = payload.pop("stream")
        prefix = f"{self.base_url}/streams/{stream}"

        if command == Command.PUSH:
            response = await self._client.post(f"{prefix}/messages", json=payload)

        elif command == Command.ROUTE:
            response = await self._client.post(f"{prefix}/route")

        elif command == Command.SET_ROUTING:
            response = await self._client.put(f"{prefix}/routing-table", json=payload)

        elif command == Command.READ_PENDING:
            group = payload.pop("group")
            params = {k: v for k, v in payload.items() if v is not None}
            response = await self._client.get(
                f"{prefix}/groups/{group}/pending", params=params
            )

        elif command == Command.READ_CONSUMER:
            consumer = payload.pop("consumer")
            response = await self._client.post(
                f"{prefix}/consumers/{consumer}/read", json=payload
            )

        elif command == Command.ACK:
            group = payload.pop("group")
            response = await self._client.post(
                f"{prefix}/groups/{group}/ack", json=payload
            )

        else:
            raise ValueError(f"Unknown command for HTTP transport: {command}")

        response.raise_for_status()
        return response.json()

    async def close(self):
        await self._client.aclose()


class TcpTransport(ITransport):
    def __init__(self, host: str, port: int, timeout: float = 60.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()

    async def _ensure_connected(self):
        if self._writer is None:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.timeout
            )

    def _drop_connection(self):
        if self._writer is not None:
            self._writer.close()
        self._writer = None
        self._reader = None

    async def _roundtrip(self, command: Command, payload: Dict[str, Any]) -> Any:
        await self._ensure_connected()
        writer = self._writer
        reader = self._reader
        if writer is None or reader is None:
            raise ConnectionError("Failed to connect to server")

        try:
            writer.write(pack_message(command, payload))
            await writer.drain()
            version, cmd, body = await asyncio.wait_for(
                read_message(reader), self.timeout
            )
        except (Exception, asyncio.CancelledError):
            # A reply may still arrive for this request; never reuse the stream
            self._drop_connection()
            raise
        return body

    async def request(self, command: Command, payload: Dict[str, Any]) -> Any:
        async with self._lock:
            try:
                body = await self._roundtrip(command, payload)
            except (
                asyncio.IncompleteReadError,
                ConnectionResetError,
                BrokenPipeError,
                ConnectionError,
            ):
                # Try to reconnect once
                body = await self._roundtrip(command, payload)

            if isinstance(body, dict) and "error" in body:
                raise RuntimeError(body["error"])
            return body

    async def close(self):
        if self._writer:
            self._writer.close()
            await self._writer.wait_closed()
            self._writer = None
