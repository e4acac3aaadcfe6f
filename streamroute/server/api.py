from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from streamroute.core.errors import MalformedRoutingTable, StoreCommandError, StoreError
from .registry import StreamRegistry


class PushRequest(BaseModel):
    fields: Dict[str, str]
    id: str = "*"


class RoutingTableRequest(BaseModel):
    routes: Dict[str, str]


class ReadRequest(BaseModel):
    after_id: Optional[str] = None
    count: int = Field(default=10, gt=0)


class AckRequest(BaseModel):
    ids: List[str]


def create_app(registry: Optional[StreamRegistry] = None) -> FastAPI:
    app = FastAPI(title="Streamroute Message Router")
    app.state.registry = registry = registry or StreamRegistry()

    async def get_router(stream: str):
        try:
            return await registry.get_router(stream)
        except StoreError as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.post("/streams/{stream}/messages")
    async def push(stream: str, request: PushRequest):
        router = await get_router(stream)
        try:
            message_id = await router.push(request.fields, request.id)
        except StoreCommandError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"message_id": message_id}

    @app.post("/streams/{stream}/route")
    async def route(stream: str):
        router = await get_router(stream)
        try:
            await router.load_routing_table()
        except MalformedRoutingTable as e:
            raise HTTPException(status_code=422, detail=str(e))
        return await router.msg_group()

    @app.get("/streams/{stream}/routing-table")
    async def get_routing_table(stream: str):
        router = await get_router(stream)
        table = router.routing_table
        return {"routes": dict(table.routes) if table is not None else {}}

    @app.put("/streams/{stream}/routing-table")
    async def set_routing_table(stream: str, request: RoutingTableRequest):
        router = await get_router(stream)
        try:
            table = await router.set_routing_table(request.routes)
        except MalformedRoutingTable as e:
            raise HTTPException(status_code=422, detail=str(e))
        return {"routes": dict(table.routes)}

    @app.get("/streams/{stream}/groups/{group}/pending")
    async def pending(
        stream: str,
        group: str,
        consumer: Optional[str] = None,
        count: int = 10,
        start: str = "-",
        end: str = "+",
    ):
        router = await get_router(stream)
        try:
            entries = await router.read_consumer_pending_msg(
                group, consumer, count, start, end
            )
        except StoreCommandError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"entries": entries}

    @app.post("/streams/{stream}/consumers/{consumer}/read")
    async def read(stream: str, consumer: str, request: ReadRequest):
        router = await get_router(stream)
        try:
            messages = await router.read_group_msg(
                router.config.group, consumer, request.after_id, request.count
            )
        except StoreCommandError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"messages": messages}

    @app.post("/streams/{stream}/groups/{group}/ack")
    async def ack(stream: str, group: str, request: AckRequest):
        router = await get_router(stream)
        try:
            acked = await router.ack(group, request.ids)
        except StoreCommandError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"acked": acked}

    return app


app = create_app()
