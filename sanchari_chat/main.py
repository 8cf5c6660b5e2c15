import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sanchari_chat.config import settings
from sanchari_chat.database.connection import close_mongo_connection, connect_to_mongo
from sanchari_chat.exceptions import MessagingError
from sanchari_chat.routers.conversations import router as conversations_router
from sanchari_chat.routers.groups import router as groups_router
from sanchari_chat.routers.notifications import router as notifications_router
from sanchari_chat.routers.realtime import manager as realtime_manager
from sanchari_chat.routers.realtime import router as realtime_router
from sanchari_chat.utils.realtime_bus import close_bus, get_bus


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    await get_bus()
    try:
        yield
    finally:
        await realtime_manager.close_all()
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Sanchari messaging", lifespan=lifespan)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(conversations_router)
app.include_router(groups_router)
app.include_router(notifications_router)
app.include_router(realtime_router)


@app.get("/")
async def root():
    return {"status": "ok"}
