from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from simbot.config import settings
from simbot.database import get_db
from simbot.logging_config import get_logger, setup_logging
from simbot.models import Conversation, Message
from simbot.routers import admin, chat, conversations, documents
from simbot.services.chat_service import shutdown_message_buffer

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="SIM Bot API",
    description="WhatsApp sales assistant for SIM purchases and number portability",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(conversations.router)
app.include_router(documents.router)
app.include_router(admin.router)


@app.on_event("shutdown")
async def flush_message_buffer() -> None:
    await shutdown_message_buffer()
    logger.info("Message buffer flushed")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    conversations_count = db.query(Conversation).count()
    messages_count = db.query(Message).count()
    return {
        "status": "ok",
        "conversations": conversations_count,
        "messages": messages_count,
    }
