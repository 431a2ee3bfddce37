from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings
from .debug import get_debug_logger
from .models import Base, IAModel

SQLALCHEMY_DATABASE_URL = get_settings().database_url

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Non-custom models available out of the box; their keys come from the environment
DEFAULT_MODELS = [
    {"name": "DeepSeek", "url": "https://openrouter.ai/api/v1/chat/completions"},
    {"name": "Groq", "url": "https://api.groq.com/openai/v1/chat/completions"},
    {
        "name": "Gemini",
        "url": "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent",
    },
]


def create_tables(bind=None):
    """Create all database tables."""
    Base.metadata.create_all(bind=bind or engine)
    get_debug_logger().debug_db("[Piper] Tables created/verified")


def seed_default_models(db: Session) -> int:
    """Insert the default models when the table is empty. Returns rows added."""
    if db.query(IAModel).count():
        return 0
    for entry in DEFAULT_MODELS:
        db.add(IAModel(name=entry["name"], url=entry["url"], api_key="", is_custom=False))
    db.commit()
    get_debug_logger().debug_db(f"[Piper] Seeded {len(DEFAULT_MODELS)} default models")
    return len(DEFAULT_MODELS)
