"""Seed a demo support conversation for UI development.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Make `app` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.message import SENDER_AI, SENDER_USER
from app.services.conversations import create_conversation
from app.services.messages import append_message, list_messages

DEMO_EXCHANGE = [
    (SENDER_USER, "Hi! Do you ship internationally?"),
    (SENDER_AI, "Hi there! Right now we ship within the US. Orders over $50 ship free in 5-7 business days."),
    (SENDER_USER, "What if the shoes don't fit?"),
    (SENDER_AI, "No problem. You have 30 days to return unused items with their original tags."),
]


def seed_demo_conversation(db: Session) -> str:
    """Create one conversation holding the scripted exchange and return its id."""

    conversation = create_conversation(db)
    for sender, text in DEMO_EXCHANGE:
        append_message(db, conversation.id, sender, text)
    return conversation.id


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo support conversation.")
    parser.add_argument("--count", type=int, default=1, help="Number of demo conversations to create.")
    args = parser.parse_args()

    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        for _ in range(max(args.count, 1)):
            conversation_id = seed_demo_conversation(db)
            print(f"Seeded conversation {conversation_id} ({len(list_messages(db, conversation_id))} messages)")


if __name__ == "__main__":
    main()
