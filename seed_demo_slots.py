#!/usr/bin/env python3
"""
Script to seed two demo users with swappable slots and print their access tokens
"""

from datetime import timedelta

from app.database import Base, SessionLocal, engine
from app.domain.slots.schemas import EventCreate
from app.domain.slots.service import SlotService
from app.models import SlotStatus, User, utcnow
from app.security_utils import create_access_token

DEMO_USERS = [
    ("alice@example.com", "Alice", "Standup", 9),
    ("bob@example.com", "Bob", "Review", 14),
]


def get_or_create_user(db, email: str, full_name: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_demo_slots():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()

    try:
        print("🔍 Seeding demo users and slots...\n")
        tomorrow = (utcnow() + timedelta(days=1)).replace(
            minute=0, second=0, microsecond=0
        )
        service = SlotService(db)

        for email, name, title, hour in DEMO_USERS:
            user = get_or_create_user(db, email, name)
            start = tomorrow.replace(hour=hour)
            event = service.create_event(
                EventCreate(title=title, startTime=start, endTime=start + timedelta(minutes=30)),
                user,
            )
            service.update_status(event.id, SlotStatus.SWAPPABLE, user)

            print(f"   ✅ {name} <{email}>: slot {event.id} '{title}' at {start:%Y-%m-%d %H:%M}")
            print(f"      Bearer {create_access_token(user.id)}\n")

    except Exception as e:
        print(f"❌ Error: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_slots()
