# seed.py
from sqlalchemy.orm import Session
from app.database import SessionLocal, engine
from app import models
from app.crud import user as crud_user
import logging

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

USER_DATA = [
    {"username": "alice", "full_name": "Alice Example", "is_private": False},
    {"username": "bob", "full_name": "Bob Example", "is_private": True},
    {"username": "carol", "full_name": "Carol Example", "is_private": False},
]


def seed_data(db: Session):
    logger.info("Seeding demo users...")

    user_count = 0
    for user_data in USER_DATA:
        if crud_user.get_user_by_username(db, user_data["username"]) is None:
            try:
                crud_user.create_user(db=db, **user_data)
                user_count += 1
                logger.info(f"Added user: {user_data['username']}")
            except Exception as e:
                logger.error(f"Failed to add user {user_data['username']}: {e}")
                db.rollback() # Rollback on error for this specific user
        else:
            logger.info(f"Skipped user (already exists): {user_data['username']}")

    logger.info(f"User seeding complete. Added {user_count} new users.")

if __name__ == "__main__":
    logger.info("Creating tables if they don't exist.")
    models.Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_data(db)
    except Exception as e:
        logger.error(f"An error occurred during seeding: {e}")
    finally:
        db.close()
        logger.info("Database session closed.")
