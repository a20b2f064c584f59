# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the creator account.

Run once after the initial migration:
    python bin/seed_creator.py

The script reads FIRST_CREATOR_EMAIL, FIRST_CREATOR_USERNAME and
FIRST_CREATOR_PASSWORD from etc/app.conf (or the environment).  After the
row is inserted those values are no longer used by the application.

The creator is the protected super-role: no endpoint can assign it or
change it, so this script is the only way one comes into existence.  The
account is created with its e-mail already verified.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_creator.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from sqlalchemy import or_                                   # noqa: E402

from core.config import settings                             # noqa: E402
from core.logger import logger                               # noqa: E402
from core.security import hash_password                      # noqa: E402
from core.tokens import utcnow                               # noqa: E402
from database import make_engine, make_session_factory       # noqa: E402
from models.user import User                                 # noqa: E402


def seed(session_factory) -> bool:
    """Insert the creator row.  Returns False when there is nothing to do."""
    email = settings.first_creator_email
    username = settings.first_creator_username
    password = settings.first_creator_password
    if not email or not username or not password:
        logger.warning("[seed_creator] FIRST_CREATOR_* not set – nothing to do.")
        return False

    db = session_factory()
    try:
        if db.query(User.id).filter(User.role == "creator").first():
            logger.info("[seed_creator] A creator already exists – skipping.")
            return False
        if db.query(User.id).filter(or_(User.email == email, User.username == username)).first():
            logger.warning("[seed_creator] '%s' / '%s' already taken by another account – skipping.", email, username)
            return False

        db.add(User(
            email=email,
            username=username,
            password_hash=hash_password(password),
            role="creator",
            email_verified_at=utcnow(),
        ))
        db.commit()
        logger.info("[seed_creator] Creator '%s' created successfully.", username)
        return True
    finally:
        db.close()


if __name__ == "__main__":
    engine = make_engine(settings.database_url)
    try:
        seed(make_session_factory(engine))
    finally:
        engine.dispose()
