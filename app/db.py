from loguru import logger
from tortoise import connections

from app import settings

TORTOISE_ORM = {
    "connections": {"default": settings.db_url},
    "apps": {"models": {"models": ["app.models"], "default_connection": "default"}},
    "use_tz": True,
    "timezone": "UTC",
}

# Active bookings on one resource may never share an instant. Enforced by
# Postgres itself so that several workers cannot race past the in-process lock.
_EXCLUSION_CONSTRAINT_SQL = """
CREATE EXTENSION IF NOT EXISTS btree_gist;
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM pg_constraint WHERE conname = 'bookings_no_overlap'
    ) THEN
        ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap
        EXCLUDE USING gist (
            resource_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
        ) WHERE (status IN ('pending', 'confirmed', 'in_progress'));
    END IF;
END
$$;
"""


def is_postgres(url: str) -> bool:
    return url.startswith(("postgres://", "asyncpg://", "psycopg://"))


async def install_overlap_constraint() -> bool:
    """Install the overlap exclusion constraint. No-op outside Postgres."""
    if not is_postgres(settings.db_url):
        logger.info("Skipping overlap exclusion constraint for non-Postgres database")
        return False
    conn = connections.get("default")
    await conn.execute_script(_EXCLUSION_CONSTRAINT_SQL)
    logger.info("Overlap exclusion constraint ensured on bookings")
    return True
