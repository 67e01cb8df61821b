"""
One-shot fixture loader: four users with distinct roles and five students.

    python -m gateway.seed
"""
import argparse
import asyncio

from gateway.api.models import ModelRegistry
from gateway.api.settings import get_settings
from gateway.api.utils.logger import write_log

TEMP_USERS = (
    {"username": "testuser1", "email": "hello@robin.com", "password": "rwieruch", "role": "DIRECTOR"},
    {"username": "testuser2", "email": "hello@david.com", "password": "ddavids", "role": "MANAGER"},
    {"username": "testuser3", "email": "hello@peter.com", "password": "peter22", "role": "TEACHER"},
    {"username": "testuser4", "email": "hello@amy.com", "password": "amy22222", "role": "CAMPUS"},
)

BASE_STUDENT = {
    "full_name": "testuser1",
    "email": "hello@robin.com",
    "school": "rwieruch",
    "phone_number": "8888888",
    "parent_name": "PP Lee",
    "parent_email": "aaa@gmail.com",
    "parent_phone_number": "99999999",
    "parent_relationship": "FATHER",
    "remark": "Test",
}

TEMP_STUDENT_NAMES = ("testuser1", "testuser2222", "testuser333", "testuser444", "testuser5555")


async def create_temp_users(models):
    write_log({"event": "seed_users", "count": len(TEMP_USERS)}, stream="seed")
    return [await models.users.create(**fields) for fields in TEMP_USERS]


async def create_temp_students(models):
    write_log({"event": "seed_students", "count": len(TEMP_STUDENT_NAMES)}, stream="seed")
    students = []
    for name in TEMP_STUDENT_NAMES:
        students.append(await models.students.create(**dict(BASE_STUDENT, full_name=name)))
    return students


async def seed_database(models) -> bool:
    """Populate an empty database. Returns False when users already exist."""
    if await models.users.count() > 0:
        write_log({"event": "seed_skipped", "reason": "users table not empty"}, stream="seed")
        return False
    await create_temp_users(models)
    await create_temp_students(models)
    write_log({"event": "seed_complete"}, stream="seed")
    return True


async def _run(database_url: str):
    models = ModelRegistry(database_url)
    try:
        await models.connect()
        await seed_database(models)
    finally:
        await models.close()


def main():
    parser = argparse.ArgumentParser(description="Seed the gateway database with fixture rows")
    parser.add_argument("--database-url", default=get_settings().database_url, help="SQLAlchemy async URL")
    args = parser.parse_args()
    asyncio.run(_run(args.database_url))


if __name__ == "__main__":
    main()
