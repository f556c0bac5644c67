from sqlalchemy import select
from database.models import Admins


async def fetch_admin(session, username: str):
    result = await session.execute(
        select(Admins).where(Admins.username == username)
    )
    return result.scalars().first()


async def fetch_admin_by_id(session, admin_id: int):
    result = await session.execute(
        select(Admins).where(Admins.id == admin_id)
    )
    return result.scalars().first()
