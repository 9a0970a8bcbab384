"""Raw SQL helpers for the website_suggestions cache table."""

from typing import Any

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_one


class SuggestionRepository:
    @classmethod
    async def get(cls, city_key: str) -> dict[str, Any] | None:
        query = """
            SELECT city, interests, websites, updated_at
            FROM website_suggestions
            WHERE city = %s
        """
        return await fetch_one(query, (city_key,))

    @classmethod
    async def upsert(cls, city_key: str, interests: list[str], websites: list[dict]) -> None:
        query = """
            INSERT INTO website_suggestions (city, interests, websites, updated_at)
            VALUES (%s, %s, %s, now())
            ON CONFLICT (city) DO UPDATE
            SET interests = EXCLUDED.interests,
                websites = EXCLUDED.websites,
                updated_at = now()
        """
        await execute_query(query, (city_key, interests, Jsonb(websites)))
