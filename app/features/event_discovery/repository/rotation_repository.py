"""Durable interest rotation offsets, keyed by (city, interest signature)."""

from app.db.helpers import fetch_val, with_db_retry


class RotationRepository:
    @classmethod
    @with_db_retry(max_retries=2)
    async def get_offset(cls, city_key: str, signature: str) -> int:
        query = """
            SELECT rotation_offset
            FROM interest_rotation
            WHERE city = %s AND interest_signature = %s
        """
        value = await fetch_val(query, (city_key, signature))
        return int(value) if value is not None else 0

    @classmethod
    @with_db_retry(max_retries=2)
    async def set_offset(cls, city_key: str, signature: str, offset: int) -> None:
        query = """
            INSERT INTO interest_rotation (city, interest_signature, rotation_offset, updated_at)
            VALUES (%s, %s, %s, now())
            ON CONFLICT (city, interest_signature) DO UPDATE
            SET rotation_offset = EXCLUDED.rotation_offset,
                updated_at = now()
            RETURNING rotation_offset
        """
        await fetch_val(query, (city_key, signature, offset))
