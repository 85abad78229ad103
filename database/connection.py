"""
💾 DATABASE CONNECTION MODULE
==============================
Handles all Supabase interactions with retry logic and error handling.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from supabase import Client, create_client
from tenacity import retry, stop_after_attempt, wait_exponential

from config.settings import settings


class DatabaseConnection:
    """
    Singleton class for Supabase database operations.

    Usage:
        from database.connection import db

        # Query records
        deals = db.query("deals", filters={"tenant_id": tenant_id}, order_by="-health_score")

        # Update records matching a filter
        db.update_where("deals", {"id": deal_id, "tenant_id": tenant_id}, {"health_score": 72})

        # Upsert (insert or update)
        db.upsert("deal_health_config", row, conflict_columns=["tenant_id", "user_id"])
    """

    _instance: Optional['DatabaseConnection'] = None
    _client: Optional[Client] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize the Supabase client."""
        url = settings.database.supabase_url
        key = settings.database.supabase_key

        if not url or not key:
            logger.warning("⚠️ Supabase credentials not configured!")
            logger.info("Set SUPABASE_URL and SUPABASE_KEY in your .env file")
            return

        try:
            self._client = create_client(url, key)
            logger.info("✅ Connected to Supabase successfully")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Supabase: {e}")
            raise

    @property
    def client(self) -> Client:
        """Get the Supabase client, initializing if needed."""
        if self._client is None:
            self._initialize_client()
        if self._client is None:
            raise RuntimeError("Supabase is not configured (SUPABASE_URL / SUPABASE_KEY)")
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def insert(
        self,
        table: str,
        data: Dict[str, Any]
    ) -> Optional[Dict]:
        """
        Insert a single record into a table.

        Args:
            table: Table name
            data: Dictionary of column:value pairs

        Returns:
            The inserted record or None if nothing came back
        """
        try:
            clean_data = self._serialize_data(data)

            response = self.client.table(table).insert(clean_data).execute()

            if response.data:
                logger.debug(f"Inserted record into {table}")
                return response.data[0]
            return None

        except Exception as e:
            logger.error(f"Insert error in {table}: {e}")
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def upsert(
        self,
        table: str,
        data: Dict[str, Any],
        conflict_columns: List[str]
    ) -> Optional[Dict]:
        """
        Insert or update a record based on conflict columns.

        Args:
            table: Table name
            data: Dictionary of column:value pairs
            conflict_columns: Columns that determine uniqueness

        Returns:
            The upserted record
        """
        try:
            clean_data = self._serialize_data(data)

            response = (
                self.client
                .table(table)
                .upsert(clean_data, on_conflict=",".join(conflict_columns))
                .execute()
            )

            if response.data:
                logger.debug(f"Upserted record in {table}")
                return response.data[0]
            return None

        except Exception as e:
            logger.error(f"Upsert error in {table}: {e}")
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def query(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        exclude: Optional[Dict[str, List[Any]]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict]:
        """
        Query records from a table.

        Args:
            table: Table name
            columns: Comma-separated column names or "*" for all
            filters: Dictionary of column:value pairs for WHERE clause
                     (a list value becomes an IN filter)
            exclude: Dictionary of column:[values] for NOT IN filters
            order_by: Column name to sort by (prefix with - for DESC)
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            List of matching records
        """
        try:
            query = self.client.table(table).select(columns)

            # Apply filters
            if filters:
                for col, val in filters.items():
                    if isinstance(val, list):
                        query = query.in_(col, val)
                    else:
                        query = query.eq(col, val)

            if exclude:
                for col, values in exclude.items():
                    query = query.not_.in_(col, list(values))

            # Apply ordering
            if order_by:
                if order_by.startswith("-"):
                    query = query.order(order_by[1:], desc=True)
                else:
                    query = query.order(order_by)

            # Apply pagination
            if limit:
                query = query.limit(limit)
            if offset:
                query = query.offset(offset)

            response = query.execute()
            return response.data

        except Exception as e:
            logger.error(f"Query error in {table}: {e}")
            raise

    def get_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict]:
        """Get the first record matching the filters."""
        results = self.query(table, filters=filters, limit=1)
        return results[0] if results else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def update_where(
        self,
        table: str,
        filters: Dict[str, Any],
        data: Dict[str, Any]
    ) -> List[Dict]:
        """
        Update every record matching the filters.

        Args:
            table: Table name
            filters: column:value equality filters (e.g. id + tenant_id)
            data: Fields to update

        Returns:
            Updated records
        """
        try:
            clean_data = self._serialize_data(data)

            query = self.client.table(table).update(clean_data)
            for col, val in filters.items():
                query = query.eq(col, val)
            response = query.execute()

            logger.debug(f"Updated {len(response.data)} record(s) in {table}")
            return response.data

        except Exception as e:
            logger.error(f"Update error in {table}: {e}")
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete records matching the filters; returns the number removed."""
        try:
            query = self.client.table(table).delete()
            for col, val in filters.items():
                query = query.eq(col, val)
            response = query.execute()
            logger.debug(f"Deleted {len(response.data)} record(s) from {table}")
            return len(response.data)
        except Exception as e:
            logger.error(f"Delete error in {table}: {e}")
            raise

    @staticmethod
    def _serialize_data(data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert Python objects to JSON-serializable types."""
        result = {}
        for key, value in data.items():
            if isinstance(value, (datetime, date)):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result


# Singleton instance - use this in other modules
db = DatabaseConnection()
