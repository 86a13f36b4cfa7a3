"""Contact repository (PostgreSQL)."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from rapport.models.contact import Contact
from rapport.repositories.base import ContactStore
from rapport.repositories.reminder import translate_errors


class ContactRepository(BaseRepository[Contact], ContactStore):
    table_name = "contacts"
    primary_key = "email"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._database = db

    def _row_to_entity(self, row: dict) -> Contact:
        return Contact(
            email=row["email"],
            display_name=row.get("display_name"),
            last_received_at=row.get("last_received_at"),
            last_sent_at=row.get("last_sent_at"),
            last_meeting_at=row.get("last_meeting_at"),
            last_activity_at=row.get("last_activity_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Contact) -> dict:
        return {
            "email": entity.email,
            "display_name": entity.display_name,
            "last_received_at": entity.last_received_at,
            "last_sent_at": entity.last_sent_at,
            "last_meeting_at": entity.last_meeting_at,
            "last_activity_at": entity.last_activity_at,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    def get(self, email: str) -> Contact | None:
        with translate_errors():
            row = self._database.fetch_one(
                "SELECT * FROM contacts WHERE email = %s",
                (email,),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def upsert(self, contact: Contact) -> Contact:
        """Insert or merge; ``GREATEST`` keeps concurrent writers monotonic."""
        row = self._entity_to_row(contact)
        columns = list(row)
        with translate_errors():
            result = self._database.fetch_one(
                f"INSERT INTO contacts ({', '.join(columns)}) "
                f"VALUES ({', '.join(['%s'] * len(columns))}) "
                "ON CONFLICT (email) DO UPDATE SET "
                "  display_name = COALESCE(EXCLUDED.display_name, contacts.display_name), "
                "  last_received_at = GREATEST(contacts.last_received_at, "
                "                              EXCLUDED.last_received_at), "
                "  last_sent_at = GREATEST(contacts.last_sent_at, EXCLUDED.last_sent_at), "
                "  last_meeting_at = GREATEST(contacts.last_meeting_at, "
                "                             EXCLUDED.last_meeting_at), "
                "  last_activity_at = GREATEST(contacts.last_activity_at, "
                "                              EXCLUDED.last_activity_at), "
                "  updated_at = GREATEST(contacts.updated_at, EXCLUDED.updated_at) "
                "RETURNING *",
                tuple(row.values()),
                as_dict=True,
            )
        return self._row_to_entity(result)

    def count(self) -> int:
        with translate_errors():
            return int(self._database.fetch_value("SELECT COUNT(*) FROM contacts") or 0)
