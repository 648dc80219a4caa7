"""
User model
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

from kestrel import Model
from kestrel.hashing import default_hasher

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class User(Model):
    table = "users"
    fillable = (
        "id",
        "name",
        "email",
        "password",
        "email_verified_at",
        "remember_token",
        "created_at",
        "updated_at",
    )
    hidden = ("password", "remember_token")

    @property
    def full_name(self) -> str:
        return self.get("name", "")

    def is_email_verified(self) -> bool:
        return bool(self.get("email_verified_at"))

    def mark_email_as_verified(self) -> bool:
        self.set("email_verified_at", now())
        return self.save()

    def set_password(self, password: str) -> None:
        self.set("password", default_hasher.hash(password))

    def verify_password(self, password: str) -> bool:
        return default_hasher.verify(self.get("password") or "", password)

    @classmethod
    def search(cls, term: str) -> List["User"]:
        """Users whose name or email contains ``term``."""
        pattern = f"%{term}%"
        rows = cls.get_database().select(
            f"SELECT * FROM {cls.get_table()} WHERE name LIKE ? OR email LIKE ?",
            [pattern, pattern],
        )
        return [cls.from_row(row) for row in rows]

    @classmethod
    def get_recent(cls, days: int = 7) -> List["User"]:
        cutoff = (datetime.now() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)
        return cls.query().where("created_at", ">=", cutoff).latest().get()

    @classmethod
    def get_stats(cls) -> Dict[str, int]:
        cutoff = (datetime.now() - timedelta(days=30)).strftime(TIMESTAMP_FORMAT)
        row = cls.get_database().first(
            "SELECT COUNT(*) AS total_users, "
            "COUNT(CASE WHEN email_verified_at IS NOT NULL THEN 1 END) AS verified_users, "
            "COUNT(CASE WHEN created_at >= ? THEN 1 END) AS new_users "
            f"FROM {cls.get_table()}",
            [cutoff],
        )
        return {
            "total_users": row["total_users"] if row else 0,
            "verified_users": row["verified_users"] if row else 0,
            "new_users": row["new_users"] if row else 0,
        }

    def to_array(self) -> Dict[str, Any]:
        data = super().to_array()
        data["full_name"] = self.full_name
        data["email_verified"] = self.is_email_verified()
        return data
