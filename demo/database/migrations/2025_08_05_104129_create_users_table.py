"""
Create the users table.
"""


def up(db):
    db.statement(
        "CREATE TABLE IF NOT EXISTS users ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name VARCHAR(255) NOT NULL, "
        "email VARCHAR(255) NOT NULL UNIQUE, "
        "password VARCHAR(255) NOT NULL, "
        "email_verified_at TIMESTAMP NULL, "
        "remember_token VARCHAR(100) NULL, "
        "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, "
        "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
    )


def down(db):
    db.statement("DROP TABLE IF EXISTS users")
