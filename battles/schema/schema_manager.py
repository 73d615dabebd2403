"""Schema manager for organizing and executing database schema files."""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


class SchemaManager:
    """Manages database schema creation from organized SQL files."""

    def __init__(self, schema_dir: Path | None = None):
        """Initialize schema manager with schema directory path."""
        if schema_dir is None:
            schema_dir = Path(__file__).parent

        self.schema_dir = schema_dir
        self.tables_dir = schema_dir / "tables"

        # Referenced tables come first
        self.table_creation_order = [
            "users.sql",
            "battles.sql",
            "battle_participations.sql",
            "casts.sql",
            "cast_likes.sql",
            "battle_wins.sql",
            "battle_history.sql",
            "shared_state.sql",
            "point_awards.sql",
            "indexes.sql",  # Create indexes last
        ]

    def load_schema_file(self, filename: str) -> str:
        """Load SQL content from a schema file."""
        file_path = self.tables_dir / filename

        if not file_path.exists():
            raise FileNotFoundError(f"Schema file not found: {file_path}")

        return file_path.read_text(encoding="utf-8")

    def execute_schema_file(self, cursor: sqlite3.Cursor, filename: str) -> None:
        """Execute SQL from a single schema file."""
        try:
            sql_content = self.load_schema_file(filename)

            statements = [stmt.strip() for stmt in sql_content.split(";") if stmt.strip()]

            for statement in statements:
                cursor.execute(statement)

            logger.debug(f"Executed schema file: {filename}")

        except Exception as e:
            logger.error(f"Failed to execute schema file {filename}: {e}")
            raise

    def initialize_database_schema(self, cursor: sqlite3.Cursor) -> None:
        """Initialize complete database schema by executing all schema files in order."""
        logger.info("Initializing battle database schema from files")

        for filename in self.table_creation_order:
            self.execute_schema_file(cursor, filename)

        logger.info("Battle database schema initialization completed successfully")

    def validate_schema_files(self) -> bool:
        """Validate that all expected schema files exist."""
        missing_files = [
            filename
            for filename in self.table_creation_order
            if not (self.tables_dir / filename).exists()
        ]

        if missing_files:
            logger.error(f"Missing schema files: {missing_files}")
            return False

        return True
