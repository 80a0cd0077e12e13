"""CLI context management for database connections and shared state."""

from dataclasses import dataclass, field

from tablewright import InMemorySchemaSource, SchemaDocument, Tablewright


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages the Tablewright lifecycle and output preferences.
    """

    database_url: str
    echo: bool
    json_output: bool
    _tw: Tablewright | None = field(default=None, init=False, repr=False)

    def get_tablewright(self) -> Tablewright:
        """Get or create a database-backed Tablewright (lazy initialization)."""
        if self._tw is None:
            self._tw = Tablewright(url=self.database_url, echo=self.echo)
        return self._tw

    def from_document(self, document: SchemaDocument) -> Tablewright:
        """Tablewright over a schema file instead of the database."""
        self.close()
        self._tw = Tablewright(source=InMemorySchemaSource.from_document(document))
        return self._tw

    def close(self) -> None:
        """Close the Tablewright instance if open."""
        if self._tw is not None:
            self._tw.close()
            self._tw = None
