"""CLI context management for service connections and shared state."""

import os
from dataclasses import dataclass, field

from schemagraph import Neo4jConfig, SchemaGraph
from schemagraph.vectors import DEFAULT_COLLECTION


def get_database_url(url: str | None) -> str:
    """Resolve ledger URL from CLI arg, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. SCHEMAGRAPH_URL environment variable
    3. Default: sqlite:///./schemagraph.db
    """
    if url:
        return url
    if env_url := os.getenv("SCHEMAGRAPH_URL"):
        return env_url
    return "sqlite:///./schemagraph.db"


def get_neo4j_config() -> Neo4jConfig | None:
    """Neo4j settings from NEO4J_* environment variables, if NEO4J_URI is set."""
    uri = os.getenv("NEO4J_URI")
    if not uri:
        return None
    return Neo4jConfig(
        uri=uri,
        user=os.getenv("NEO4J_USER", "neo4j"),
        password=os.getenv("NEO4J_PASSWORD", ""),
        database=os.getenv("NEO4J_DATABASE", "neo4j"),
    )


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages the SchemaGraph lifecycle and output preferences.
    """

    database_url: str
    echo: bool
    json_output: bool
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    collection: str = DEFAULT_COLLECTION
    embeddings: str = "fastembed"
    llm: str = "groq"
    _db: SchemaGraph | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(cls, database_url: str, echo: bool, json_output: bool) -> "CLIContext":
        return cls(
            database_url=database_url,
            echo=echo,
            json_output=json_output,
            qdrant_url=os.getenv("QDRANT_URL", "http://localhost:6333"),
            qdrant_api_key=os.getenv("QDRANT_API_KEY"),
            collection=os.getenv("SCHEMAGRAPH_COLLECTION", DEFAULT_COLLECTION),
            embeddings=os.getenv("SCHEMAGRAPH_EMBEDDINGS", "fastembed"),
            llm=os.getenv("SCHEMAGRAPH_LLM", "groq"),
        )

    def get_db(self) -> SchemaGraph:
        """Get or create the SchemaGraph instance (lazy initialization).

        Returns:
            SchemaGraph instance
        """
        if self._db is None:
            self._db = SchemaGraph(
                self.database_url,
                graph=get_neo4j_config(),
                qdrant_url=self.qdrant_url,
                qdrant_api_key=self.qdrant_api_key,
                collection=self.collection,
                embedding_provider=self.embeddings,
                llm=self.llm,
                echo=self.echo,
            )
        return self._db

    def close(self) -> None:
        """Close connections if open."""
        if self._db is not None:
            self._db.close()
            self._db = None
