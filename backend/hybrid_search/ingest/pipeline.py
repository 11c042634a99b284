"""Collection indexing."""

from __future__ import annotations

import fnmatch
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator

from hybrid_search.core.config import Settings
from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import INDEX_SIZE
from hybrid_search.db.sqlite import SQLiteDatabase
from hybrid_search.retrieval.vector_index import VectorIndex, VectorRetriever, vector_to_bytes
from hybrid_search.utils.hashing import sha256_text
from hybrid_search.utils.text import extract_title
from hybrid_search.utils.time import now_s

logger = get_logger(__name__)


@dataclass(slots=True)
class IndexStats:
    collection: str
    indexed: int = 0
    unchanged: int = 0
    removed: int = 0
    unembedded: int = 0

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(slots=True)
class CollectionInfo:
    name: str
    path: str
    doc_count: int
    created_at: int


class IndexPipeline:
    """Keep a directory's text files mirrored into the search tables."""

    def __init__(
        self,
        database: SQLiteDatabase,
        settings: Settings,
        embedder: VectorRetriever,
        vector_index: VectorIndex | None = None,
    ) -> None:
        self.db = database
        self.settings = settings
        self.embedder = embedder
        self.vector_index = vector_index

    def index_path(self, path: Path) -> IndexStats:
        root = path.expanduser().resolve()
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        with self.db.transaction():
            collection_id, name = self._ensure_collection(root)
        stats = IndexStats(collection=name)
        seen: set[str] = set()
        for file_path in self._discover(root):
            relative = file_path.relative_to(root).as_posix()
            seen.add(relative)
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable file %s: %s", file_path, exc)
                continue
            with self.db.transaction():
                changed = self._index_document(collection_id, relative, file_path, content, stats)
            if changed:
                logger.info("Indexed: %s", relative)
        with self.db.transaction():
            stats.removed = self._remove_missing(collection_id, seen)
            self.db.execute("UPDATE collections SET updated_at = ? WHERE id = ?", [now_s(), collection_id])
        self._refresh_gauge()
        return stats

    def drop_collection(self, name: str) -> bool:
        row = self.db.execute("SELECT id FROM collections WHERE name = ?", [name]).fetchone()
        if row is None:
            return False
        doc_ids = [r["id"] for r in self.db.query("SELECT id FROM documents WHERE collection_id = ?", [row["id"]])]
        with self.db.transaction() as cursor:
            cursor.execute(
                "DELETE FROM documents_fts WHERE rowid IN (SELECT id FROM documents WHERE collection_id = ?)",
                [row["id"]],
            )
            cursor.execute(
                "DELETE FROM document_embeddings WHERE document_id IN "
                "(SELECT id FROM documents WHERE collection_id = ?)",
                [row["id"]],
            )
            cursor.execute("DELETE FROM documents WHERE collection_id = ?", [row["id"]])
            cursor.execute("DELETE FROM collections WHERE id = ?", [row["id"]])
        if self.vector_index is not None:
            self.vector_index.remove(doc_ids)
        self._refresh_gauge()
        return True

    def list_collections(self) -> list[CollectionInfo]:
        rows = self.db.query(
            """
            SELECT c.name, c.path, c.created_at, COUNT(d.id) AS doc_count
            FROM collections c LEFT JOIN documents d ON c.id = d.collection_id
            GROUP BY c.id ORDER BY c.created_at DESC, c.id DESC
            """
        )
        return [
            CollectionInfo(
                name=row["name"],
                path=row["path"],
                doc_count=int(row["doc_count"]),
                created_at=int(row["created_at"]),
            )
            for row in rows
        ]

    def update_all(self) -> list[IndexStats]:
        results: list[IndexStats] = []
        for info in self.list_collections():
            logger.info("Updating collection %s at %s", info.name, info.path)
            try:
                results.append(self.index_path(Path(info.path)))
            except NotADirectoryError as exc:
                logger.warning("Collection %s is no longer available: %s", info.name, exc)
        return results

    # Internal helpers -------------------------------------------------

    def _discover(self, root: Path) -> Iterator[Path]:
        for file_path in sorted(root.rglob("*")):
            if not file_path.is_file():
                continue
            if any(fnmatch.fnmatch(file_path.name, pattern) for pattern in self.settings.index_patterns):
                yield file_path

    def _ensure_collection(self, root: Path) -> tuple[int, str]:
        name = root.name
        now = now_s()
        self.db.execute(
            "INSERT OR IGNORE INTO collections (name, path, created_at, updated_at) VALUES (?, ?, ?, ?)",
            [name, str(root), now, now],
        )
        row = self.db.execute("SELECT id FROM collections WHERE name = ?", [name]).fetchone()
        return int(row["id"]), name

    def _index_document(
        self,
        collection_id: int,
        relative: str,
        file_path: Path,
        content: str,
        stats: IndexStats,
    ) -> bool:
        digest = sha256_text(content)
        existing = self.db.execute(
            "SELECT id, hash FROM documents WHERE collection_id = ? AND path = ?",
            [collection_id, relative],
        ).fetchone()
        title = extract_title(content, file_path)
        if existing is not None and existing["hash"] == digest:
            stats.unchanged += 1
            if not self._has_embedding(int(existing["id"])):
                self._embed_document(int(existing["id"]), title, content, stats)
            return False

        now = now_s()
        if existing is None:
            cursor = self.db.execute(
                """
                INSERT INTO documents (collection_id, path, title, content, hash, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [collection_id, relative, title, content, digest, now, now],
            )
            doc_id = int(cursor.lastrowid)
        else:
            doc_id = int(existing["id"])
            self.db.execute(
                "UPDATE documents SET title = ?, content = ?, hash = ?, updated_at = ? WHERE id = ?",
                [title, content, digest, now, doc_id],
            )
        self.db.execute("DELETE FROM documents_fts WHERE rowid = ?", [doc_id])
        self.db.execute(
            "INSERT INTO documents_fts (rowid, title, content) VALUES (?, ?, ?)",
            [doc_id, title, content],
        )
        self._embed_document(doc_id, title, content, stats)
        stats.indexed += 1
        return True

    def _has_embedding(self, doc_id: int) -> bool:
        row = self.db.execute(
            "SELECT 1 FROM document_embeddings WHERE document_id = ? AND model = ? AND dim = ?",
            [doc_id, self.settings.embedding_model, self.settings.embedding_dim],
        ).fetchone()
        return row is not None

    def _embed_document(self, doc_id: int, title: str, content: str, stats: IndexStats) -> None:
        self.db.execute("DELETE FROM document_embeddings WHERE document_id = ?", [doc_id])
        vector = self.embedder.embed(content, role="document", title=title)
        if vector is None or len(vector) != self.settings.embedding_dim:
            if vector is not None:
                logger.warning(
                    "Embedding for document %s has %s dimensions, expected %s",
                    doc_id,
                    len(vector),
                    self.settings.embedding_dim,
                )
            stats.unembedded += 1
            if self.vector_index is not None:
                self.vector_index.remove([doc_id])
            return
        self.db.execute(
            "INSERT INTO document_embeddings (document_id, model, dim, vector, created_at) VALUES (?, ?, ?, ?, ?)",
            [doc_id, self.settings.embedding_model, len(vector), vector_to_bytes(vector), now_s()],
        )
        if self.vector_index is not None:
            self.vector_index.upsert([doc_id], [vector])

    def _remove_missing(self, collection_id: int, seen: set[str]) -> int:
        rows = self.db.query("SELECT id, path FROM documents WHERE collection_id = ?", [collection_id])
        doomed = [row for row in rows if row["path"] not in seen]
        for row in doomed:
            self.db.execute("DELETE FROM documents_fts WHERE rowid = ?", [row["id"]])
            self.db.execute("DELETE FROM document_embeddings WHERE document_id = ?", [row["id"]])
            self.db.execute("DELETE FROM documents WHERE id = ?", [row["id"]])
            logger.info("Removed: %s", row["path"])
        if doomed and self.vector_index is not None:
            self.vector_index.remove([row["id"] for row in doomed])
        return len(doomed)

    def _refresh_gauge(self) -> None:
        INDEX_SIZE.set(self.db.scalar("SELECT COUNT(*) FROM documents") or 0)


__all__ = ["IndexPipeline", "IndexStats", "CollectionInfo"]
