"""FTS5 full-text search over a rebuilt index.

Provides:
- search_fts(): Search entries with BM25 ranking and label filters
- sanitize_fts_query(): Quote tokens that FTS5 would treat as syntax

FTS5 query syntax supported:
- Simple terms: "meeting notes"
- Phrases: '"exact phrase"'
- Boolean: "meeting OR notes"
- Prefix: "meet*"
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass

# Characters that turn a bare token into FTS5 syntax
_HAS_SPECIAL = re.compile(r"['\-\(\)\:\^\.\@]")

_FTS5_OPERATORS = {"OR", "AND", "NOT"}

# Balanced "phrases" or runs of non-space, non-quote characters
_TOKEN_RE = re.compile(r'"[^"]*"|[^\s"]+')


@dataclass
class SearchResult:
    """A single search result with ranking info."""

    doc_id: int
    sender: str
    subject: str
    snippet: str
    date: str
    labels: list[str]
    score: float


def _quote(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def _sanitize_bare_token(token: str) -> str:
    """Quote a bare token containing special characters, keeping a prefix *."""
    if token in _FTS5_OPERATORS:
        return token

    has_wildcard = token.endswith("*") and len(token) > 1
    core = token[:-1] if has_wildcard else token

    if _HAS_SPECIAL.search(core):
        return _quote(core) + ("*" if has_wildcard else "")
    return token


def sanitize_fts_query(query: str) -> str:
    """Sanitize a query string for safe FTS5 use.

    Balanced phrases, trailing ``*`` and boolean operators pass through;
    unbalanced quotes are dropped.

    Args:
        query: Raw user query

    Returns:
        Sanitized query safe for FTS5
    """
    if not query or not query.strip():
        return ""

    parts = []
    for token in _TOKEN_RE.findall(query.strip()):
        if token.startswith('"'):
            parts.append(token)
        else:
            parts.append(_sanitize_bare_token(token))
    return " ".join(parts)


def _escape_all(query: str) -> str:
    """Quote every word, operators included; fallback after a syntax error."""
    return " ".join(_quote(word) for word in query.split())


def _extract_snippet(content: str, max_length: int = 150) -> str:
    if not content:
        return ""
    text = " ".join(content.split())
    if len(text) <= max_length:
        return text
    return text[:max_length].rsplit(" ", 1)[0] + "..."


def add_label_filter(sql: str, params: list, labels: list[str] | None) -> str:
    """
    Require every given label on the matched entry.

    Modifies params in-place and returns the updated SQL string.
    """
    for label in labels or []:
        sql += (
            " AND EXISTS (SELECT 1 FROM labels l"
            " WHERE l.doc_id = e.rowid AND l.label = ?)"
        )
        params.append(label)
    return sql


def search_fts(
    conn: sqlite3.Connection,
    query: str,
    labels: list[str] | None = None,
    limit: int = 20,
    *,
    _is_retry: bool = False,
) -> list[SearchResult]:
    """
    Search indexed entries using FTS5 with BM25 ranking.

    Entries are stored lowercased, and FTS5's unicode61 tokenizer folds
    case, so queries match regardless of case.

    Args:
        conn: Database connection
        query: Search query (supports FTS5 syntax)
        labels: Only return entries carrying all of these labels
        limit: Maximum results (default: 20)

    Returns:
        List of SearchResult ordered by relevance
    """
    if not query or not query.strip():
        return []

    safe_query = query if _is_retry else sanitize_fts_query(query)
    if not safe_query:
        return []

    # Column weights: sender, recipients, subject, body
    sql = """
        SELECT
            e.rowid AS doc_id,
            e.sender,
            e.subject,
            e.body,
            e.date,
            -bm25(entries_fts, 1.0, 0.5, 2.0, 1.0) AS score
        FROM entries_fts
        JOIN entries e ON entries_fts.rowid = e.rowid
        WHERE entries_fts MATCH ?
    """
    params: list = [safe_query]
    sql = add_label_filter(sql, params, labels)
    sql += " ORDER BY score DESC LIMIT ?"
    params.append(limit)

    try:
        rows = conn.execute(sql, params).fetchall()
    except sqlite3.OperationalError as e:
        if "fts5: syntax error" in str(e).lower() and not _is_retry:
            return search_fts(
                conn, _escape_all(query), labels, limit, _is_retry=True
            )
        raise

    results = []
    for row in rows:
        label_rows = conn.execute(
            "SELECT label FROM labels WHERE doc_id = ? ORDER BY label",
            (row["doc_id"],),
        )
        results.append(
            SearchResult(
                doc_id=row["doc_id"],
                sender=row["sender"] or "",
                subject=row["subject"] or "",
                snippet=_extract_snippet(row["body"]),
                date=row["date"] or "",
                labels=[r[0] for r in label_rows],
                score=round(row["score"], 3),
            )
        )
    return results
