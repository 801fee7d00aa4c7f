#!/usr/bin/env python3
"""
SQLGate Demo: an AI agent tries to DROP TABLE and a human has to say yes.

This demo simulates the SQL an LLM might generate and runs it through the
gate against an in-memory SQLite database. No API keys needed. The human
reviewer is simulated too: it approves UPDATEs and rejects everything else.

Run:
    pip install -e .
    python packages/python/examples/agent_demo.py

Pass --interactive to review in your terminal instead.
"""

from __future__ import annotations

import csv
import sqlite3
import sys
from pathlib import Path

import sqlgate
from sqlgate import (
    CallableReviewChannel,
    ConfirmationGate,
    ConfirmationRequest,
    ConnectionInfo,
    GatedExecutor,
    MemoryAuditSink,
    ReviewPolicy,
    SqlAnalyzer,
    StaticConnections,
    build_header,
    default_review_channel,
)

SIMULATED_AI_QUERIES = [
    {
        "user_prompt": "How many users signed up last month?",
        "ai_sql": "SELECT COUNT(*) FROM users WHERE created_at > '2024-11-01'",
    },
    {
        "user_prompt": "Clean up the database to make it faster",
        "ai_sql": "DROP TABLE users; DROP TABLE orders;",  # 🔥 DANGEROUS
    },
    {
        "user_prompt": "Mark old accounts inactive",
        "ai_sql": "UPDATE users SET active = 0 WHERE created_at < '2020-01-01'",
    },
    {
        "user_prompt": "Archive and purge old orders",
        "ai_sql": """
            BEGIN
                INSERT INTO orders_archive SELECT * FROM orders WHERE id < 100;
                DELETE FROM orders WHERE id < 100;
            END;
        """,  # 🔥 DELETE hidden inside a block
    },
    {
        "user_prompt": "Something the parser cannot read",
        "ai_sql": "SELEKT * FORM users",  # unparseable: always reviewed
    },
]


class SqliteExecutor:
    """Minimal SqlExecutor over one sqlite3 connection."""

    def __init__(self) -> None:
        self.db = sqlite3.connect(":memory:", check_same_thread=False)
        self.db.executescript(
            """
            CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, active INTEGER, created_at TEXT);
            CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, amount REAL);
            CREATE TABLE orders_archive (id INTEGER PRIMARY KEY, user_id INTEGER, amount REAL);
            INSERT INTO users VALUES (1, 'ada', 1, '2019-05-01'), (2, 'alan', 1, '2024-11-12');
            """
        )

    def execute(self, connection: str, sql: str) -> list[tuple]:
        cursor = self.db.execute(sql)
        return cursor.fetchall()

    def query_to_csv(self, connection: str, sql: str, path: Path) -> int:
        cursor = self.db.execute(sql)
        rows = cursor.fetchall()
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow([column[0] for column in cursor.description])
            writer.writerows(rows)
        return len(rows)

    def query_to_text(self, connection: str, sql: str, path: Path) -> int:
        rows = self.db.execute(sql).fetchall()
        path.write_text("\n".join("\t".join(map(str, row)) for row in rows), encoding="utf-8")
        return len(rows)


def simulated_reviewer(request: ConfirmationRequest) -> bool:
    """Stand-in for a human: approves plain UPDATEs only."""
    print(f"   👀 Review requested: {build_header(request).splitlines()[0]}")
    return request.matched_actions == ("UPDATE",)


def demo_analysis():
    """Show what the analyzer sees in each query."""
    print("\n" + "=" * 60)
    print("🔍 ANALYSIS")
    print("=" * 60)

    for scenario in SIMULATED_AI_QUERIES:
        result = sqlgate.analyze(scenario["ai_sql"])
        status = "🚨 REVIEW" if result.dangerous else "✅ AUTO"
        print(f"\n📝 User asked: \"{scenario['user_prompt']}\"")
        print(f"   {status}  type={result.statement_type}  actions={list(result.matched_actions)}")


def demo_gated_execution(interactive: bool):
    """Run every query through the gate and a SQLite executor."""
    print("\n" + "=" * 60)
    print("🔒 GATED EXECUTION")
    print("=" * 60)

    if interactive:
        channel = default_review_channel(timeout=120)
    else:
        channel = CallableReviewChannel(simulated_reviewer, name="simulated")

    audit = MemoryAuditSink()
    executor = GatedExecutor(
        gate=ConfirmationGate(
            analyzer=SqlAnalyzer(dialect="sqlite", action_keywords=sqlgate.DEFAULT_ACTION_KEYWORDS),
            channel=channel,
            policy=ReviewPolicy(always_review_ddl=True),
        ),
        executor=SqliteExecutor(),
        connections=StaticConnections([ConnectionInfo("demo", database="main", driver="sqlite3")]),
        audit=audit,
    )

    for scenario in SIMULATED_AI_QUERIES:
        print(f"\n🤖 AI generated: {' '.join(scenario['ai_sql'].split())[:60]}")
        outcome = executor.execute_sql(scenario["ai_sql"])
        print(f"   → {outcome.code.value}: {outcome.message}")

    print("\n📜 Audit trail:")
    for entry in audit.entries:
        print(f"   {entry.action:<40} approved={entry.approved}")


if __name__ == "__main__":
    print("\n" + "🛡️ " * 20)
    print("   SQLGate Demo: human approval for agent SQL")
    print("🛡️ " * 20)

    demo_analysis()
    demo_gated_execution(interactive="--interactive" in sys.argv)
    print()
