"""
orderbot - System Documentation
===============================

This module-style README documents the architecture, components and data
flows of the order interpretation service. It can be imported to surface
sections programmatically or printed for human consumption.

How to use this file
--------------------
- View in an editor for structured reading.
- Run `python README.py` to print the outline.
- Import `README` in tools or scripts to surface sections.

Table of Contents
-----------------
1. System Overview
2. Architecture
3. Package Layout
4. Interpretation Pipeline
5. Automation Policies
6. Data & Persistence
7. Configuration & Environment
8. Testing
9. Running
10. Troubleshooting

"""

from __future__ import annotations

import textwrap


def section(title: str, body: str) -> str:
    return f"\n{title}\n{'-' * len(title)}\n{body.strip()}\n"


SYSTEM_OVERVIEW = section(
    "1. System Overview",
    """
    orderbot turns free-text (often speech-transcribed, mixed Thai/English)
    shop messages such as "Mr Somchai orders IceTube 60 quantity 2" into a
    structured order intent: a resolved customer, catalog line items with
    quantities and prices, payment and delivery flags, and a confidence tier.
    An automation policy then decides whether the order can run unattended
    or has to be held for a person. Stock commands ("add 20 ice tube") are
    recognised and applied to the catalog.
    """,
)


ARCHITECTURE = section(
    "2. Architecture",
    """
    - API: FastAPI app exposing `/interpret`, `/orders`, `/orders/{id}/cancel`,
      `/cache/reload`, `/automation/stats`, `/health`.
    - Controller: routes each utterance to the order or stock agent and owns
      every I/O step (cache reloads, store writes, completion provider).
    - Agents: synchronous and pure; they read one cache snapshot and return
      a tagged result (success, disambiguation, failure, stock_adjustment).
    - Cache: catalog + customer registry rebuilt from the store and swapped
      as a whole, so a request never sees a half-reloaded snapshot.
    - Store: SQLAlchemy (SQLite by default). Stats: Redis with in-memory fallback.
    """,
)


PACKAGE_LAYOUT = section(
    "3. Package Layout",
    """
    orderbot/app/
      - main.py: FastAPI app, routes, CORS, lifespan seeding.
      - controller.py: routing, assisted retry, commit/cancel, stock writes.
      - cache.py: build-then-swap snapshot holder with TTL.
      - completion.py: optional Gemini / Groq client for repairing garbled text.
      - config.py: env-driven thresholds and provider settings.

    orderbot/nlu/
      - normalizer.py: case/diacritic folding, Thai digits, spelled numbers, similarity.
      - preprocess.py: length cap, spam screen, filler removal.
      - segmenter.py / entity_extractor.py / rules.py: customer, items, payment, delivery.
      - confidence.py: combines segment, match and transcription confidence.
      - stock_commands.py: add / subtract / set command parsing.

    orderbot/data/
      - catalog_index.py / matcher.py: keyword index and candidate scoring.
      - customer_resolver.py: fuzzy customer lookup with learned history.
      - store.py / models.py / database.py / populate_db.py: persistence.

    orderbot/automation/
      - engine.py: policies and the ordered gates.
      - correction.py: honorific prefix, zero-quantity fix, credit keywords.
      - monitor.py: auto / held counters and accuracy.
    """,
)


PIPELINE = section(
    "4. Interpretation Pipeline",
    """
    1) Preprocess: reject empty or spam input, truncate overlong text.
    2) Segment: delivery clause, honorific, generic, verb-first patterns.
    3) Extract: per item phrase, keywords, stated price, quantity and unit.
    4) Match: score catalog candidates; close scores become a disambiguation.
    5) Customer: fuzzy match; unknown names are new or unspecified by policy.
    6) History: missing quantities suggested from the customer's past orders.
    7) Confidence: weakest of sentence pattern, number reading, customer,
       matches and transcription score.
    8) Correct + decide: policy corrections, then the automation verdict.
    When a completion provider is configured, unparseable text is rewritten
    once and re-run; assisted results never rate above medium.
    """,
)


POLICIES = section(
    "5. Automation Policies",
    """
    - conservative: high confidence only, cap 5,000, known customer, exact matches.
    - balanced: high or medium confidence, cap 10,000.
    - aggressive: any confidence, cap 50,000, creates new customers, smart corrections.
    - Every policy holds orders whose lines exceed the stock on hand.
    - Cancelling an auto-approved order counts as an automation error.
    """,
)


DATA_AND_PERSISTENCE = section(
    "6. Data & Persistence",
    """
    - Tables: catalog_items, customers, orders, order_lines.
    - Seeded from `orderbot/data/raw/catalog.csv` on first start.
    - Commit writes the order and takes its quantities out of stock in one
      transaction; add / remove commands are single UPDATE statements.
    - POST `/orders` takes the verdict from `/interpret`; only auto verdicts
      count as automation errors when the order is cancelled.
    - Cancel marks the order cancelled and returns the quantities.
    """,
)


CONFIG_ENV = section(
    "7. Configuration & Environment",
    """
    - `.env` compatible; DATABASE_URL, AUTOMATION_MODE, LOG_LEVEL, REDIS_HOST,
      USE_REDIS, USE_LLM, COMPLETION_PROVIDER, GEMINI_API_KEY, GROQ_API_KEY.
    - Matching thresholds (CUSTOMER_MATCH_THRESHOLD, AMBIGUITY_MARGIN,
      MIN_MATCH_SCORE, PRICE_TOLERANCE, ...) are overridable the same way.
    """,
)


TESTING = section(
    "8. Testing",
    """
    - unittest-style suites under `/tests`, run with pytest.
    - `python tests/run_tests.py --all` runs everything; `--unit` skips the
      store / controller / API suites.
    """,
)


RUNNING = section(
    "9. Running",
    """
    - `pip install -e .[test]`
    - `uvicorn orderbot.app.main:app --reload`
    """,
)


TROUBLESHOOTING = section(
    "10. Troubleshooting",
    """
    - Everything held at the confidence gate: check the transcription score sent
      with the request and AUTOMATION_MODE.
    - Stale catalog after editing the database by hand: POST `/cache/reload`.
    - Stats reset on restart: Redis was not reachable, counters were in memory.
    """,
)


def as_text() -> str:
    return "\n".join(
        [
            SYSTEM_OVERVIEW,
            ARCHITECTURE,
            PACKAGE_LAYOUT,
            PIPELINE,
            POLICIES,
            DATA_AND_PERSISTENCE,
            CONFIG_ENV,
            TESTING,
            RUNNING,
            TROUBLESHOOTING,
        ]
    )


def main() -> None:
    print(textwrap.dedent(as_text()))


if __name__ == "__main__":
    main()
