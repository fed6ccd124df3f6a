#!/usr/bin/env python3
"""
Configuration management for the order interpretation backend.

Every heuristic threshold used by the pipeline lives here as a named class
attribute so it can be recalibrated from the environment without touching
the matching code.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


class Config:
    """Configuration class for the application."""

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Completion provider (optional assist, gemini|groq)
    USE_LLM = os.getenv("USE_LLM", "false").lower() in ("1", "true", "yes")
    COMPLETION_PROVIDER = os.getenv("COMPLETION_PROVIDER", "gemini").lower()
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    GROQ_API_KEY = os.getenv("GROQ_API_KEY")
    GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
    PROVIDER_TIMEOUT_SECONDS = _env_float("PROVIDER_TIMEOUT_SECONDS", 8.0)

    # Persistence collaborator
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "orders.db"),
    )

    # Redis Configuration (automation statistics)
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = _env_int("REDIS_PORT", 6379)
    REDIS_DB = _env_int("REDIS_DB", 0)
    USE_REDIS = os.getenv("USE_REDIS", "true").lower() in ("1", "true", "yes")

    # Cache
    CACHE_TTL_SECONDS = _env_float("CACHE_TTL_SECONDS", 300)
    ORDER_HISTORY_LIMIT = _env_int("ORDER_HISTORY_LIMIT", 100)

    # Normalizer
    SIMILARITY_EDIT_WEIGHT = _env_float("SIMILARITY_EDIT_WEIGHT", 0.6)
    SIMILARITY_SUBSTRING_WEIGHT = _env_float("SIMILARITY_SUBSTRING_WEIGHT", 0.4)

    # Customer resolver
    CUSTOMER_MATCH_THRESHOLD = _env_float("CUSTOMER_MATCH_THRESHOLD", 0.7)
    RELIABLE_PAYER_MIN_ORDERS = _env_int("RELIABLE_PAYER_MIN_ORDERS", 3)
    UNSPECIFIED_CUSTOMER = "unspecified"
    DEFAULT_HONORIFIC = os.getenv("DEFAULT_HONORIFIC", "Khun")

    # Fuzzy matcher & scorer
    KEYWORD_SCORE = 15
    CONTAINMENT_BONUS = 20
    PRICE_EXACT_BONUS = 100
    PRICE_NEAR_BONUS = 40
    STOCK_AVAILABLE_BONUS = 10
    HIGH_STOCK_BONUS = 3
    MEDIUM_STOCK_BONUS = 2
    HIGH_STOCK_LEVEL = 50
    MEDIUM_STOCK_LEVEL = 20
    PRICE_TOLERANCE = _env_float("PRICE_TOLERANCE", 0.15)
    AMBIGUITY_MARGIN = _env_float("AMBIGUITY_MARGIN", 10)
    MIN_MATCH_SCORE = _env_float("MIN_MATCH_SCORE", 30)
    HIGH_MATCH_SCORE = _env_float("HIGH_MATCH_SCORE", 60)
    MAX_DISAMBIGUATION_CANDIDATES = _env_int("MAX_DISAMBIGUATION_CANDIDATES", 5)
    FUZZY_KEYWORD_SIMILARITY = _env_float("FUZZY_KEYWORD_SIMILARITY", 0.7)
    FUZZY_KEYWORD_MIN_LENGTH = 4

    # Entity extraction
    PAYMENT_TAIL_FRACTION = _env_float("PAYMENT_TAIL_FRACTION", 0.4)
    BARE_QUANTITY_MAX = _env_int("BARE_QUANTITY_MAX", 15)

    # Order validation
    MAX_QUANTITY_PER_ITEM = _env_int("MAX_QUANTITY_PER_ITEM", 1000)
    UNUSUAL_QUANTITY_THRESHOLD = _env_int("UNUSUAL_QUANTITY_THRESHOLD", 50)
    MAX_ITEMS_PER_ORDER = _env_int("MAX_ITEMS_PER_ORDER", 50)
    MAX_INPUT_LENGTH = _env_int("MAX_INPUT_LENGTH", 500)

    # Confidence
    TRANSCRIPTION_HIGH = _env_float("TRANSCRIPTION_HIGH", 0.85)
    TRANSCRIPTION_MEDIUM = _env_float("TRANSCRIPTION_MEDIUM", 0.65)

    # Automation policy selection (conservative|balanced|aggressive)
    AUTOMATION_MODE = os.getenv("AUTOMATION_MODE", "balanced").lower()

    @classmethod
    def completion_enabled(cls) -> bool:
        key = cls.GEMINI_API_KEY if cls.COMPLETION_PROVIDER == "gemini" else cls.GROQ_API_KEY
        return cls.USE_LLM and bool(key) and key not in ("test", "dev")

    @classmethod
    def debug_print(cls):
        print(f"[CONFIG] AUTOMATION_MODE={cls.AUTOMATION_MODE}")
        print(f"[CONFIG] COMPLETION_PROVIDER={cls.COMPLETION_PROVIDER} enabled={cls.completion_enabled()}")
        print(f"[CONFIG] DATABASE_URL={cls.DATABASE_URL}")
        print(f"[CONFIG] REDIS={cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB} use={cls.USE_REDIS}")
        print(f"[CONFIG] CUSTOMER_MATCH_THRESHOLD={cls.CUSTOMER_MATCH_THRESHOLD} "
              f"AMBIGUITY_MARGIN={cls.AMBIGUITY_MARGIN} MIN_MATCH_SCORE={cls.MIN_MATCH_SCORE}")

    @classmethod
    def validate(cls):
        """Validate that the thresholds describe a usable configuration."""
        problems = []

        if not 0.0 < cls.CUSTOMER_MATCH_THRESHOLD <= 1.0:
            problems.append("CUSTOMER_MATCH_THRESHOLD must be in (0, 1]")
        if abs(cls.SIMILARITY_EDIT_WEIGHT + cls.SIMILARITY_SUBSTRING_WEIGHT - 1.0) > 1e-6:
            problems.append("similarity weights must sum to 1")
        if not 0.0 <= cls.PAYMENT_TAIL_FRACTION <= 1.0:
            problems.append("PAYMENT_TAIL_FRACTION must be in [0, 1]")
        if cls.MAX_QUANTITY_PER_ITEM < 1:
            problems.append("MAX_QUANTITY_PER_ITEM must be positive")
        if cls.AUTOMATION_MODE not in ("conservative", "balanced", "aggressive"):
            problems.append(f"unknown AUTOMATION_MODE '{cls.AUTOMATION_MODE}'")

        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

        return True

# Validate configuration on import
Config.validate()
