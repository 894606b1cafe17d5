"""Configuration management for the tab organizer."""
import os
from pathlib import Path
from typing import Optional, Any
from dotenv import load_dotenv

from .errors import ClassifierUnavailable

ENV_PATH = Path(__file__).parent / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)

# LLM Configuration
MODEL_PROVIDER: str = os.getenv("MODEL_PROVIDER", "gemini").lower()
OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_ORG_ID: Optional[str] = os.getenv("OPENAI_ORG_ID")
GROQ_API_KEY: Optional[str] = os.getenv("GROQ_API_KEY")
GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3:latest")
MODEL_TEMPERATURE: float = float(os.getenv("MODEL_TEMPERATURE", "0.1"))
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "10"))

SUPPORTED_PROVIDERS = ("openai", "groq", "gemini", "google", "ollama")


def has_credential(provider: Optional[str] = None) -> bool:
    """Return True when the selected provider can be called without a missing key."""
    provider = (provider or MODEL_PROVIDER).lower()
    if provider in ("gemini", "google"):
        return bool(GOOGLE_API_KEY)
    if provider == "groq":
        return bool(GROQ_API_KEY)
    if provider == "openai":
        return bool(OPENAI_API_KEY)
    if provider == "ollama":
        return bool(OLLAMA_BASE_URL)
    return False


def get_llm(temperature: Optional[float] = None) -> Any:
    """
    Get LLM instance based on MODEL_PROVIDER from .env file.

    This is the single place where the chat model used for tab
    classification is built. The remote classifier calls it once, lazily.

    Args:
        temperature: Optional temperature override. Defaults to MODEL_TEMPERATURE from config.

    Returns:
        LLM instance (ChatOpenAI, ChatGroq, ChatGoogleGenerativeAI, or ChatOllama)

    Raises:
        ClassifierUnavailable: If the selected provider needs an API key that is not set.
        ValueError: If MODEL_PROVIDER is invalid.
    """
    if temperature is None:
        temperature = MODEL_TEMPERATURE

    provider = MODEL_PROVIDER.lower()

    if provider == "gemini" or provider == "google":
        if not GOOGLE_API_KEY:
            raise ClassifierUnavailable("GOOGLE_API_KEY (or GEMINI_API_KEY) not found in environment")
        from langchain_google_genai import ChatGoogleGenerativeAI
        return ChatGoogleGenerativeAI(
            model=GEMINI_MODEL,
            google_api_key=GOOGLE_API_KEY,
            temperature=temperature,
            timeout=LLM_TIMEOUT_SECONDS,
            max_output_tokens=50,
        )

    elif provider == "groq":
        if not GROQ_API_KEY:
            raise ClassifierUnavailable("GROQ_API_KEY not found in environment")
        from langchain_groq import ChatGroq
        return ChatGroq(
            model=GROQ_MODEL,
            api_key=GROQ_API_KEY,
            temperature=temperature,
            timeout=LLM_TIMEOUT_SECONDS,
        )

    elif provider == "ollama":
        from langchain_ollama import ChatOllama
        return ChatOllama(
            model=OLLAMA_MODEL,
            base_url=OLLAMA_BASE_URL,
            temperature=temperature,
        )

    elif provider == "openai":
        if not OPENAI_API_KEY:
            raise ClassifierUnavailable("OPENAI_API_KEY not found in environment")
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(
            model=OPENAI_MODEL,
            api_key=OPENAI_API_KEY,
            organization=OPENAI_ORG_ID,
            temperature=temperature,
            timeout=LLM_TIMEOUT_SECONDS,
            max_retries=0,  # fallback happens in the resolver, not here
        )

    else:
        raise ValueError(
            f"Invalid MODEL_PROVIDER: '{provider}'. "
            f"Must be one of: {', '.join(repr(p) for p in SUPPORTED_PROVIDERS)}."
        )


# Rate limiting for the remote classifier
RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "50"))
RATE_LIMIT_WINDOW_SECONDS: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# Cache tiers
EXACT_CACHE_MAX_SIZE: int = int(os.getenv("EXACT_CACHE_MAX_SIZE", "1000"))
DOMAIN_CACHE_MAX_SIZE: int = int(os.getenv("DOMAIN_CACHE_MAX_SIZE", "200"))
CACHE_MAX_AGE_DAYS: float = float(os.getenv("CACHE_MAX_AGE_DAYS", "30"))  # 0 disables expiry

# Content handling
CONTENT_EXCERPT_CHARS: int = 800
FINGERPRINT_CONTENT_CHARS: int = 500
MAX_EXTRACTED_CONTENT_CHARS: int = 2000
CONTENT_EXTRACTION_TIMEOUT_SECONDS: float = float(os.getenv("CONTENT_EXTRACTION_TIMEOUT_SECONDS", "2.0"))

# Remote durable store (PostgREST / Supabase style data API)
REMOTE_STORE_URL: Optional[str] = os.getenv("REMOTE_STORE_URL") or os.getenv("SUPABASE_URL")
REMOTE_STORE_KEY: Optional[str] = os.getenv("REMOTE_STORE_KEY") or os.getenv("SUPABASE_KEY")
REMOTE_STORE_TABLE: str = os.getenv("REMOTE_STORE_TABLE", "tab_categorizations")
REMOTE_STORE_TIMEOUT_SECONDS: float = float(os.getenv("REMOTE_STORE_TIMEOUT_SECONDS", "5"))

# Database Configuration
DB_PATH: Path = Path(os.getenv("TABORGANIZER_DB_PATH", str(Path(__file__).parent / "data" / "taborganizer.db")))
DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

# Tab lifecycle
TAB_ANALYSIS_DELAY_SECONDS: float = float(os.getenv("TAB_ANALYSIS_DELAY_SECONDS", "1.0"))
UNUSED_TAB_DAYS: int = int(os.getenv("UNUSED_TAB_DAYS", "7"))
INTERNAL_URL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "moz-extension://",
    "devtools://",
)
