import os

# Deterministic, offline-friendly tests: never pick up a real Gemini key
os.environ.pop("GOOGLE_API_KEY", None)
os.environ.pop("GEMINI_API_KEY", None)
os.environ["LANGFUSE_ENABLED"] = "0"
os.environ.setdefault("LOG_LEVEL", "WARNING")
