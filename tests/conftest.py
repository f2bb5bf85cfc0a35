"""
Settings are read at import time; give tests a complete environment before lockflow is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./lockflow-test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-service-key")
os.environ.setdefault("UNLOCK_SESSION_SECRET", "test-unlock-session-secret")
os.environ.setdefault("UNLOCK_COUNTER_BACKEND", "database")
