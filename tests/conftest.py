"""Shared test setup -- a throwaway SQLite database and storage directory.

Settings are read once and cached, so the environment has to be in place
before anything under ``datachat`` is imported.
"""
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="datachat-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'datachat.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["LLM_PROVIDER"] = "mock"
os.environ["SAMPLE_DATA_FALLBACK"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
