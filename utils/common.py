"""Common utilities: path management and model-output cleanup"""
import os
import re

# ⚠️ DO NOT import settings here - causes circular import with config.py


# ============= Path Management =============

def get_project_root() -> str:
    """Returns the absolute path to the project's root directory."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def get_log_file_path() -> str:
    """Creates the log directory if it doesn't exist and returns the full log file path."""
    project_root = get_project_root()
    log_dir = os.path.join(project_root, 'log')

    if not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    return os.path.join(log_dir, 'rag_system.log')


# ============= Model Output Helpers =============

_CODE_FENCE_OPEN = re.compile(r'^```(?:json)?\s*', re.IGNORECASE)
_CODE_FENCE_CLOSE = re.compile(r'\s*```$')


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```) from model output."""
    cleaned = text.strip()
    if cleaned.startswith('```'):
        cleaned = _CODE_FENCE_OPEN.sub('', cleaned)
        cleaned = _CODE_FENCE_CLOSE.sub('', cleaned)
    return cleaned


def snippet(text: str, limit: int = 200) -> str:
    """Truncate text for prompts and previews."""
    return text if len(text) <= limit else text[:limit] + "..."
