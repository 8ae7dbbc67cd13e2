# config.example.py

"""
Documentation-only module (safe to commit).

Settings are read from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (gitignored).
"""

ENV_VARS = {
    # App / logging
    "TASKSMITH_APP_NAME": "App display name (default: tasksmith).",
    "TASKSMITH_LOG_LEVEL": "Console logging level (default: INFO).",
    # Front end
    "TASKSMITH_CONSOLE_ENABLED": "Run the console front end (true/false, default: true).",
    "TASKSMITH_SUGGEST_ON_EMPTY": "Draft a first task when the list is empty (default: true).",
    # Ownership
    "TASKSMITH_LOCAL_OWNER_PREFIX": "Prefix of the signed-out pseudo owner id (default: local-).",
    # LLM / OpenRouter
    "TASKSMITH_OPENROUTER_API_KEY": "OpenRouter API key (without it drafts come from offline mode).",
    "TASKSMITH_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "TASKSMITH_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "TASKSMITH_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "TASKSMITH_APP_TITLE": "Optional OpenRouter metadata header title.",
    "TASKSMITH_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout (default: 5).",
    "TASKSMITH_LLM_READ_TIMEOUT_SECONDS": "Read timeout between chunks (default: 25).",
    "TASKSMITH_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Wait for the first chunk (default: 20).",
    # Paths (gitignored)
    "TASKSMITH_DATA_DIR": "Local data directory for logs and the DB (default: .local/tasksmith).",
    "TASKSMITH_TASKS_DB_PATH": "Record store SQLite path (default: <data_dir>/tasks.sqlite3).",
}
