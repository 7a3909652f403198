import os
import dotenv
import logging

dotenv.load_dotenv()

GITHUB_TOKEN = os.environ.get("INPUT_GITHUB_TOKEN") or os.environ.get("GITHUB_TOKEN")
GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")
GITHUB_REPOSITORY = os.environ.get("GITHUB_REPOSITORY")
GITHUB_RUN_ID = os.environ.get("GITHUB_RUN_ID")
GITHUB_SHA = os.environ.get("GITHUB_SHA")
GITHUB_JOB = os.environ.get("GITHUB_JOB", "")
GITHUB_ACTION = os.environ.get("GITHUB_ACTION", "")

GITHUB_OUTPUT = os.environ.get("GITHUB_OUTPUT")
GITHUB_STEP_SUMMARY = os.environ.get("GITHUB_STEP_SUMMARY")
GITHUB_ACTIONS = os.environ.get("GITHUB_ACTIONS", "false") == "true"

ACTIONS_RUNTIME_TOKEN = os.environ.get("ACTIONS_RUNTIME_TOKEN")
ACTIONS_RESULTS_URL = os.environ.get("ACTIONS_RESULTS_URL")

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "INFO"))

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")

DISKCACHE_DIR = os.environ.get("DISKCACHE_DIR")

PUSH_GATEWAY = os.environ.get("PUSH_GATEWAY")

DRY_RUN = os.environ.get("DRY_RUN", "false") == "true"

RUNS_PAGE_SIZE = int(os.environ.get("RUNS_PAGE_SIZE", 100))

LEDGER_RETENTION_DAYS = int(os.environ.get("LEDGER_RETENTION_DAYS", 60))

LEDGER_KEEP_ARTIFACTS = int(os.environ.get("LEDGER_KEEP_ARTIFACTS", 4))

LEDGER_MAX_ENTRIES = int(os.environ.get("LEDGER_MAX_ENTRIES", 100))
