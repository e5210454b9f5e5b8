# config.py

import os

from dotenv import load_dotenv

load_dotenv(override=False)

# --- Language-inference collaborator ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-5-nano")
LLM_API_URL = os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4000"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# --- Medical-coding collaborator ---
PHENO_USERNAME = os.getenv("PHENO_USERNAME", "")
PHENO_PASSWORD = os.getenv("PHENO_PASSWORD", "")
CODING_BASE_URL = os.getenv("CODING_BASE_URL", "https://phenoml-hackathon.app.pheno.ml")
CODING_SYSTEM_NAME = os.getenv("CODING_SYSTEM_NAME", "SNOMED_CT_US_LITE")
CODING_SYSTEM_VERSION = os.getenv("CODING_SYSTEM_VERSION", "20240901")
CODING_TIMEOUT_SECONDS = float(os.getenv("CODING_TIMEOUT_SECONDS", "30"))

# --- Reference data ---
_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
MAPPINGS_PATH = os.getenv("MAPPINGS_PATH", os.path.join(_DATA_DIR, "mappings.txt"))
FALLBACK_DATA_PATH = os.getenv("FALLBACK_DATA_PATH", os.path.join(_DATA_DIR, "fallback-data.json"))
DEFAULT_BILL_PATH = os.getenv("DEFAULT_BILL_PATH", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
