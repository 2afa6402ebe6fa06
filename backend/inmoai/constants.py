"""
Business logic constants for InmoAI Analytics.

These values are stable across environments and do not need env-var
overrides. For operational parameters (URLs, retries, timeouts), see
config.py.
"""

from inmoai.models.property import Recommendation

API_TITLE = "InmoAI Analytics API"
API_VERSION = "0.1.0"

# --- Defaults applied to primary agent payloads that omit optional fields ---
DEFAULT_VIABILITY_SCORE = 70
DEFAULT_RECOMMENDATION = Recommendation.HOLD

# --- Record ownership ---
LOCAL_USER_ID = "local-user-123"   # Owner id for every record in local mode
UNSAVED_USER_ID = "temp"           # Owner id for session-only records
TEMP_PROPERTY_ID = "temp"          # propertyId when the input carries no id

# --- Price evolution series produced by the fallback agent ---
PRICE_EVOLUTION_YEARS = 5

# --- User-visible notices (Spanish, shown verbatim by the frontend) ---
PRIMARY_FAILURE_NOTICE = (
    'Aviso del Agente n8n: "{message}". '
    "Activando Agente de Respaldo Directo para completar el informe."
)
TERMINAL_FAILURE_NOTICE = (
    "Lo sentimos, no pudimos generar el análisis. "
    "Por favor, verifica tu conexión e inténtalo de nuevo."
)
PRIMARY_CONNECTION_ERROR = "No se pudo establecer conexión con el agente de análisis."

# --- Telegram hand-off ---
TELEGRAM_LINK_BASE = "https://t.me"
DEFAULT_CHAT_QUESTION = "¿Es una buena inversión?"
