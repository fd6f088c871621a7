"""
Django settings for the RAG chat relay.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

from config.db_url import parse_database_url

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-dev-key-change-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'False').lower() in ('true', '1', 'yes')

ALLOWED_HOSTS = [
    h.strip() for h in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
]

# Application definition
INSTALLED_APPS = [
    'daphne',  # ASGI server
    'corsheaders',
    'apps.rag',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = []

ASGI_APPLICATION = 'config.asgi.application'

# =============================================================================
# Database (document store)
# =============================================================================
# NEON_DB_URL is accepted for compatibility with existing deployments
DATABASE_URL = os.getenv('DATABASE_URL') or os.getenv('NEON_DB_URL', '')

_database = parse_database_url(DATABASE_URL) if DATABASE_URL else None
if _database is None:
    _database = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }

# One persistent connection per worker thread (None = never expire);
# health checks reconnect after the server drops it.
_conn_max_age = os.getenv('DB_CONN_MAX_AGE', '')
_database['CONN_MAX_AGE'] = int(_conn_max_age) if _conn_max_age else None
_database['CONN_HEALTH_CHECKS'] = True

DATABASES = {'default': _database}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# CORS
# =============================================================================
CORS_ALLOW_ALL_ORIGINS = os.getenv('CORS_ALLOW_ALL_ORIGINS', 'True').lower() in ('true', '1', 'yes')
CORS_ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',') if o.strip()
]

# =============================================================================
# LLM / Embedding API (OpenAI-compatible, OpenRouter by default)
# =============================================================================
LLM_API_KEY = os.getenv('LLM_API_KEY') or os.getenv('OPENROUTER_API_KEY', '')
LLM_API_BASE_URL = os.getenv('LLM_API_BASE_URL', 'https://openrouter.ai/api/v1')
EMBEDDING_API_BASE_URL = os.getenv('EMBEDDING_API_BASE_URL', LLM_API_BASE_URL)

EMBEDDING_MODEL = os.getenv('EMBEDDING_MODEL', 'openai/text-embedding-3-small')
LLM_MODEL = os.getenv('LLM_MODEL', 'openai/gpt-4o-mini')

# Must match the stored vectors; only used for a warning when set
EMBEDDING_DIMENSIONS = int(os.getenv('EMBEDDING_DIMENSIONS')) if os.getenv('EMBEDDING_DIMENSIONS') else None

# Sent only when set; otherwise the provider default applies
LLM_TEMPERATURE = float(os.getenv('LLM_TEMPERATURE')) if os.getenv('LLM_TEMPERATURE') else None
LLM_MAX_TOKENS = int(os.getenv('LLM_MAX_TOKENS')) if os.getenv('LLM_MAX_TOKENS') else None

# Timeout settings (in seconds)
EMBEDDING_TIMEOUT = int(os.getenv('EMBEDDING_TIMEOUT', '60'))
LLM_TIMEOUT = int(os.getenv('LLM_TIMEOUT', '120'))

# Optional app attribution headers (OpenRouter: HTTP-Referer / X-Title),
# added to both embedding and completion requests
LLM_HTTP_REFERER = os.getenv('LLM_HTTP_REFERER', '')
LLM_APP_TITLE = os.getenv('LLM_APP_TITLE', '')
LLM_EXTRA_HEADERS = {}
if LLM_HTTP_REFERER:
    LLM_EXTRA_HEADERS['HTTP-Referer'] = LLM_HTTP_REFERER
if LLM_APP_TITLE:
    LLM_EXTRA_HEADERS['X-Title'] = LLM_APP_TITLE

# =============================================================================
# Retrieval
# =============================================================================
# l2 (<->), cosine (<=>) or inner_product (<#>)
VECTOR_DISTANCE = os.getenv('VECTOR_DISTANCE', 'l2').lower()

# Number of documents passed to the LLM as context
RAG_TOP_K = int(os.getenv('RAG_TOP_K', '3'))

# =============================================================================
# Server
# =============================================================================
HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '5000'))

# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'apps.rag': {
            'handlers': ['console'],
            'level': 'DEBUG' if DEBUG else LOG_LEVEL,
            'propagate': False,
        },
    },
}
