import os
from dotenv import load_dotenv


def load_environment_config():
    """
    Load environment-specific configuration based on APP_ENV variable.

    Environments:
    - production: Uses .env.production
    - sit: Uses .env.sit
    - test: Uses .env.test
    - development: Uses .env (default)
    """
    env = os.getenv('APP_ENV', 'development').lower()

    # Environment file mapping
    env_files = {
        'production': '.env.production',
        'sit': '.env.sit',
        'test': '.env.test',
        'development': '.env',
    }

    # Load the appropriate .env file
    env_file = env_files.get(env, '.env')

    if os.path.exists(env_file):
        load_dotenv(env_file)
        print(f"🔧 Loaded configuration from: {env_file}")
    else:
        # Fallback to default .env
        load_dotenv()
        if env != 'development':
            print(f"⚠️  Environment file {env_file} not found, using default .env")


# Load environment-specific configuration
load_environment_config()

APP_ENV = os.getenv('APP_ENV', 'development').lower()

# AWS credentials; empty values fall back to the default boto3 credential chain
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
# default to ap-southeast-1 if not provided
AWS_DEFAULT_REGION = os.getenv("AWS_REGION", "ap-southeast-1")

# Single table holding rooms, participants and connections
DYNAMODB_TABLE_NAME = os.getenv("DYNAMODB_TABLE_NAME", "AgilePokerTable")

# When set, DynamoDB calls go to http://<host>:4566
LOCALSTACK_HOSTNAME = os.getenv("LOCALSTACK_HOSTNAME") or None

# Rooms untouched for longer than this are removed by the stale-room sweep
STALE_ROOM_RETENTION_DAYS = float(os.getenv("STALE_ROOM_RETENTION_DAYS", "30"))

# BatchWriteItem accepts at most 25 requests
BATCH_WRITE_CHUNK_SIZE = int(os.getenv("BATCH_WRITE_CHUNK_SIZE", "25"))

# Application port configuration
APP_PORT = int(os.getenv("APP_PORT", "8091"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_REDACT_SECRETS = os.getenv("LOG_REDACT_SECRETS", "true").lower() == "true"


# Parse CORS origins from comma-separated string
cors_origins_str = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

CORS_ALLOW_CREDENTIALS = os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"

# Parse CORS methods
cors_methods_str = os.getenv("CORS_ALLOW_METHODS", "*")
CORS_ALLOW_METHODS = [method.strip() for method in cors_methods_str.split(",") if method.strip()] if cors_methods_str != "*" else ["*"]

# Parse CORS headers
cors_headers_str = os.getenv("CORS_ALLOW_HEADERS", "*")
CORS_ALLOW_HEADERS = [header.strip() for header in cors_headers_str.split(",") if header.strip()] if cors_headers_str != "*" else ["*"]

CORS_MAX_AGE = int(os.getenv("CORS_MAX_AGE", "600"))
