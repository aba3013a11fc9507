from pydantic import BaseModel
import os

class Settings(BaseModel):
    # GraphQL gateway
    GRAPHQL_ENDPOINT: str = os.getenv('GRAPHQL_ENDPOINT', 'http://gateway:8000/graphql')
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv('GATEWAY_TIMEOUT_SECONDS', '30'))

    # Identity provider
    IDENTITY_BASE: str = os.getenv('IDENTITY_BASE', 'http://auth:8000')
    TOKEN_REFRESH_LEEWAY_SECONDS: int = int(os.getenv('TOKEN_REFRESH_LEEWAY_SECONDS', '60'))

    # Persisted session (memory:// or redis://...)
    TOKEN_STORE_URL: str = os.getenv('TOKEN_STORE_URL', 'memory://')
    SESSION_KEY: str = os.getenv('SESSION_KEY', 'dashboard')

    # Listings
    PAGE_SIZE: int = int(os.getenv('PAGE_SIZE', '20'))
    CATEGORY_PAGE_SIZE: int = int(os.getenv('CATEGORY_PAGE_SIZE', '100'))
    EVENTS_PAGE_SIZE: int = int(os.getenv('EVENTS_PAGE_SIZE', '25'))

    # New-row defaults
    DEFAULT_LANG: str = os.getenv('DEFAULT_LANG', 'en')
    DEFAULT_COUNTRY: str = os.getenv('DEFAULT_COUNTRY', 'us')
    DEFAULT_CURRENCY: str = os.getenv('DEFAULT_CURRENCY', 'USD')

    LOGIN_URL: str = os.getenv('LOGIN_URL', '/login')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

settings = Settings()
