from functools import lru_cache
from typing import Optional
import os

DEFAULT_ORIGIN = 'https://kuraa-galaan-website.vercel.app'


class Settings:
    """Process configuration, read once from the environment."""

    def __init__(
        self,
        database_url: str = 'sqlite:///./backend.db',
        allowed_origin: str = DEFAULT_ORIGIN,
        frontend_url: Optional[str] = None,
        stripe_secret_key: Optional[str] = None,
        stripe_currency: str = 'usd',
        chapa_secret_key: Optional[str] = None,
        chapa_currency: str = 'ETB',
        chapa_base_url: str = 'https://api.chapa.co/v1',
        chapa_timeout: float = 30.0,
        telebirr_instructions: str = 'Use Telebirr app to transfer to account XYZ',
        rate_limit_max: int = 200,
        rate_limit_window_seconds: int = 15 * 60,
        port: int = 3000,
        log_level: str = 'INFO',
    ):
        self.database_url = database_url
        self.allowed_origin = allowed_origin
        self.frontend_url = frontend_url or allowed_origin
        self.stripe_secret_key = stripe_secret_key or None
        self.stripe_currency = stripe_currency
        self.chapa_secret_key = chapa_secret_key or None
        self.chapa_currency = chapa_currency
        self.chapa_base_url = chapa_base_url.rstrip('/')
        self.chapa_timeout = chapa_timeout
        self.telebirr_instructions = telebirr_instructions
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window_seconds = rate_limit_window_seconds
        self.port = port
        self.log_level = log_level

    @classmethod
    def from_env(cls) -> 'Settings':
        frontend_url = os.getenv('FRONTEND_URL')
        return cls(
            database_url=os.getenv('DATABASE_URL', 'sqlite:///./backend.db'),
            allowed_origin=os.getenv('ALLOWED_ORIGIN') or frontend_url or DEFAULT_ORIGIN,
            frontend_url=frontend_url,
            stripe_secret_key=os.getenv('STRIPE_SECRET_KEY'),
            stripe_currency=os.getenv('STRIPE_CURRENCY', 'usd'),
            chapa_secret_key=os.getenv('CHAPA_SECRET_KEY'),
            chapa_currency=os.getenv('CHAPA_CURRENCY', 'ETB'),
            chapa_base_url=os.getenv('CHAPA_BASE_URL', 'https://api.chapa.co/v1'),
            chapa_timeout=float(os.getenv('CHAPA_TIMEOUT', '30')),
            telebirr_instructions=os.getenv('TELEBIRR_INSTRUCTIONS', 'Use Telebirr app to transfer to account XYZ'),
            rate_limit_max=int(os.getenv('RATE_LIMIT_MAX', '200')),
            rate_limit_window_seconds=int(os.getenv('RATE_LIMIT_WINDOW_SECONDS', str(15 * 60))),
            port=int(os.getenv('PORT', '3000')),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
