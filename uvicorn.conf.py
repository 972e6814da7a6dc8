from visitgate.core.config import get_settings

settings = get_settings()

host = settings.BACKEND_HOST
port = settings.BACKEND_PORT
log_level = settings.log_level.lower()
workers = 1 if settings.DEBUG else 2
