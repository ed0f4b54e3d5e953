# weather_alerts/main.py
from dotenv import load_dotenv

# 1) cargar variables de entorno del .env
load_dotenv()

from weather_alerts.config import load_settings
from weather_alerts.factory import create_app
from weather_alerts.log_setup import setup_logger

# 2) sin configuración completa (claves VAPID, API key, store) no se arranca
settings = load_settings()
setup_logger(settings.log_level)

app = create_app(settings)
