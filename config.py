import os
import pytz

# Constants - all sensitive information from environment variables
DISCORD_TOKEN = os.environ.get('DISCORD_TOKEN')

# Configuration for Jeddah, Saudi Arabia
CITY = os.environ.get('PRAYER_CITY', 'Jeddah')
COUNTRY = os.environ.get('PRAYER_COUNTRY', 'Saudi Arabia')
METHOD = int(os.environ.get('PRAYER_METHOD', '4'))  # Umm Al-Qura, Makkah
TIMEZONE_NAME = os.environ.get('PRAYER_TIMEZONE', 'Asia/Riyadh')
TZ = pytz.timezone(TIMEZONE_NAME)

# Optional coordinates for the backup API
LATITUDE = os.environ.get('PRAYER_LATITUDE')
LONGITUDE = os.environ.get('PRAYER_LONGITUDE')

API_URL = "https://api.aladhan.com/v1/timingsByCity"
COORDINATES_API_URL = "https://api.aladhan.com/v1/timings"
API_TIMEOUT = int(os.environ.get('API_TIMEOUT', '15'))

# Daily refresh at 00:01 local time
REFRESH_HOUR = int(os.environ.get('REFRESH_HOUR', '0'))
REFRESH_MINUTE = int(os.environ.get('REFRESH_MINUTE', '1'))

REMINDER_CHANNEL_ID = os.environ.get('REMINDER_CHANNEL_ID')
if REMINDER_CHANNEL_ID:
    REMINDER_CHANNEL_ID = int(REMINDER_CHANNEL_ID)

PRAYER_SOUND_PATH = os.environ.get(
    'PRAYER_SOUND_PATH',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'prayer_reminder.mp3')
)

PORT = int(os.environ.get('PORT', '8080'))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
