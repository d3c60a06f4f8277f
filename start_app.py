import os

from dotenv import load_dotenv

dotenv_path = os.getenv('PULSE_DOTENV', '.env')
load_dotenv(dotenv_path)

from app import app  # noqa: E402
from app_utils import get_env  # noqa: E402

if __name__ == '__main__':
    # Set default host and port
    host = get_env('HOST', '127.0.0.1')
    port = int(get_env('PORT', '5000'))
    debug = get_env('DEBUG', 'False').lower() == 'true'

    print(f"Starting AI Pulse on {host}:{port}")
    print("API Status Check:")

    for label, key in (
        ("Exa search", "EXA_API_KEY"),
        ("OpenAI", "OPENAI_API_KEY"),
        ("Twitter engagement", "TWITTER_API_KEY"),
        ("Cron secret", "CRON_SECRET"),
    ):
        print(f"  {label} configured: {bool(get_env(key, required=True))}")

    if not get_env('CRON_SECRET', required=True):
        print("\n[WARN] CRON_SECRET missing; /api/cron will reject every request.")

    print(f"\nAccess URL: http://{host}:{port}")

    app.run(host=host, port=port, debug=debug, threaded=True)
