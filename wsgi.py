"""
WSGI entry point for production deployment
gunicorn --workers 1 --threads 8 wsgi:application

Un seul worker: le registre des flux vit en mémoire dans le processus.
"""
import os
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Load environment variables from .env if exists
env_file = project_root / '.env'
if env_file.exists():
    print(f"📁 Loading environment variables from {env_file}")
    with open(env_file, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())

from camrelay.main import create_app

env = os.environ.get('FLASK_ENV', 'production')
print(f"🔧 Creating app (env={env})")
app = create_app(env)

# This is what Gunicorn will use
application = app

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3001))
    app.run(host='0.0.0.0', port=port, threaded=True)
