"""
Point d'entrée de développement
Charge .env puis lance le serveur Flask
"""
import os
from pathlib import Path

project_root = Path(__file__).parent.absolute()

# Load environment variables from .env if exists
env_file = project_root / '.env'
if env_file.exists():
    with open(env_file, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())

from camrelay.main import create_app

# Get environment configuration
env = os.environ.get('FLASK_ENV', 'development')

# Create the Flask application
app = create_app(env)

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3001))
    # threaded: les requêtes WHEP et HLS ne doivent pas se bloquer entre elles
    app.run(host='0.0.0.0', port=port, threaded=True, use_reloader=False)
